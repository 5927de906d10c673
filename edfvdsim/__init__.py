"""
Offline simulation of EDF-VD (Earliest Deadline First with Virtual Deadlines) scheduling of mixed-criticality task
sets over one hyperperiod.
"""
