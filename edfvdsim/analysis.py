"""
This module contains any methods and functions related to the analysis of a simulated EDF-VD schedule: preemptions,
waiting and response times, deadline misses, the deterministic EDF-VD schedulability test, and a graphic
representation of the schedule. It makes use of the classes defined in module lib.
"""

import collections
import math

import matplotlib.pyplot as plt
import numpy as np

from edfvdsim.lib import TaskSet, Job, ScheduleSlice

ScheduleAnalysis = collections.namedtuple('ScheduleAnalysis', [
    'preemptions',
    'avg_wait',
    'avg_response',
    'n_tasks',
    'n_jobs',
    'n_finished',
    'n_unfinished',
    'preempted_jobs',
    'deadline_misses',
    'busy_time',
    'utilization',
    'schedulable',
])


################################
# Deterministic Schedulability #
################################

def d_edf_vd(task_set: TaskSet):
    """Deterministic EDF-VD schedulability analysis, after theorem 1 in [1].

    Tasks carry a single WCET, which is used as both their LO- and HI-mode execution time bound. With equal bounds the
    theorem's min(U_HI, U_HI / (1 - U_HI)) is always U_HI, so the test reduces to U_LO + U_HI <= 1.
    """
    if task_set.u_hi >= 1:
        return False
    return task_set.u_lo + task_set.u_hi <= 1  # sufficient condition


#####################
# Schedule Analysis #
#####################

def count_preemptions(slices: [ScheduleSlice]):
    """Number of adjacent slice pairs that run different jobs."""
    return len([1 for prev, curr in zip(slices, slices[1:]) if prev.job.key != curr.job.key])


def preempted_jobs(slices: [ScheduleSlice]):
    """Jobs that were switched away from before completion, i.e. which are spread over more than one slice."""
    counts = collections.Counter(s.job.key for s in slices)
    result = collections.OrderedDict()
    for s in slices:
        if counts[s.job.key] > 1:
            result.setdefault(s.job.key, s.job)
    return list(result.values())


def analyze_schedule(task_set: TaskSet, jobs: [Job], slices: [ScheduleSlice]):
    """Derives summary statistics from a simulated schedule.

    Waiting and response times are averaged over finished jobs only. Jobs still unfinished at the end of the
    hyperperiod are counted separately, they also count as deadline misses.

    Args:
        task_set: The simulated task set.
        jobs: All jobs of the simulation, after the run.
        slices: The schedule produced by the simulation.

    Returns:
        A ScheduleAnalysis namedtuple.
    """
    finished = [job for job in jobs if job.finished]
    unfinished = [job for job in jobs if not job.finished]
    if finished:
        avg_wait = float(np.average([job.wait_time for job in finished]))
        avg_response = float(np.average([job.response_time for job in finished]))
    else:
        avg_wait = avg_response = 0.

    misses = len([job for job in finished if job.missed_deadline]) + len(unfinished)
    busy_time = sum([s.end - s.start for s in slices])

    return ScheduleAnalysis(
        preemptions=count_preemptions(slices),
        avg_wait=avg_wait,
        avg_response=avg_response,
        n_tasks=len(task_set.tasks),
        n_jobs=len(jobs),
        n_finished=len(finished),
        n_unfinished=len(unfinished),
        preempted_jobs=len(preempted_jobs(slices)),
        deadline_misses=misses,
        busy_time=busy_time,
        utilization=busy_time / task_set.hyperperiod,
        schedulable=d_edf_vd(task_set),
    )


def task_response_times(task_set: TaskSet, jobs: [Job]):
    """Worst observed response time per task name. Tasks without any finished job map to None."""
    result = collections.OrderedDict((task.name, None) for task in task_set.tasks)
    for job in jobs:
        if job.finished:
            worst = result[job.task.name]
            result[job.task.name] = job.response_time if worst is None else max(worst, job.response_time)
    return result


#################
# Visualization #
#################

def plot_schedule(task_set: TaskSet, slices: [ScheduleSlice], jobs: [Job]=None, path=None):
    """Method for displaying a Gantt chart of a simulated schedule.

    Every task gets its own row. Job releases are drawn as black arrows, real deadlines of the given jobs as red
    dotted lines.

    Args:
        task_set: The simulated task set.
        slices: The schedule produced by the simulation.
        jobs: Optional list of jobs, used to mark releases and deadlines.
        path: Path to save figure to image file. If None, plot will be shown immediately instead.
    """
    n = len(task_set.tasks)
    fig, ax = plt.subplots(figsize=(12, 1 + 0.8 * max(n, 1)), dpi=150)
    colors = plt.get_cmap('tab10')(np.arange(max(n, 1)) % 10)

    for s in slices:
        row = n - 1 - s.job.task_index
        ax.broken_barh([(s.start, s.end - s.start)], (row + 0.1, 0.8),
                       facecolor=colors[s.job.task_index], edgecolor='black', linewidth=0.5)
        if s.end - s.start >= task_set.hyperperiod / 50.:
            ax.text((s.start + s.end) / 2., row + 0.5, str(s.job.job_id),
                    ha='center', va='center', fontsize=7)

    for job in jobs or []:
        row = n - 1 - job.task_index
        ax.annotate('', xy=(job.release, row + 0.9), xytext=(job.release, row + 1.15),
                    arrowprops=dict(arrowstyle='->', color='black', linewidth=0.8))
        if job.abs_deadline <= task_set.hyperperiod:
            ax.plot([job.abs_deadline] * 2, [row, row + 1], color='red', linestyle=':', linewidth=1)

    ax.set_xlim(0, task_set.hyperperiod)
    ax.set_ylim(0, n + 0.3)
    ax.set_yticks([n - 1 - i + 0.5 for i in range(n)])
    ax.set_yticklabels(['{0} ({1})'.format(t.name, t.criticality) for t in task_set.tasks])
    ax.set_xticks(range(0, int(math.ceil(task_set.hyperperiod)) + 1, max(1, int(task_set.hyperperiod // 20))))
    ax.set_xlabel('Time')
    ax.grid(axis='x', linestyle='dashed', linewidth=0.5)
    ax.set_title(task_set.description, fontsize=10)
    fig.tight_layout()
    if path is None:
        plt.show()
    else:
        plt.savefig(path)
        plt.close(fig)


"""
Literature:
[1] Baruah, Bonifaci, D'Angelo, Li, Marchetti-Spaccamela, van der Ster, Stougie
    The Preemptive Uniprocessor Scheduling of Mixed-Criticality Implicit-Deadline Sporadic Task Systems
    ECRTS 2012
"""
