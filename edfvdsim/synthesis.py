"""
This module offers functions for the synthesis of random mixed-criticality task sets and of the actual execution times
of their jobs, as input for the EDF-VD simulation. It makes use of the classes defined in module lib.
"""

import numpy as np
import numpy.random as nprd

from edfvdsim.lib import Task, TaskSet


def uunifast(n, util):
    """Returns an array of n values in (0, 1) which sum up to util. See [1]."""
    sum_u = util
    vect_u = np.empty(n)
    for i in range(n - 1):
        next_sum_u = sum_u * nprd.random() ** (1.0 / (float(n - i)))
        vect_u[i] = sum_u - next_sum_u
        sum_u = next_sum_u
    vect_u[-1] = sum_u
    return vect_u


################################
# Task Set Parameter Synthesis #
################################

def dummy_taskset():
    """Returns a small dummy task set with only two tasks. These can be used for testing."""
    t1 = Task(name='T1', phase=0, period=5, wcet=2, deadline=5, criticality='HI')
    t2 = Task(name='T2', phase=0, period=10, wcet=3, deadline=10, criticality='LO')
    return TaskSet(0, [t1, t2])


def simplegen(
        set_id,
        u=None,
        cp=0.5,
        n_tasks=5,
        periods=None,
        implicit_deadlines=True,
        decimals=2,
) -> TaskSet:
    """Generates mixed-criticality task sets based on the UUniFast algorithm.

    Args:
        set_id: Identifier for newly generated task set.
        u: Desired total utilization. Uniformly picked at random if None.
        cp: Criticality probability. Chance for a task to be of HI criticality.
        n_tasks: Number of tasks in the generated task set.
        periods: List of possible (integer) period values. A default list resulting in a small hyperperiod is
            assigned if None.
        implicit_deadlines: If true, deadline == period; if false, deadlines are picked uniformly at random between
            the task's WCET and its period.
        decimals: WCETs and deadlines are rounded to this many decimals.

    Returns:
        A TaskSet object with the desired parameters. All tasks are released synchronously (phase 0).
    """
    if u is None:
        u = nprd.uniform(0.05, 1.)
    if periods is None:
        periods = [5, 10, 20, 25, 50]  # This will yield a manageably small hyperperiod.

    utils = uunifast(n_tasks, u)
    tasks = []
    for i in range(n_tasks):
        period = int(nprd.choice(periods))
        crit = str(nprd.choice(['HI', 'LO'], p=[cp, 1. - cp]))
        wcet = max(round(utils[i] * period, decimals), 10 ** -decimals)
        if implicit_deadlines or wcet >= period:
            deadline = period
        else:
            deadline = round(nprd.uniform(wcet, period), decimals)
        tasks.append(Task(name='T%d' % (i + 1), phase=0, period=period, wcet=wcet, deadline=deadline,
                          criticality=crit))
    return TaskSet(set_id, tasks)


############################
# Execution Time Synthesis #
############################

def synth_exec_times(task_set: TaskSet, bcet_ratio=0.5, decimals=2):
    """Draws an actual execution time for every job of every task in the set.

    Execution times are uniformly distributed between bcet_ratio * wcet and wcet, so no job overruns its WCET.

    Args:
        task_set: Set of tasks for which execution times are drawn.
        bcet_ratio: Lower bound of the execution times, relative to the task's WCET. In interval [0, 1].
        decimals: Execution times are rounded to this many decimals, but never above the WCET.

    Returns:
        A list with one list of task.job_count execution times per task, in declaration order.
    """
    exec_times = []
    for task in task_set.tasks:
        times = nprd.uniform(bcet_ratio * task.wcet, task.wcet, size=task.job_count)
        times = np.minimum(np.round(times, decimals), task.wcet)
        exec_times.append([float(c) for c in times])
    return exec_times


def wcet_exec_times(task_set: TaskSet):
    """Worst-case scenario: every job executes for exactly its task's WCET."""
    return [[task.wcet] * task.job_count for task in task_set.tasks]


def n_jobs(task_set: TaskSet):
    """Total number of jobs in one hyperperiod."""
    return sum([task.job_count for task in task_set.tasks])


"""
Literature:
[1] Bini, Buttazzo
    Measuring the Performance of Schedulability Tests
    Real-Time Systems, 2005
"""
