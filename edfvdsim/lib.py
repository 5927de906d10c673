"""
This module offers the container classes for mixed-criticality task sets, their job instances and schedule slices,
together with the basic operations needed before an EDF-VD simulation can start: hyperperiod analysis, criticality
scaling (virtual deadlines) and job instantiation.
"""

import collections
import copy
import functools
import logging
import math

logger = logging.getLogger(__name__)

EPSILON = 1e-9  # Time differences up to this value are treated as zero.


##############
# Exceptions #
##############

class SimulationError(Exception):
    """Base class for all errors raised while preparing or running a simulation."""


class InputError(SimulationError):
    """Malformed, incomplete or out-of-range task or execution time data. The run has to be aborted."""


class InternalError(SimulationError):
    """An invariant of the scheduling engine was violated."""


class CapacityError(InternalError):
    """A configured maximum number of jobs or schedule slices was exceeded."""


#####################
# Container Classes #
#####################

class Task(object):
    """Periodic task of a two-level mixed-criticality system.

    Attributes:
        name: String that identifies the task inside its belonging TaskSet.
        phase: Release time of the task's first job.
        period: Time that passes between two job releases for this task.
        wcet: Worst-case execution time.
        deadline: Relative deadline, job execution has to be completed before this amount of time since release has
            passed.
        criticality: String of either 'LO' or 'HI'.
        virtual_deadline: Relative deadline used for EDF-VD dispatching. Equals deadline for LO-critical tasks, and
            deadline * x for HI-critical tasks. Assigned by the TaskSet on its own copy.
        job_count: Number of job releases inside the TaskSet's hyperperiod. Assigned by the TaskSet.
        task_index: Position of the task in its TaskSet (declaration order). Assigned by the TaskSet.
    """
    def __init__(self,
                 name,
                 phase,
                 period,
                 wcet,
                 deadline=None,
                 criticality='LO'):
        self.name = name
        self.phase = phase
        self.period = period
        self.wcet = wcet
        self.deadline = period if deadline is None else deadline
        self.criticality = criticality
        self.virtual_deadline = self.deadline
        self.job_count = 0
        self.task_index = None

    @property
    def u(self):
        """Task utilization."""
        return self.wcet / self.period

    @property
    def description(self):
        return ('Task: {0}, {1}, O: {2}, T: {3}, C: {4}, D: {5}, VD: {6}'
                .format(self.name, self.criticality, self.phase, self.period, self.wcet, self.deadline,
                        round(self.virtual_deadline, 3)))

    def __repr__(self):
        return 'Task({0!r})'.format(self.name)


class TaskSet(object):
    """Set of periodic mixed-criticality tasks.

    TaskSet acts as a container class for the Task class introduced above. Building a TaskSet computes its hyperperiod,
    the number of jobs of every task within it and the EDF-VD virtual deadlines. The set keeps shallow copies of
    the given tasks and stores these derived values on the copies, so the same Task objects can be shared by several
    task sets.

    Attributes:
        set_id: Identifier of the task set.
        tasks: Copies of the tasks contained in this task set, in declaration order.
        hyperperiod: Least common multiple over all (integer-rounded) task periods.
        x: EDF-VD deadline scaling factor, in interval (0, 1].
    """
    def __init__(self, set_id, tasks: [Task]):
        self.set_id = set_id
        self.tasks = [copy.copy(task) for task in tasks]
        for idx, task in enumerate(self.tasks):
            task.task_index = idx

        self.hyperperiod = hyperperiod(self.tasks)
        for task in self.tasks:
            task.job_count = job_count(task, self.hyperperiod)

        self.x = scaling_factor(self.u_hi, self.u_lo)
        for task in self.tasks:
            task.virtual_deadline = task.deadline * self.x if task.criticality == 'HI' else task.deadline

    @property
    def n_lo(self):
        """Number of LO-criticality tasks."""
        return len([t for t in self.tasks if t.criticality == 'LO'])

    @property
    def n_hi(self):
        """Number of HI-criticality tasks."""
        return len([t for t in self.tasks if t.criticality == 'HI'])

    @property
    def u_lo(self):
        """Total utilization of the LO-criticality tasks."""
        return utilizations(self.tasks)[1]

    @property
    def u_hi(self):
        """Total utilization of the HI-criticality tasks."""
        return utilizations(self.tasks)[0]

    @property
    def description(self):
        """A short descriptive string about this task set. Can be used for plotting."""
        return "Task Set {0}: #Tasks LO/HI: ({1}/{2})  Utils LO/HI: ({3}/{4})  H: {5}  x: {6}".format(
            self.set_id, self.n_lo, self.n_hi, round(self.u_lo, 3), round(self.u_hi, 3), self.hyperperiod,
            round(self.x, 3))

    def build_jobs(self, exec_times, max_jobs=None):
        """Expands every task into its job instances over one hyperperiod.

        Args:
            exec_times: One sequence of actual execution times per task, in declaration order. The sequence of a task
                must hold at least task.job_count values; surplus values are ignored.
            max_jobs: Optional upper bound on the number of jobs. None means unbounded.

        Returns:
            A list of Job objects, ordered by task declaration order and job id. Jobs with an execution time of 0 are
            returned as already finished, with start and finish set to their release time.

        Raises:
            InputError: If an execution time sequence is missing, too short or holds a negative or non-finite value.
            CapacityError: If more than max_jobs jobs would be created.
        """
        if len(exec_times) < len(self.tasks):
            raise InputError('Execution times given for {0} task(s), but the task set has {1}.'
                             .format(len(exec_times), len(self.tasks)))
        elif len(exec_times) > len(self.tasks):
            logger.warning('Ignoring execution times of %d surplus task(s).', len(exec_times) - len(self.tasks))

        jobs = []
        for task, times in zip(self.tasks, exec_times):
            times = list(times)
            if len(times) < task.job_count:
                raise InputError('Task {0} needs {1} execution time(s), only {2} given.'
                                 .format(task.name, task.job_count, len(times)))
            elif len(times) > task.job_count:
                logger.warning('Task %s: ignoring %d surplus execution time(s).',
                               task.name, len(times) - task.job_count)

            for job_id in range(task.job_count):
                release = task.phase + job_id * task.period
                if release >= self.hyperperiod:
                    break
                if not math.isfinite(times[job_id]) or times[job_id] < 0:
                    raise InputError('Task {0}, job {1}: invalid execution time {2}.'
                                     .format(task.name, job_id, times[job_id]))
                if max_jobs is not None and len(jobs) >= max_jobs:
                    raise CapacityError('More than {0} jobs in one hyperperiod.'.format(max_jobs))
                jobs.append(Job(task, job_id, release, times[job_id]))
        return jobs


class Job(object):
    """Container for one task instance.

    Only the scheduling engine changes remaining, start, finish and finished; all other attributes stay fixed after
    instantiation.

    Attributes:
        task: Reference to the generating task.
        job_id: Index of the job among all jobs of its task (0-based).
        release: Release (arrival) time, phase + job_id * period.
        abs_deadline: Absolute real deadline, used to judge feasibility.
        virtual_deadline: Absolute virtual deadline, used for EDF-VD dispatching.
        exec_time: Actual execution time of this job.
        remaining: Execution time still needed.
        start: Time of first dispatch, None before.
        finish: Time of completion, None before.
        finished: True once the job has completed.
    """
    def __init__(self, task: Task, job_id, release, exec_time):
        self.task = task
        self.job_id = job_id
        self.release = release
        self.abs_deadline = release + task.deadline
        self.virtual_deadline = release + task.virtual_deadline
        self.exec_time = exec_time
        self.remaining = exec_time
        self.start = None
        self.finish = None
        self.finished = False
        if exec_time == 0:
            self.start = self.finish = release
            self.finished = True

    @property
    def task_index(self):
        return self.task.task_index

    @property
    def key(self):
        """Identity of the job, (task_index, job_id)."""
        return self.task.task_index, self.job_id

    @property
    def priority_key(self):
        """EDF-VD dispatch order: earliest virtual deadline first, ties by declaration order and job id."""
        return self.virtual_deadline, self.task.task_index, self.job_id

    def is_active(self, t):
        return not self.finished and self.release <= t and self.remaining > 0

    @property
    def wait_time(self):
        return None if self.start is None else self.start - self.release

    @property
    def response_time(self):
        return None if self.finish is None else self.finish - self.release

    @property
    def missed_deadline(self):
        """True if the job finished after its real deadline. Unfinished jobs return None."""
        return None if self.finish is None else self.finish > self.abs_deadline + EPSILON

    def __repr__(self):
        return '{0}#{1}'.format(self.task.name, self.job_id)


ScheduleSlice = collections.namedtuple('ScheduleSlice', ['start', 'end', 'job'])
ScheduleSlice.__doc__ = """One uninterrupted span [start, end) of the schedule, during which job was running."""


########################
# Hyperperiod Analysis #
########################

def lcm(numbers: [int]):
    """Least common multiple."""
    def lcm2(a, b):
        if a < 1 or b < 1:
            raise InputError('LCM is only defined for positive periods, got {0} and {1}.'.format(a, b))
        return (a * b) // math.gcd(a, b)
    return functools.reduce(lcm2, numbers, 1)


def integral_period(task: Task):
    """Returns the task's period rounded to an integer. Non-integer periods are reported, as the LCM becomes inexact."""
    if not math.isfinite(task.period):
        raise InputError('Period of task {0} is {1}, must be a finite number.'.format(task.name, task.period))
    period = int(round(task.period))
    if abs(task.period - period) > 1e-9:
        logger.warning('Period %s of task %s is not an integer, rounded to %d. Hyperperiod might be inaccurate.',
                       task.period, task.name, period)
    if period < 1:
        raise InputError('Period of task {0} is {1}, must be at least 1.'.format(task.name, task.period))
    return period


def hyperperiod(tasks: [Task]):
    """Least common multiple over all task periods. An empty task list yields a hyperperiod of 1."""
    return lcm([integral_period(task) for task in tasks])


def job_count(task: Task, hyperperiod):
    """Number of jobs the task releases in [0, hyperperiod)."""
    if task.phase >= hyperperiod:
        return 0
    return max(0, int(math.floor((hyperperiod - task.phase) / task.period)))


#######################
# Criticality Scaling #
#######################

def utilizations(tasks: [Task]):
    """Returns the tuple (U_high, U_low) of total HI- and LO-criticality utilization."""
    u_high = sum([task.u for task in tasks if task.criticality == 'HI'])
    u_low = sum([task.u for task in tasks if task.criticality == 'LO'])
    return u_high, u_low


def scaling_factor(u_high, u_low):
    """EDF-VD deadline scaling factor x = U_high / (1 - U_low), restricted to the interval (0, 1].

    Infeasible parameters are reported as warnings only, the simulation is supposed to go on and expose the resulting
    deadline misses.
    """
    if u_high > 1:
        logger.warning('HI-criticality utilization %.3f exceeds 1, task set is not schedulable.', u_high)

    if u_low >= 1:
        logger.warning('LO-criticality utilization %.3f leaves no room for scaling, using x = 1.', u_low)
        return 1.

    x = u_high / (1 - u_low)
    if x > 1:
        logger.warning('Scaling factor %.3f clamped to 1, task set is likely infeasible.', x)
        return 1.
    elif x <= 0:  # no HI-criticality utilization, x has no effect
        return 1.
    return x
