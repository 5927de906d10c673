"""
This module contains the discrete-event EDF-VD scheduling engine. It replays one hyperperiod of a task set on a single
processor and records the resulting schedule as a list of slices. It makes use of the classes defined in module lib.
"""

import logging

from edfvdsim.lib import TaskSet, Job, ScheduleSlice, InternalError, CapacityError, EPSILON

logger = logging.getLogger(__name__)


class EdfVdSim(object):
    """EDF-VD simulation object.

    Offers a container holding the complete state of one simulation run. The simulation advances from one decision
    point (a job release or a job completion) to the next. At every decision point, the active job with the earliest
    virtual deadline is dispatched; ties are broken by task declaration order, then by job id.

    Attributes:
        task_set: The TaskSet object to be simulated.
        jobs: List of all Job objects of one hyperperiod, as built by TaskSet.build_jobs(). They are mutated in place.
        hyperperiod: End of the simulation.
        t: Current simulation time.
        running: The job dispatched at the last decision point, or None before the first dispatch.
        slices: List of ScheduleSlice namedtuples, ordered by time.
        max_slices: Optional upper bound on the number of slices. None means unbounded.
    """

    def __init__(self, task_set: TaskSet, jobs: [Job], max_slices=None):
        self.task_set = task_set
        self.jobs = jobs
        self.hyperperiod = task_set.hyperperiod
        self.t = 0
        self.running = None
        self.slices = []
        self.max_slices = max_slices

    def active_jobs(self):
        """All jobs released up to now, which are neither finished nor out of remaining execution time."""
        return [job for job in self.jobs if job.is_active(self.t)]

    def next_release(self):
        """Earliest release strictly after the current time among unfinished jobs, or None."""
        releases = [job.release for job in self.jobs if not job.finished and job.release > self.t]
        return min(releases) if releases else None

    def select(self, candidates: [Job]):
        """Picks the job with the smallest (virtual deadline, task index, job id) among candidates."""
        chosen = None
        for job in candidates:
            if chosen is None or job.priority_key < chosen.priority_key:
                chosen = job
        if chosen is None:
            raise InternalError('No job selectable at t={0} (active: {1}, running: {2}, slices: {3}).'
                                .format(self.t, candidates, self.running, len(self.slices)))
        return chosen

    def step(self):
        """Advance the model to the next decision point.

        Returns:
            False if the simulation is complete, i.e. the hyperperiod has been reached or no job can make progress
            anymore; else True.
        """
        if self.t >= self.hyperperiod:
            return False

        active = self.active_jobs()
        if not active:
            next_rel = self.next_release()
            if next_rel is None or next_rel >= self.hyperperiod:
                return False
            logger.debug('t=%g: idle until %g', self.t, next_rel)
            self.t = next_rel  # Idle time is not recorded as a slice
            return True

        job = self.select(active)
        next_rel = self.next_release()
        if next_rel is None:
            next_rel = self.hyperperiod
        completion = self.t + job.remaining
        t_next = min(next_rel, completion)

        if job is not self.running:
            if self.max_slices is not None and len(self.slices) >= self.max_slices:
                raise CapacityError('More than {0} schedule slices at t={1}.'.format(self.max_slices, self.t))
            logger.debug('t=%g: dispatch %r (virtual deadline %g)', self.t, job, job.virtual_deadline)
            self.slices.append(ScheduleSlice(self.t, t_next, job))
            self.running = job
        else:
            self.slices[-1] = self.slices[-1]._replace(end=t_next)

        if job.start is None:
            job.start = self.t
        job.remaining -= t_next - self.t
        self.t = t_next

        if completion <= t_next or job.remaining <= EPSILON:
            job.remaining = 0
            job.finished = True
            job.finish = self.t
            logger.debug('t=%g: %r finished', self.t, job)
        return True

    def run(self):
        """Run the simulation until completion. Returns the list of schedule slices."""
        while self.step():
            pass
        unfinished = len([job for job in self.jobs if not job.finished])
        if unfinished:
            logger.info('%d job(s) unfinished at the end of the hyperperiod (t=%g).', unfinished, self.t)
        return self.slices


def simulate(task_set: TaskSet, exec_times, max_jobs=None, max_slices=None):
    """Instantiates a fresh set of jobs and simulates one hyperperiod of task_set under EDF-VD.

    Args:
        task_set: The task set in consideration.
        exec_times: One sequence of actual execution times per task, see TaskSet.build_jobs().
        max_jobs: Optional upper bound on the number of jobs.
        max_slices: Optional upper bound on the number of schedule slices.

    Returns:
        jobs: List of all jobs, with start and finish times set.
        slices: List of ScheduleSlice namedtuples.
    """
    jobs = task_set.build_jobs(exec_times, max_jobs=max_jobs)
    sim = EdfVdSim(task_set, jobs, max_slices=max_slices)
    return jobs, sim.run()
