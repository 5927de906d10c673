"""
This module reads task and execution time files and writes schedule and analysis reports. All file I/O of a simulation
run happens here, before the engine starts or after it has finished.

Task file format: the number of tasks N, followed by N records 'name phase period wcet deadline crit', where crit is
one of H, HI, L or LO. Blank lines and lines starting with '#' are ignored.

Execution time file format: whitespace-separated numbers. For every task in declaration order, the next job_count
numbers are the actual execution times of its jobs (one line per task by convention).
"""

import logging
import math

from edfvdsim.lib import Task, TaskSet, ScheduleSlice, InputError

logger = logging.getLogger(__name__)

CRITICALITIES = {'H': 'HI', 'HI': 'HI', 'L': 'LO', 'LO': 'LO'}


###########
# Readers #
###########

def _tokens(path):
    """All whitespace-separated tokens of a file, skipping comment lines."""
    try:
        with open(path) as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise InputError('Cannot read {0}: {1}'.format(path, e))
    return [tok for line in lines if not line.lstrip().startswith('#') for tok in line.split()]


def _number(token, what):
    try:
        value = float(token)
    except ValueError:
        raise InputError('{0}: expected a number, got {1!r}.'.format(what, token))
    if not math.isfinite(value):
        raise InputError('{0}: expected a finite number, got {1!r}.'.format(what, token))
    return value


def parse_task(fields):
    """Builds a Task from the six fields of a task record."""
    name, phase, period, wcet, deadline, crit = fields
    phase = _number(phase, 'Task %s phase' % name)
    period = _number(period, 'Task %s period' % name)
    wcet = _number(wcet, 'Task %s wcet' % name)
    deadline = _number(deadline, 'Task %s deadline' % name)
    if crit.upper() not in CRITICALITIES:
        raise InputError('Task {0}: unknown criticality {1!r}.'.format(name, crit))
    if phase < 0:
        raise InputError('Task {0}: phase must not be negative.'.format(name))
    if period <= 0 or wcet <= 0 or deadline <= 0:
        raise InputError('Task {0}: period, wcet and deadline must be positive.'.format(name))
    return Task(name=name, phase=phase, period=period, wcet=wcet, deadline=deadline,
                criticality=CRITICALITIES[crit.upper()])


def read_task_file(path, set_id=0) -> TaskSet:
    """Reads a task file and returns the corresponding TaskSet (hyperperiod and virtual deadlines computed).

    Raises:
        InputError: If the file is missing, malformed, or holds a different number of records than announced.
    """
    tokens = _tokens(path)
    if not tokens:
        raise InputError('Task file {0} is empty.'.format(path))
    try:
        n = int(tokens[0])
    except ValueError:
        raise InputError('Task file {0}: first entry must be the number of tasks, got {1!r}.'.format(path, tokens[0]))
    fields = tokens[1:]
    if len(fields) != 6 * n:
        raise InputError('Task file {0}: expected {1} task record(s) of 6 fields, found {2} field(s).'
                         .format(path, n, len(fields)))
    tasks = [parse_task(fields[6 * i:6 * (i + 1)]) for i in range(n)]
    logger.info('Parsed %d task(s) from %s.', len(tasks), path)
    return TaskSet(set_id, tasks)


def read_exec_times_file(path, task_set: TaskSet):
    """Reads the actual execution times of all jobs in task_set's hyperperiod.

    Returns:
        A list with one list of task.job_count execution times per task, in declaration order.

    Raises:
        InputError: If the file is missing, holds non-numeric, non-finite or negative values, or too few values.
    """
    values = [_number(tok, 'Execution time file %s' % path) for tok in _tokens(path)]
    exec_times = []
    pos = 0
    for task in task_set.tasks:
        times = values[pos:pos + task.job_count]
        if len(times) < task.job_count:
            raise InputError('Execution time file {0}: task {1} needs {2} value(s), only {3} left.'
                             .format(path, task.name, task.job_count, len(times)))
        for job_id, c in enumerate(times):
            if c < 0:
                raise InputError('Execution time file {0}: task {1}, job {2} has negative execution time {3}.'
                                 .format(path, task.name, job_id, c))
        exec_times.append(times)
        pos += task.job_count
    if pos < len(values):
        logger.warning('Execution time file %s: ignoring %d surplus value(s).', path, len(values) - pos)
    return exec_times


###########
# Writers #
###########

def write_task_file(path, task_set: TaskSet):
    with open(path, 'w') as f:
        f.write('%d\n' % len(task_set.tasks))
        for t in task_set.tasks:
            f.write('%s %g %g %g %g %s\n' % (t.name, t.phase, t.period, t.wcet, t.deadline, t.criticality[0]))


def write_exec_times_file(path, exec_times):
    with open(path, 'w') as f:
        for times in exec_times:
            f.write(' '.join('%g' % c for c in times) + '\n')


def write_schedule(path, slices: [ScheduleSlice]):
    """Writes one line per schedule slice."""
    with open(path, 'w') as f:
        f.write('EDF-VD Schedule from 0 to each event:\n')
        for s in slices:
            f.write('[%6.2f -> %6.2f]: Task=%s Job=%d\n' % (s.start, s.end, s.job.task.name, s.job.job_id))


def write_analysis(path, analysis, response_times=None):
    """Writes a ScheduleAnalysis as a flat key/value report.

    Args:
        path: Output file.
        analysis: ScheduleAnalysis namedtuple, see analysis.analyze_schedule().
        response_times: Optional mapping of task name to worst observed response time.
    """
    with open(path, 'w') as f:
        f.write('EDF-VD Schedule Analysis\n')
        f.write('========================\n')
        f.write('Number of Preemptions: %d\n' % analysis.preemptions)
        f.write('Average Waiting Time:  %.2f\n' % analysis.avg_wait)
        f.write('Average Response Time: %.2f\n' % analysis.avg_response)
        f.write('Number of Tasks:       %d\n' % analysis.n_tasks)
        f.write('Number of Jobs:        %d\n' % analysis.n_jobs)
        f.write('Finished Jobs:         %d\n' % analysis.n_finished)
        f.write('Unfinished Jobs:       %d\n' % analysis.n_unfinished)
        f.write('Preempted Jobs:        %d\n' % analysis.preempted_jobs)
        f.write('Deadline Misses:       %d\n' % analysis.deadline_misses)
        f.write('Busy Time:             %.2f\n' % analysis.busy_time)
        f.write('Utilization:           %.3f\n' % analysis.utilization)
        f.write('EDF-VD Test:           %s\n' % ('schedulable' if analysis.schedulable else 'not schedulable'))
        if response_times:
            f.write('\nWorst Response Time per Task\n')
            for name, r in response_times.items():
                f.write('%s: %s\n' % (name, '-' if r is None else '%.2f' % r))
