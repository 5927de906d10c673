"""
Scripts for running EDF-VD simulations from files, and for generating random simulation input.

Usage:
    edfvdsim run [tasks.txt] [exec_times.txt] [--schedule-out FILE] [--analysis-out FILE] [--plot FILE]
    edfvdsim generate [--util U] [--tasks-count N] [--seed S] tasks.txt exec_times.txt
"""

import argparse
import logging
import sys
from time import time

import numpy.random as nprd

from edfvdsim import analysis as ana
from edfvdsim import fileio
from edfvdsim import synthesis as synth
from edfvdsim.lib import SimulationError
from edfvdsim.simulation import simulate

logger = logging.getLogger(__name__)


##############
# Parameters #
##############

task_file = 'tasks.txt'
exec_times_file = 'exec_times.txt'
schedule_out = 'schedule_output.txt'
analysis_out = 'schedule_analysis.txt'

gen_util = 0.7
gen_n_tasks = 5
gen_cp = 0.5
gen_bcet_ratio = 0.5


###########
# Scripts #
###########

def run_simulation(task_path=task_file, exec_path=exec_times_file,
                   schedule_path=schedule_out, analysis_path=analysis_out, plot_path=None):
    """Reads the input files, simulates one hyperperiod and writes schedule and analysis.

    Nothing is written if the input cannot be read or the job set cannot be built.

    Returns:
        The ScheduleAnalysis of the run.

    Raises:
        SimulationError: On input errors or violated engine invariants.
    """
    start = time()
    task_set = fileio.read_task_file(task_path)
    print(task_set.description)
    exec_times = fileio.read_exec_times_file(exec_path, task_set)

    jobs, slices = simulate(task_set, exec_times)
    result = ana.analyze_schedule(task_set, jobs, slices)

    fileio.write_schedule(schedule_path, slices)
    print('Schedule written to %s.' % schedule_path)
    fileio.write_analysis(analysis_path, result, ana.task_response_times(task_set, jobs))
    print('Analysis written to %s.' % analysis_path)
    if plot_path is not None:
        ana.plot_schedule(task_set, slices, jobs=jobs, path=plot_path)
        print('Gantt chart written to %s.' % plot_path)
    print('Simulation: %.3fs' % (time() - start))
    return result


def generate_input(task_path, exec_path, util=gen_util, n_tasks=gen_n_tasks, cp=gen_cp,
                   bcet_ratio=gen_bcet_ratio, seed=None):
    """Generates a random task set with matching execution times and saves both to disk."""
    if seed is not None:
        nprd.seed(seed)
    task_set = synth.simplegen(0, u=util, cp=cp, n_tasks=n_tasks)
    exec_times = synth.synth_exec_times(task_set, bcet_ratio=bcet_ratio)
    fileio.write_task_file(task_path, task_set)
    fileio.write_exec_times_file(exec_path, exec_times)
    print(task_set.description)
    print('%d task(s) written to %s, %d execution time(s) written to %s.'
          % (len(task_set.tasks), task_path, synth.n_jobs(task_set), exec_path))
    return task_set, exec_times


#################
# Main Function #
#################

def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='edfvdsim', description='Offline EDF-VD schedule simulation.')
    parser.add_argument('--verbose', action='store_true', default=False, help='Log every scheduling decision.')
    sub = parser.add_subparsers(dest='command')
    sub.required = True

    run = sub.add_parser('run', help='Simulate one hyperperiod.')
    run.add_argument('tasks', nargs='?', default=task_file, help='Task file.')
    run.add_argument('exec_times', nargs='?', default=exec_times_file, help='Execution time file.')
    run.add_argument('--schedule-out', default=schedule_out, help='Schedule output file.')
    run.add_argument('--analysis-out', default=analysis_out, help='Analysis output file.')
    run.add_argument('--plot', default=None, help='Save a Gantt chart of the schedule to this image file.')

    gen = sub.add_parser('generate', help='Generate a random task set and execution times.')
    gen.add_argument('tasks', help='Task file to write.')
    gen.add_argument('exec_times', help='Execution time file to write.')
    gen.add_argument('--util', type=float, default=gen_util, help='Total utilization.')
    gen.add_argument('--tasks-count', dest='n_tasks', type=int, default=gen_n_tasks, help='Number of tasks.')
    gen.add_argument('--cp', type=float, default=gen_cp, help='Probability of a task being HI-critical.')
    gen.add_argument('--bcet-ratio', type=float, default=gen_bcet_ratio,
                     help='Lower bound of execution times relative to the WCET.')
    gen.add_argument('--seed', type=int, default=None, help='Random seed.')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s %(name)s: %(message)s')
    try:
        if args.command == 'run':
            run_simulation(args.tasks, args.exec_times, args.schedule_out, args.analysis_out, args.plot)
        else:
            generate_input(args.tasks, args.exec_times, util=args.util, n_tasks=args.n_tasks, cp=args.cp,
                           bcet_ratio=args.bcet_ratio, seed=args.seed)
    except SimulationError as e:
        logger.error('%s: %s', type(e).__name__, e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
