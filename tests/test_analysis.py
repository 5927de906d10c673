import matplotlib
matplotlib.use('Agg')

import pytest

from edfvdsim import analysis as ana
from edfvdsim.lib import Task, TaskSet
from edfvdsim.simulation import simulate
from edfvdsim.synthesis import dummy_taskset


def test_two_task_analysis():
    task_set = dummy_taskset()
    jobs, slices = simulate(task_set, [[2, 2], [3]])
    result = ana.analyze_schedule(task_set, jobs, slices)
    assert result.preemptions == 2
    assert result.avg_wait == pytest.approx(2. / 3.)
    assert result.avg_response == pytest.approx(3.)
    assert result.n_tasks == 2
    assert result.n_jobs == 3
    assert result.n_finished == 3
    assert result.n_unfinished == 0
    assert result.preempted_jobs == 0
    assert result.deadline_misses == 0
    assert result.busy_time == pytest.approx(7.)
    assert result.utilization == pytest.approx(0.7)
    assert result.schedulable


def test_single_task_analysis():
    task_set = TaskSet(0, [Task('T1', 0, 10, 3, 10, 'LO')])
    jobs, slices = simulate(task_set, [[3]])
    result = ana.analyze_schedule(task_set, jobs, slices)
    assert result.preemptions == 0
    assert result.avg_wait == 0
    assert result.avg_response == 3


def test_preempted_job_is_counted():
    task_set = TaskSet(0, [Task('T1', 0, 5, 2, 5, 'HI'), Task('T2', 0, 10, 4, 10, 'LO')])
    jobs, slices = simulate(task_set, [[2, 2], [4]])
    result = ana.analyze_schedule(task_set, jobs, slices)
    assert result.preemptions == 3
    assert result.preempted_jobs == 1
    assert [job.task.name for job in ana.preempted_jobs(slices)] == ['T2']
    assert ana.task_response_times(task_set, jobs) == {'T1': 2, 'T2': 8}


def test_overload_reports_unfinished_jobs():
    task_set = TaskSet(0, [Task('T1', 0, 4, 3, 4, 'HI'), Task('T2', 0, 4, 3, 4, 'LO')])
    jobs, slices = simulate(task_set, [[3], [3]])
    result = ana.analyze_schedule(task_set, jobs, slices)
    assert result.n_finished == 1
    assert result.n_unfinished == 1
    assert result.deadline_misses == 1
    assert result.avg_response == 3
    assert result.utilization == pytest.approx(1.)
    assert not result.schedulable


def test_late_finish_is_a_deadline_miss():
    # B's real deadline is 3, but the LO task A has the earlier deadline 2 and runs first
    task_set = TaskSet(0, [Task('A', 0, 10, 2, 2, 'LO'), Task('B', 0, 10, 2, 3, 'LO')])
    jobs, slices = simulate(task_set, [[2], [2]])
    result = ana.analyze_schedule(task_set, jobs, slices)
    assert jobs[1].missed_deadline
    assert result.deadline_misses == 1
    assert result.n_unfinished == 0


def test_no_finished_jobs():
    task_set = TaskSet(0, [Task('T1', 0, 5, 5, 5, 'LO')])
    jobs, slices = simulate(task_set, [[7]])
    result = ana.analyze_schedule(task_set, jobs, slices)
    assert result.avg_wait == 0
    assert result.avg_response == 0
    assert result.n_unfinished == 1
    assert ana.task_response_times(task_set, jobs) == {'T1': None}


def test_count_preemptions_empty():
    assert ana.count_preemptions([]) == 0


def test_d_edf_vd():
    assert ana.d_edf_vd(dummy_taskset())
    assert not ana.d_edf_vd(TaskSet(0, [Task('A', 0, 4, 4, 4, 'HI')]))
    assert not ana.d_edf_vd(TaskSet(0, [Task('A', 0, 4, 2, 4, 'HI'), Task('B', 0, 4, 3, 4, 'LO')]))
    assert ana.d_edf_vd(TaskSet(0, [Task('A', 0, 4, 1, 4, 'LO')]))
    assert ana.d_edf_vd(TaskSet(0, [Task('A', 0, 4, 2, 4, 'HI'), Task('B', 0, 4, 2, 4, 'LO')]))


def test_plot_schedule(tmp_path):
    task_set = dummy_taskset()
    jobs, slices = simulate(task_set, [[2, 2], [3]])
    path = tmp_path / 'schedule.png'
    ana.plot_schedule(task_set, slices, jobs=jobs, path=str(path))
    assert path.exists()
    assert path.stat().st_size > 0
