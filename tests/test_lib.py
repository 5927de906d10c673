import logging

import pytest

from edfvdsim.lib import Task, TaskSet, Job, InputError, CapacityError, \
    lcm, hyperperiod, job_count, utilizations, scaling_factor
from edfvdsim.synthesis import dummy_taskset


def test_lcm():
    assert lcm([4, 6]) == 12
    assert lcm([5, 10, 20, 25]) == 100
    assert lcm([7]) == 7
    assert lcm([]) == 1


def test_lcm_rejects_non_positive():
    with pytest.raises(InputError):
        lcm([0, 3])
    with pytest.raises(InputError):
        lcm([4, -2])


def test_hyperperiod_independent_of_order():
    tasks = [Task('A', 0, 4, 1), Task('B', 0, 6, 1), Task('C', 0, 10, 1)]
    assert hyperperiod(tasks) == 60
    assert hyperperiod(list(reversed(tasks))) == 60
    assert hyperperiod([tasks[1], tasks[2], tasks[0]]) == 60


def test_empty_task_set_has_unit_hyperperiod():
    assert TaskSet(0, []).hyperperiod == 1


def test_non_integer_period_is_rounded_with_warning(caplog):
    with caplog.at_level(logging.WARNING):
        task_set = TaskSet(0, [Task('A', 0, 4.2, 1), Task('B', 0, 6, 1)])
    assert task_set.hyperperiod == 12
    assert any('not an integer' in r.getMessage() for r in caplog.records)


def test_period_below_one_is_an_input_error():
    with pytest.raises(InputError):
        TaskSet(0, [Task('A', 0, 0.3, 0.1)])


def test_job_count():
    assert job_count(Task('A', 0, 5, 1), 10) == 2
    assert job_count(Task('A', 2, 5, 1), 10) == 1
    assert job_count(Task('A', 10, 5, 1), 10) == 0
    assert job_count(Task('A', 12, 5, 1), 10) == 0


def test_utilizations():
    u_high, u_low = utilizations(dummy_taskset().tasks)
    assert u_high == pytest.approx(0.4)
    assert u_low == pytest.approx(0.3)


def test_scaling_factor():
    assert scaling_factor(0.4, 0.3) == pytest.approx(0.4 / 0.7)
    assert scaling_factor(0.9, 0.5) == 1.
    assert scaling_factor(1.2, 0.2) == 1.
    assert scaling_factor(0.3, 1.0) == 1.
    assert scaling_factor(0., 0.5) == 1.


@pytest.mark.parametrize('u_high', [0., 0.01, 0.3, 0.7, 0.99, 1.0, 1.5])
@pytest.mark.parametrize('u_low', [0., 0.2, 0.5, 0.99, 1.0, 2.0])
def test_scaling_factor_range(u_high, u_low):
    x = scaling_factor(u_high, u_low)
    assert 0 < x <= 1


def test_infeasible_hi_utilization_is_a_warning(caplog):
    with caplog.at_level(logging.WARNING):
        task_set = TaskSet(0, [Task('A', 0, 4, 3, criticality='HI'), Task('B', 0, 4, 2, criticality='HI')])
    assert task_set.x == 1.
    assert any('exceeds 1' in r.getMessage() for r in caplog.records)


def test_virtual_deadlines():
    task_set = dummy_taskset()
    t1, t2 = task_set.tasks
    assert task_set.x == pytest.approx(0.4 / 0.7)
    assert t1.virtual_deadline == pytest.approx(5 * 0.4 / 0.7)
    assert t1.virtual_deadline < t1.deadline
    assert t2.virtual_deadline == t2.deadline


def test_task_indices_follow_declaration_order():
    task_set = dummy_taskset()
    assert [t.task_index for t in task_set.tasks] == [0, 1]
    assert task_set.n_hi == 1
    assert task_set.n_lo == 1


def test_build_jobs():
    task_set = dummy_taskset()
    jobs = task_set.build_jobs([[2, 1.5], [3]])
    assert [(j.task.name, j.job_id) for j in jobs] == [('T1', 0), ('T1', 1), ('T2', 0)]
    second = jobs[1]
    assert second.release == 5
    assert second.abs_deadline == 10
    assert second.virtual_deadline == pytest.approx(5 + 5 * 0.4 / 0.7)
    assert second.exec_time == 1.5
    assert second.remaining == 1.5
    assert second.start is None and second.finish is None
    assert not second.finished


def test_build_jobs_respects_phase():
    task_set = TaskSet(0, [Task('A', 3, 5, 1), Task('B', 0, 10, 1)])
    jobs = task_set.build_jobs([[1], [1]])
    assert [j.release for j in jobs] == [3, 0]


def test_build_jobs_too_few_exec_times():
    with pytest.raises(InputError):
        dummy_taskset().build_jobs([[2], [3]])
    with pytest.raises(InputError):
        dummy_taskset().build_jobs([[2, 2]])


def test_build_jobs_negative_exec_time():
    with pytest.raises(InputError):
        dummy_taskset().build_jobs([[2, -1], [3]])


def test_build_jobs_ignores_surplus_exec_times():
    jobs = dummy_taskset().build_jobs([[2, 2, 2], [3, 3]])
    assert len(jobs) == 3


def test_zero_exec_time_job_is_finished_at_release():
    jobs = dummy_taskset().build_jobs([[2, 0], [3]])
    job = jobs[1]
    assert job.finished
    assert job.start == job.finish == job.release == 5
    assert job.wait_time == 0 and job.response_time == 0
    assert not job.is_active(5)


def test_build_jobs_capacity():
    with pytest.raises(CapacityError):
        dummy_taskset().build_jobs([[2, 2], [3]], max_jobs=2)


def test_job_activity():
    task = TaskSet(0, [Task('A', 2, 5, 1)]).tasks[0]
    job = Job(task, 0, 2, 1)
    assert not job.is_active(1)
    assert job.is_active(2)
    job.finished = True
    assert not job.is_active(3)
    assert job.key == (0, 0)


@pytest.mark.parametrize('period', [float('nan'), float('inf')])
def test_non_finite_period_is_an_input_error(period):
    with pytest.raises(InputError):
        TaskSet(0, [Task('A', 0, period, 1)])


@pytest.mark.parametrize('exec_time', [float('nan'), float('inf')])
def test_build_jobs_non_finite_exec_time(exec_time):
    with pytest.raises(InputError):
        dummy_taskset().build_jobs([[2, exec_time], [3]])


def test_finish_on_deadline_is_not_a_miss():
    task = TaskSet(0, [Task('A', 0, 5, 1)]).tasks[0]
    job = Job(task, 0, 0, 1)
    job.finish = 5 + 1e-12
    assert not job.missed_deadline
    job.finish = 5.1
    assert job.missed_deadline


def test_task_set_leaves_given_tasks_untouched():
    a = Task('A', 0, 4, 1, criticality='HI')
    b = Task('B', 0, 6, 1)
    task_set = TaskSet(0, [b, a])
    assert task_set.tasks[1].task_index == 1
    assert task_set.tasks[0].job_count == 2
    assert a.task_index is None
    assert a.job_count == 0
    assert a.virtual_deadline == a.deadline
