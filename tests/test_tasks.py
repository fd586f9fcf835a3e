import pytest

from dsvc.tasks import Task, TaskBucket, classify, settled_ids


@pytest.mark.parametrize(
    "state,bucket",
    [
        ("new", TaskBucket.UNSETTLED),
        ("pending", TaskBucket.UNSETTLED),
        ("running", TaskBucket.RUNNING),
        ("failed", TaskBucket.FAILURE),
        ("rejected", TaskBucket.FAILURE),
        ("assigned", TaskBucket.OTHER),
        ("shutdown", TaskBucket.OTHER),
        ("orphaned", TaskBucket.OTHER),
    ],
)
def test_classify(state, bucket):
    assert classify(state) is bucket


def test_from_api_defaults():
    t = Task.from_api({"ID": "t9", "Status": {"State": "Running", "Err": ""}})
    assert t == Task(id="t9", state="running", error=None)
    assert Task.from_api({"ID": "t0"}).state == "new"


def test_settled_ids_skip_new_and_pending():
    tasks = [Task("a", "running"), Task("b", "pending"), Task("c", "new"), Task("d", "shutdown")]
    assert settled_ids(tasks) == frozenset({"a", "d"})
