import pytest

from automerge_action.models import Config, PRIdentity, Stop
from automerge_action.worker import evaluate_mergeability, process_item


TARGET = PRIdentity(owner="octo", repo="repo", number=10)


class GHBase:
    def __init__(self, mergeable=True, mergeable_state="clean"):
        self.calls = []
        self.pr = {
            "number": 10,
            "mergeable": mergeable,
            "mergeable_state": mergeable_state,
            "updated_at": "2024-01-01T00:00:00Z",
        }

    def get_pull(self, owner, repo, number):
        self.calls.append(("get_pull", number))
        return self.pr

    def approve_pull(self, owner, repo, number):
        self.calls.append(("approve", number))
        return {"state": "APPROVED"}

    def add_labels(self, owner, repo, number, labels):
        self.calls.append(("label", number, labels))
        return [{"name": l} for l in labels]

    def merge_pull(self, owner, repo, number, merge_method):
        self.calls.append(("merge", number, merge_method))
        return {"merged": True}


def test_gate_allows_only_true_and_clean():
    ok, reason, pr = evaluate_mergeability(GHBase(True, "clean"), TARGET)
    assert ok is True
    assert reason == "mergeable"
    assert pr.number == 10


@pytest.mark.parametrize(
    "mergeable,state",
    [
        (True, "dirty"),
        (True, "unknown"),
        (True, "behind"),
        (True, "blocked"),
        (True, "unstable"),
        (False, "clean"),
        (False, "dirty"),
        (None, "clean"),
        (None, "unknown"),
        (True, None),
    ],
)
def test_gate_blocks_everything_else(mergeable, state):
    ok, reason, _ = evaluate_mergeability(GHBase(mergeable, state), TARGET)
    assert ok is False
    assert reason.startswith("not_mergeable:")


def test_all_flags_unset_makes_no_calls():
    gh = GHBase()
    assert process_item(gh, Config(token="t"), TARGET) is None
    assert gh.calls == []


def test_steps_run_in_fixed_order():
    gh = GHBase()
    cfg = Config(token="t", approve=True, label="automerge", merge=True, merge_method="squash")
    assert process_item(gh, cfg, TARGET) is None
    assert gh.calls == [
        ("approve", 10),
        ("label", 10, ["automerge"]),
        ("get_pull", 10),
        ("merge", 10, "squash"),
    ]


def test_label_only():
    gh = GHBase()
    process_item(gh, Config(token="t", label="ready"), TARGET)
    assert gh.calls == [("label", 10, ["ready"])]


def test_merge_without_method_uses_remote_default():
    gh = GHBase()
    process_item(gh, Config(token="t", merge=True), TARGET)
    assert ("merge", 10, None) in gh.calls


def test_blocked_gate_stops_without_merging():
    gh = GHBase(mergeable=False, mergeable_state="dirty")
    stop = process_item(gh, Config(token="t", approve=True, merge=True), TARGET)
    assert isinstance(stop, Stop)
    assert stop.reason == "not_mergeable"
    assert gh.calls == [("approve", 10), ("get_pull", 10)]


def test_merge_error_propagates():
    class GHMergeConflict(GHBase):
        def merge_pull(self, owner, repo, number, merge_method):
            raise RuntimeError("Head branch was modified")

    with pytest.raises(RuntimeError):
        process_item(GHMergeConflict(), Config(token="t", merge=True), TARGET)


@pytest.mark.parametrize("mergeable", ["true", 1, "yes"])
def test_gate_requires_literal_true(mergeable):
    ok, reason, _ = evaluate_mergeability(GHBase(mergeable, "clean"), TARGET)
    assert ok is False
    assert reason.startswith("not_mergeable:")
