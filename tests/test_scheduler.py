import threading

import pytest

from tutorsync.scheduler import SyncScheduler


class StubReconciler:
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail
        self.called = threading.Event()

    def run_all(self):
        self.calls += 1
        self.called.set()
        if self.fail:
            raise RuntimeError("store unavailable")
        return ["result"]


def test_run_once_passes_results_to_callback():
    got = []
    scheduler = SyncScheduler(StubReconciler(), interval=60, on_results=got.append)

    assert scheduler.run_once() == ["result"]
    assert got == [["result"]]
    assert scheduler.ticks == 1


def test_loop_errors_and_callback_errors_are_contained():
    def bad_callback(results):
        raise ValueError("printer jammed")

    assert SyncScheduler(StubReconciler(fail=True), interval=60).run_once() == []
    assert SyncScheduler(StubReconciler(), interval=60, on_results=bad_callback).run_once() == ["result"]


def test_start_runs_immediately_then_stops():
    reconciler = StubReconciler()
    scheduler = SyncScheduler(reconciler, interval=60)

    scheduler.start()
    try:
        assert reconciler.called.wait(5)
        assert scheduler.running
    finally:
        scheduler.stop()

    assert not scheduler.running
    assert reconciler.calls == 1


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        SyncScheduler(StubReconciler(), interval=0)
