"""Tests for the backup status label memory."""

import threading

from pbm_exporter.engine.labels import LabelMemory


def test_observe_and_known_statuses():
    labels = LabelMemory()
    labels.observe("done")
    labels.observe("error")
    labels.observe("done")
    assert labels.known_statuses() == frozenset({"done", "error"})
    assert len(labels) == 2


def test_known_statuses_is_a_snapshot():
    labels = LabelMemory()
    labels.observe("done")
    snapshot = labels.known_statuses()
    labels.observe("running")
    assert snapshot == frozenset({"done"})


def test_concurrent_observe():
    labels = LabelMemory()

    def worker(prefix: str):
        for i in range(200):
            labels.observe(f"{prefix}-{i % 50}")

    threads = [threading.Thread(target=worker, args=(p,)) for p in ("a", "b", "c", "d")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(labels) == 200
