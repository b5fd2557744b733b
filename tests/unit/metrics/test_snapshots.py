from orqos.metrics.snapshots import CpuSnapshot, SnapshotTracker, cpu_fraction


def test_first_observation_yields_zero_and_stores_baseline():
    tracker = SnapshotTracker()
    assert tracker.observe("c1", 1_000, 10_000, 4) == 0.0
    assert tracker.get("c1") == CpuSnapshot(total_usage=1_000, system_usage=10_000)


def test_fraction_scales_with_online_cpus():
    tracker = SnapshotTracker()
    tracker.observe("c1", 0, 0, 2)
    # 50 / 100 of host time across 2 cores => one full core
    assert tracker.observe("c1", 50, 100, 2) == 1.0


def test_stalled_system_counter_yields_zero():
    tracker = SnapshotTracker()
    tracker.observe("c1", 100, 1_000, 1)
    assert tracker.observe("c1", 200, 1_000, 1) == 0.0


def test_counter_reset_yields_zero_and_rebaselines():
    tracker = SnapshotTracker()
    tracker.observe("c1", 5_000, 50_000, 1)
    assert tracker.observe("c1", 10, 60_000, 1) == 0.0
    assert tracker.get("c1") == CpuSnapshot(total_usage=10, system_usage=60_000)
    # next delta is measured from the reset values
    assert tracker.observe("c1", 110, 60_100, 1) == 1.0


def test_snapshot_is_always_overwritten():
    tracker = SnapshotTracker()
    tracker.observe("c1", 100, 1_000, 1)
    tracker.observe("c1", 100, 1_000, 1)
    assert tracker.get("c1") == CpuSnapshot(100, 1_000)


def test_zero_cores_are_treated_as_one():
    prev = CpuSnapshot(0, 0)
    assert cpu_fraction(prev, CpuSnapshot(10, 100), 0) == 0.1


def test_retain_drops_unlisted_containers():
    tracker = SnapshotTracker()
    tracker.observe("a", 1, 1, 1)
    tracker.observe("b", 1, 1, 1)
    assert tracker.retain(["a"]) == 1
    assert tracker.get("b") is None
    assert len(tracker) == 1


def test_two_snapshots_on_four_cores():
    tracker = SnapshotTracker()
    tracker.observe("c1", 1000, 10000, 4)
    # (500 / 1000) * 4
    assert tracker.observe("c1", 1500, 11000, 4) == 2.0
