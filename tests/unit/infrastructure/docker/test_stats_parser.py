from orqos.infrastructure.docker.stats_parser import parse_stats
from utils.docker_fakes import stats_payload


def test_parses_counters_and_memory():
    reading = parse_stats("c1", stats_payload(200, 1_000, cpus=4, memory=4096))
    assert reading == {
        "cpu_total_usage": 200,
        "system_cpu_usage": 1_000,
        "online_cpus": 4,
        "memory_usage": 4096,
    }


def test_missing_cpu_counters_are_rejected():
    payload = stats_payload(200, 1_000)
    del payload["cpu_stats"]["system_cpu_usage"]
    assert parse_stats("c1", payload) is None
    assert parse_stats("c1", {}) is None


def test_core_count_falls_back_to_percpu_then_one():
    payload = stats_payload(1, 1, cpus=None)
    payload["cpu_stats"]["cpu_usage"]["percpu_usage"] = [1, 2, 3]
    assert parse_stats("c1", payload)["online_cpus"] == 3

    assert parse_stats("c1", stats_payload(1, 1, cpus=None))["online_cpus"] == 1
    assert parse_stats("c1", stats_payload(1, 1, cpus=0))["online_cpus"] == 1


def test_missing_memory_defaults_to_zero():
    assert parse_stats("c1", stats_payload(1, 1, memory=None))["memory_usage"] == 0


def test_non_numeric_counters_are_rejected():
    payload = stats_payload(1, 1)
    payload["cpu_stats"]["cpu_usage"]["total_usage"] = "lots"
    assert parse_stats("c1", payload) is None

    payload = stats_payload(1, 1)
    payload["cpu_stats"]["system_cpu_usage"] = True
    assert parse_stats("c1", payload) is None
