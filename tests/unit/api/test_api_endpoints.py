import io
import tarfile

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from orqos.api.dependencies import get_event_channel
from orqos.domain.errors import DaemonUnavailableError
from orqos.main import app
from orqos.metrics.registry import MetricRegistry
from orqos.realtime.broadcast import BroadcastChannel
from utils.docker_fakes import DummyDocker, FakeClock


class DummyTask:
    def __init__(self, finished: bool = False):
        self.finished = finished

    def done(self):
        return self.finished


class PrimedChannel(BroadcastChannel[str]):
    """Publishes one envelope as soon as somebody subscribes."""

    def subscribe(self):
        sub = super().subscribe()
        self.publish('{"Type": "container", "Action": "start"}')
        return sub


@pytest.fixture
def state():
    clock = FakeClock()
    registry = MetricRegistry(clock=clock)
    registry.record_cpu("abc", 1.0)
    registry.record_mem("abc", 2048)
    clock.advance(1)
    registry.record_cpu("abc", 3.0)
    registry.record_mem("abc", 1024)

    app.state.docker = DummyDocker()
    app.state.registry = registry
    app.state.channel = BroadcastChannel[str]()
    app.state.tasks = [DummyTask(), DummyTask()]
    yield app.state
    app.dependency_overrides.clear()


@pytest.fixture
def client(state):
    return TestClient(app)


def test_health_ready(client):
    assert client.get("/healthz").status_code == 200
    assert client.get("/readyz").json() == {"status": "ready"}


def test_healthz_reports_unreachable_daemon(client, state):
    state.docker.ping_error = DaemonUnavailableError("socket refused")
    resp = client.get("/healthz")
    assert resp.status_code == 503
    assert "socket refused" in resp.text


def test_readyz_not_ready_when_a_task_died(client, state):
    state.tasks[1].finished = True
    assert client.get("/readyz").status_code == 503


def test_prometheus_exposition_includes_container_gauges(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert 'rezn_cpu_usage_avg10{container="abc"} 2.0' in resp.text
    assert 'rezn_mem_usage_max10{container="abc"}' in resp.text
    assert "orqos_poll_cycles_total" in resp.text


def test_container_metrics_json(client):
    resp = client.get("/metrics/containers", params={"window": 10})
    assert resp.json() == {"abc": {"cpu_avg": 2.0, "max_mem": 2048}}

    narrow = client.get("/metrics/containers", params={"window": 0.5}).json()
    assert narrow == {"abc": {"cpu_avg": 3.0, "max_mem": 1024}}


def test_container_metrics_rejects_non_positive_window(client):
    assert client.get("/metrics/containers", params={"window": 0}).status_code == 422


def test_events_ws_delivers_envelopes(client, state):
    channel = PrimedChannel()
    app.dependency_overrides[get_event_channel] = lambda: channel

    with client.websocket_connect("/events/ws") as ws:
        assert ws.receive_text() == '{"Type": "container", "Action": "start"}'

    assert channel.receiver_count == 0


def test_events_ws_closed_channel(client, state):
    state.channel.close()
    with client.websocket_connect("/events/ws") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_text()
    assert exc_info.value.code == 1001


def test_list_containers_passes_filters(client, state):
    state.docker.containers = [{"Id": "abc", "Names": ["/web"]}]
    resp = client.get("/containers", params={"status": "running", "all": "true"})
    assert resp.status_code == 200
    assert resp.json() == [{"Id": "abc", "Names": ["/web"]}]
    assert state.docker.calls[-1] == ("list", True, {"status": ["running"]})


def test_create_container(client, state):
    resp = client.post(
        "/containers",
        json={"name": "web", "image": "nginx", "ports": [{"container": 80, "host": 8080}]},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "web"
    assert body["ports"] == {"80/tcp": 8080}


def test_stop_defaults_timeout_and_maps_missing_to_404(client, state):
    assert client.post("/containers/abc/stop").status_code == 204
    assert state.docker.calls[-1] == ("stop", "abc", 5)

    assert client.post("/containers/abc/stop", json={"t": 0}).status_code == 204
    assert state.docker.calls[-1] == ("stop", "abc", 0)

    state.docker.missing.add("ghost")
    resp = client.post("/containers/ghost/stop")
    assert resp.status_code == 404
    assert "ghost" in resp.json()["detail"]


def test_remove_container(client, state):
    resp = client.post("/containers/abc/remove", json={"force": True, "v": True})
    assert resp.status_code == 204
    assert state.docker.calls[-1] == ("remove", "abc", True, True)


def test_exec_rest(client, state):
    state.docker.exec_results["echo"] = (b"hi\n", b"", 0)
    resp = client.post("/containers/abc/exec", json={"cmd": ["echo", "hi"]})
    assert resp.json() == {"stdout": "hi\n", "stderr": "", "exit_code": 0}


def test_exec_rest_validation(client):
    assert client.post("/containers/abc/exec", json={"cmd": []}).status_code == 400
    resp = client.post("/containers/bad$id/exec", json={"cmd": ["ls"]})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Invalid container ID format"}


def test_exec_ws_streams_output_then_exit_code(client, state):
    state.docker.stream_chunks = [(b"out\n", None), (None, b"err\n")]
    state.docker.exec_results["sh"] = (b"", b"", 3)

    with client.websocket_connect("/containers/abc/exec/ws?cmd=sh&cmd=-c&cmd=run") as ws:
        assert ws.receive_bytes() == b"out\n"
        assert ws.receive_bytes() == b"err\n"
        assert ws.receive_text() == "__exit_code:3"

    assert state.docker.calls[-1] == ("exec", "abc", ["sh", "-c", "run"], None)


def test_exec_ws_rejects_empty_command(client):
    with client.websocket_connect("/containers/abc/exec/ws") as ws:
        assert ws.receive_text() == "error: Command cannot be empty"
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_text()
    assert exc_info.value.code == 1008


def test_exec_ws_reports_daemon_errors(client, state):
    state.docker.missing.add("ghost")
    with client.websocket_connect("/containers/ghost/exec/ws?cmd=ls") as ws:
        assert ws.receive_text().startswith("error: No such container")


def test_read_file(client, state):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        info = tarfile.TarInfo("notes.txt")
        info.size = 5
        tar.addfile(info, io.BytesIO(b"hello"))
    state.docker.archives["/home/dev/notes.txt"] = buf.getvalue()

    resp = client.post("/containers/abc/read-file", json={"path": "/home/dev/notes.txt"})

    assert resp.status_code == 200
    assert resp.content == b"hello"
    assert resp.headers["content-type"].startswith("text/plain")


@pytest.mark.parametrize(
    "path, status",
    [("/etc/passwd", 403), ("/home/../etc/passwd", 400), ("/home/none", 404)],
)
def test_read_file_errors(client, path, status):
    resp = client.post("/containers/abc/read-file", json={"path": path})
    assert resp.status_code == status


def test_write_file(client, state):
    resp = client.post(
        "/containers/abc/write-file",
        json={"path": "/home/dev/a.txt", "content": "x", "mode": "0644"},
    )
    assert resp.json() == {"status": "ok"}
    assert state.docker.uploads[-1][1] == "/home/dev"


def test_write_file_conflict(client, state):
    state.docker.exec_results["test"] = (b"", b"", 0)
    resp = client.post(
        "/containers/abc/write-file",
        json={"path": "/home/dev/a.txt", "content": "x", "overwrite": False},
    )
    assert resp.status_code == 409
