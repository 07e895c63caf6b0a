"""Shared fixtures for gpcluster tests."""

import asyncio

import pytest

from gpcluster.models import Host, Outcome


class ListSink:
    """LogSink that keeps every line for assertions."""

    def __init__(self) -> None:
        self.lines: list[tuple[int, str]] = []

    def log(self, level: int, message: str) -> None:
        self.lines.append((level, message))


class ConcurrencyTracker:
    """Operation that records how many executions overlap."""

    def __init__(self, delay: float = 0.02, fail: set[str] | None = None) -> None:
        self.delay = delay
        self.fail = fail or set()
        self.in_flight = 0
        self.max_in_flight = 0
        self.started: list[str] = []

    async def run(self, host: Host) -> Outcome:
        self.started.append(host.ident)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if host.ident in self.fail:
                raise RuntimeError(f"{host.ident} exploded")
            return Outcome.success(host.ident, f"done {host.ident}")
        finally:
            self.in_flight -= 1


def _make_hosts(*names: str) -> list[Host]:
    return [Host.for_hostname(name) for name in names]


@pytest.fixture(autouse=True)
def disable_known_hosts(monkeypatch):
    """Disable host key verification for all tests."""
    monkeypatch.setenv("GPCLUSTER_KNOWN_HOSTS", "none")


@pytest.fixture
def sink() -> ListSink:
    return ListSink()


@pytest.fixture
def segment_rows() -> list[dict]:
    """Segment configuration rows for a two-host cluster with mirrors."""
    return [
        {"dbid": 1, "content": -1, "role": "p", "preferred_role": "p",
         "mode": "n", "status": "u", "port": 5432, "hostname": "cdw",
         "address": "cdw", "datadir": "/data/coordinator/gpseg-1"},
        {"dbid": 2, "content": 0, "role": "p", "preferred_role": "p",
         "mode": "s", "status": "u", "port": 6000, "hostname": "sdw1",
         "address": "sdw1", "datadir": "/data/primary/gpseg0"},
        {"dbid": 3, "content": 1, "role": "p", "preferred_role": "p",
         "mode": "s", "status": "u", "port": 6000, "hostname": "sdw2",
         "address": "sdw2", "datadir": "/data/primary/gpseg1"},
        {"dbid": 4, "content": 0, "role": "m", "preferred_role": "m",
         "mode": "s", "status": "u", "port": 7000, "hostname": "sdw2",
         "address": "sdw2", "datadir": "/data/mirror/gpseg0"},
        {"dbid": 5, "content": 1, "role": "m", "preferred_role": "m",
         "mode": "s", "status": "d", "port": 7000, "hostname": "sdw3",
         "address": "sdw3", "datadir": "/data/mirror/gpseg1"},
    ]


@pytest.fixture
def make_hosts():
    """Build hosts identified by hostname."""
    return _make_hosts


@pytest.fixture
def tracker_factory():
    """Build operations that track overlapping executions."""
    return ConcurrencyTracker
