import json
import sys
import uuid
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from topo.channel import EventLog
from topo.rest import RestResult, STATUS_SUCCESS


def node_bean(node_id=None, client=False, ips="", tcp=None, version="2.7.0", cluster="demo"):
    return {
        "nodeId": node_id or str(uuid.uuid4()),
        "attributes": {
            "IGNITE_CLUSTER_NAME": cluster,
            "org.apache.ignite.cache.client": client,
            "org.apache.ignite.ips": ips,
            "org.apache.ignite.build.ver": version,
        },
        "tcpAddresses": tcp if tcp is not None else ["127.0.0.1"],
    }


def ok(beans):
    return RestResult(status=STATUS_SUCCESS, data=json.dumps(beans))


class FakeRest:
    """Polling client double fed with a queue of results or exceptions."""

    def __init__(self, active=True):
        self.responses = []
        self.active_state = active
        self.topology_calls = []
        self.active_calls = []

    def push(self, *items):
        self.responses.extend(items)

    def topology(self, full=False, verbose=False):
        self.topology_calls.append((full, verbose))
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def active(self, version, node_id):
        self.active_calls.append((version, node_id))
        if isinstance(self.active_state, BaseException):
            raise self.active_state
        return self.active_state


class ManualTask:
    def __init__(self, fn, delay_s, name):
        self.fn = fn
        self.delay_s = delay_s
        self.name = name
        self.cancelled = False

    def cancel(self):
        if self.cancelled:
            return False
        self.cancelled = True
        return True


class ManualScheduler:
    """Scheduler double: ticks run only when the test asks for them."""

    def __init__(self):
        self.tasks = []

    def schedule_with_fixed_delay(self, fn, initial_delay_s, delay_s, name=""):
        task = ManualTask(fn, delay_s, name)
        self.tasks.append(task)
        return task

    def active(self):
        return [t for t in self.tasks if not t.cancelled]

    def tick(self):
        for task in self.active():
            task.fn()

    def shutdown(self, wait=True):
        for task in self.tasks:
            task.cancelled = True


@pytest.fixture
def rest():
    return FakeRest()


@pytest.fixture
def events():
    return EventLog(maxlen=64)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def listener(rest, events, scheduler):
    from topo.listener import ClusterListener

    return ClusterListener(rest, events, scheduler=scheduler, interval_ms=3000)
