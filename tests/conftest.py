"""Shared fakes: a zendriver-compatible connection and an OS-free launcher.

The fake connection answers real ``zendriver.cdp`` command generators, so the
library's parsing of CDP responses is exercised exactly as in production.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections import defaultdict

import pytest
from zendriver import cdp

from cursordriver.pointer.telemetry import recorder
from cursordriver.session.config import LaunchConfig, scfg
from cursordriver.session.lifecycle import start
from cursordriver.session.ports import PortRegistry, find_free_port
from cursordriver.session.transport import CDPTransport

DEFAULT_WINDOW = {"width": 1920, "height": 1000}
DEFAULT_SCREEN = {"width": 1920, "height": 1080}


def remote_value(value):
    """RemoteObject JSON for a by-value evaluation result."""
    if value is None:
        return {"type": "undefined"}
    if isinstance(value, bool):
        return {"type": "boolean", "value": value}
    if isinstance(value, (int, float)):
        return {"type": "number", "value": value, "description": str(value)}
    if isinstance(value, str):
        return {"type": "string", "value": value}
    return {"type": "object", "value": value}


def thrown(message):
    error = {"type": "object", "subtype": "error", "className": "Error", "description": message}
    return {
        "result": error,
        "exceptionDetails": {
            "exceptionId": 1,
            "text": "Uncaught",
            "lineNumber": 0,
            "columnNumber": 0,
            "exception": error,
        },
    }


class FakeConnection:
    """Stand-in for ``zendriver.Connection`` driven by canned CDP responses."""

    def __init__(self, window=None, screen=None):
        self.handlers = defaultdict(list)
        self.requests = []
        self.closed = False
        self.load_on_navigate = True
        self.failures = {}
        self.responses = {}
        self.eval_results = {
            scfg.WINDOW_SIZE_EXPRESSION: json.dumps(window or DEFAULT_WINDOW),
            scfg.SCREEN_SIZE_EXPRESSION: json.dumps(screen or DEFAULT_SCREEN),
        }
        self.eval_throws = {}
        self.load_handlers_at_navigate = None
        self.disconnect_error = None
        self.log = None

    @property
    def sent(self):
        return [r["method"] for r in self.requests]

    def params(self, method):
        return [r.get("params", {}) for r in self.requests if r["method"] == method]

    # zendriver Connection surface

    def add_handler(self, event_type, handler):
        self.handlers[event_type].append(handler)

    def remove_handlers(self, event_type=None, handler=None):
        self.handlers[event_type].remove(handler)

    async def connect(self):
        pass

    async def disconnect(self):
        if self.log is not None:
            self.log.append("disconnect")
        if self.disconnect_error is not None:
            raise self.disconnect_error
        self.closed = True

    async def send(self, command):
        request = next(command)
        method = request["method"]
        self.requests.append(request)
        if method in self.failures:
            raise self.failures[method]
        response = self._respond(method, request.get("params", {}))
        try:
            command.send(response)
        except StopIteration as stop:
            return stop.value
        raise AssertionError(f"{method} did not complete")

    def fire(self, event):
        for handler in list(self.handlers.get(type(event), [])):
            handler(event)

    def fire_load(self):
        self.fire(cdp.page.LoadEventFired.from_json({"timestamp": 1.0}))

    def _respond(self, method, params):
        if method in self.responses:
            response = self.responses[method]
            return response(params) if callable(response) else response
        if method == "Page.navigate":
            self.load_handlers_at_navigate = len(self.handlers[cdp.page.LoadEventFired])
            if self.load_on_navigate:
                asyncio.get_running_loop().call_soon(self.fire_load)
            return {"frameId": "F1", "loaderId": "L1"}
        if method == "Runtime.evaluate":
            expression = params["expression"]
            if expression in self.eval_throws:
                return thrown(self.eval_throws[expression])
            return {"result": remote_value(self.eval_results.get(expression))}
        return {}


class FakeLauncher:
    """Records launches and kills instead of touching the OS."""

    def __init__(self, pid=4242):
        self.pid = pid
        self.running = True
        self.launched = []
        self.killed = []
        self.launch_error = None
        self.kill_error = None
        self.log = None

    async def launch(self, executable, args):
        if self.launch_error is not None:
            raise self.launch_error
        self.launched.append((executable, list(args)))
        return self.pid

    def is_running(self, pid):
        return self.running

    async def kill(self, pid):
        if self.log is not None:
            self.log.append("kill")
        self.killed.append(pid)
        if self.kill_error is not None:
            raise self.kill_error


@pytest.fixture(autouse=True)
def _reset_recorder():
    recorder.reset()
    yield
    recorder.reset()


@pytest.fixture
def conn():
    return FakeConnection()


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def registry():
    return PortRegistry()


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        values = {
            "browser_binary_path": sys.executable,
            "debugging_port": find_free_port(),
            "user_data_dir": str(tmp_path / "profile"),
            "grace_period_s": 0,
        }
        values.update(overrides)
        return LaunchConfig(**values)

    return _make


@pytest.fixture
def boot(conn, launcher, registry, make_config):
    """Start a session against the fakes; keyword args override LaunchConfig."""

    async def _dial(url):
        return CDPTransport(conn, url)

    async def _resolve(port):
        return f"ws://127.0.0.1:{port}/devtools/page/FAKE"

    async def _boot(config=None, **overrides):
        return await start(
            config or make_config(**overrides),
            launcher=launcher,
            registry=registry,
            resolve_endpoint=_resolve,
            dial=_dial,
        )

    return _boot
