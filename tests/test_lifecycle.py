"""Tests for session startup, failure cleanup and shutdown."""

from __future__ import annotations

import asyncio
import os
import sys

import pytest
from zendriver import cdp
from zendriver.core.connection import ProtocolException

from cursordriver.errors import (
    CDPConnectionError,
    EvaluationError,
    LaunchError,
    PortReservationError,
    ShutdownError,
)
from cursordriver.page.evaluator import evaluate
from cursordriver.session import launcher as launcher_mod
from cursordriver.session.config import LaunchConfig, scfg
from cursordriver.session.handle import SessionState
from cursordriver.session.launcher import build_args, resolve_executable
from cursordriver.session.lifecycle import open_session, shutdown, start
from cursordriver.session.transport import CDPTransport


def _flag(args, name):
    for arg in args:
        if arg.startswith(name + "="):
            return arg.split("=", 1)[1]
    return None


# ── Startup sequence ─────────────────────────────────────────────────


class TestStart:
    @pytest.mark.asyncio
    async def test_commands_in_order(self, boot, conn):
        session = await boot()
        assert conn.sent == [
            "Page.enable",
            "Runtime.enable",
            "Page.navigate",
            "Runtime.evaluate",
            "Runtime.evaluate",
        ]
        assert conn.params("Page.navigate")[0]["url"] == "about:blank"
        expressions = [p["expression"] for p in conn.params("Runtime.evaluate")]
        assert expressions == [scfg.WINDOW_SIZE_EXPRESSION, scfg.SCREEN_SIZE_EXPRESSION]

    @pytest.mark.asyncio
    async def test_calibrates_viewport(self, boot):
        session = await boot()
        assert session.state == SessionState.CALIBRATED
        assert session.usable
        vp = session.viewport
        assert vp.deadzone == 80
        assert (vp.top, vp.bottom, vp.left, vp.right) == (80, 1080, 0, 1920)

    @pytest.mark.asyncio
    async def test_blank_page_load_awaited_with_subscription(self, boot, conn):
        await boot()
        assert conn.load_handlers_at_navigate == 1
        assert conn.handlers[cdp.page.LoadEventFired] == []

    @pytest.mark.asyncio
    async def test_launch_flags(self, boot, launcher, make_config):
        config = make_config(extra_args=["--window-size=800,600"])
        session = await boot(config)
        executable, args = launcher.launched[0]
        assert executable == sys.executable
        assert _flag(args, "--remote-debugging-port") == str(config.debugging_port)
        assert "--disable-notifications" in args
        assert "--kiosk" in args
        assert _flag(args, "--user-data-dir") == config.user_data_dir
        assert args[-1] == "--window-size=800,600"
        assert session.pid == launcher.pid

    @pytest.mark.asyncio
    async def test_port_held_by_session(self, boot, registry):
        session = await boot()
        assert registry.is_held(session.port)

    @pytest.mark.asyncio
    async def test_temp_profile_created_and_removed(self, boot, launcher, make_config):
        session = await boot(make_config(user_data_dir=None))
        profile = _flag(launcher.launched[0][1], "--user-data-dir")
        assert session.owns_user_data_dir
        assert os.path.isdir(profile)
        await shutdown(session)
        assert not os.path.exists(profile)

    @pytest.mark.asyncio
    async def test_temp_profiles_unique(self, boot, launcher, make_config, conn):
        first = await boot(make_config(user_data_dir=None))
        await shutdown(first)
        conn.closed = False
        second = await boot(make_config(user_data_dir=None))
        assert first.user_data_dir != second.user_data_dir

    @pytest.mark.asyncio
    async def test_grace_period_waited_once(self, boot, make_config, monkeypatch):
        sleeps = []
        real_sleep = asyncio.sleep

        async def fake_sleep(delay, *args, **kwargs):
            sleeps.append(delay)
            await real_sleep(0)

        monkeypatch.setattr("cursordriver.session.lifecycle.asyncio.sleep", fake_sleep)
        await boot(make_config(grace_period_s=1.5))
        assert sleeps == [1.5]


# ── Port contention ──────────────────────────────────────────────────


class TestPortContention:
    @pytest.mark.asyncio
    async def test_same_port_concurrently_one_wins(self, boot, make_config):
        config = make_config()
        results = await asyncio.gather(
            boot(config), boot(config), return_exceptions=True
        )
        sessions = [r for r in results if not isinstance(r, BaseException)]
        errors = [r for r in results if isinstance(r, BaseException)]
        assert len(sessions) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], PortReservationError)

    @pytest.mark.asyncio
    async def test_port_free_again_after_shutdown(self, boot, make_config, conn):
        config = make_config()
        session = await boot(config)
        await shutdown(session)
        conn.closed = False
        again = await boot(config)
        assert again.port == config.debugging_port


# ── Startup failures ─────────────────────────────────────────────────


class TestStartFailures:
    @pytest.mark.asyncio
    async def test_spawn_failure(self, boot, launcher, registry):
        launcher.launch_error = LaunchError("boom")
        with pytest.raises(LaunchError):
            await boot()
        assert registry.held_ports() == []
        assert launcher.killed == []

    @pytest.mark.asyncio
    async def test_process_exits_during_grace(self, boot, launcher, registry):
        launcher.running = False
        with pytest.raises(LaunchError, match="exited during startup"):
            await boot()
        assert launcher.killed == [launcher.pid]
        assert registry.held_ports() == []

    @pytest.mark.asyncio
    async def test_missing_executable(self, boot, registry):
        with pytest.raises(LaunchError, match="not found"):
            await boot(browser_binary_path="/definitely/not/chrome")
        assert registry.held_ports() == []

    @pytest.mark.asyncio
    async def test_endpoint_failure_cleans_up(
        self, launcher, registry, make_config
    ):
        async def no_endpoint(port):
            raise CDPConnectionError(f"no page target on {port}")

        with pytest.raises(CDPConnectionError):
            await start(
                make_config(),
                launcher=launcher,
                registry=registry,
                resolve_endpoint=no_endpoint,
            )
        assert launcher.killed == [launcher.pid]
        assert registry.held_ports() == []

    @pytest.mark.asyncio
    async def test_domain_activation_failure(self, boot, conn, launcher, registry):
        conn.failures["Runtime.enable"] = ProtocolException(
            {"code": -32601, "message": "'Runtime.enable' wasn't found"}
        )
        with pytest.raises(CDPConnectionError, match="Runtime domain"):
            await boot()
        assert "Page.navigate" not in conn.sent
        assert conn.closed
        assert launcher.killed == [launcher.pid]
        assert registry.held_ports() == []

    @pytest.mark.asyncio
    async def test_calibration_failure(self, boot, conn, launcher, registry):
        conn.eval_throws[scfg.SCREEN_SIZE_EXPRESSION] = "TypeError: screen is null"
        with pytest.raises(EvaluationError, match="screen is null"):
            await boot()
        assert launcher.killed == [launcher.pid]
        assert registry.held_ports() == []

    @pytest.mark.asyncio
    async def test_calibration_garbage(self, boot, conn):
        conn.eval_results[scfg.WINDOW_SIZE_EXPRESSION] = "[1, 2]"
        with pytest.raises(EvaluationError, match="width, height"):
            await boot()

    @pytest.mark.asyncio
    async def test_calibration_rejects_negative_deadzone(self, boot, conn, launcher, registry):
        conn.eval_results[scfg.WINDOW_SIZE_EXPRESSION] = '{"width": 1920, "height": 1100}'
        with pytest.raises(EvaluationError, match="negative deadzone"):
            await boot()
        assert launcher.killed == [launcher.pid]
        assert registry.held_ports() == []

    @pytest.mark.asyncio
    async def test_cancellation_cleans_up(self, launcher, registry, make_config, conn):
        async def hang(port):
            await asyncio.Event().wait()

        async def dial(url):
            return CDPTransport(conn, url)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(
                start(
                    make_config(),
                    launcher=launcher,
                    registry=registry,
                    resolve_endpoint=hang,
                    dial=dial,
                ),
                timeout=0.05,
            )
        assert launcher.killed == [launcher.pid]
        assert registry.held_ports() == []


# ── Shutdown ─────────────────────────────────────────────────────────


class TestShutdown:
    @pytest.mark.asyncio
    async def test_closes_transport_then_kills(self, boot, conn, launcher, registry):
        session = await boot()
        log = []
        conn.log = launcher.log = log
        await shutdown(session)
        assert log == ["disconnect", "kill"]
        assert session.state == SessionState.CLOSED
        assert registry.held_ports() == []

    @pytest.mark.asyncio
    async def test_kill_attempted_when_close_fails(self, boot, conn, launcher):
        session = await boot()
        conn.disconnect_error = OSError("socket already gone")
        with pytest.raises(ShutdownError) as info:
            await shutdown(session)
        assert launcher.killed == [launcher.pid]
        assert [type(e) for e in info.value.errors] == [OSError]
        assert info.value.pid == launcher.pid

    @pytest.mark.asyncio
    async def test_both_failures_reported(self, boot, conn, launcher, registry):
        session = await boot()
        conn.disconnect_error = OSError("close failed")
        launcher.kill_error = PermissionError("kill failed")
        with pytest.raises(ShutdownError) as info:
            await shutdown(session)
        assert [str(e) for e in info.value.errors] == ["close failed", "kill failed"]
        assert registry.held_ports() == []

    @pytest.mark.asyncio
    async def test_idempotent(self, boot, launcher):
        session = await boot()
        await shutdown(session)
        await shutdown(session)
        assert launcher.killed == [launcher.pid]

    @pytest.mark.asyncio
    async def test_calls_after_shutdown_fail(self, boot):
        session = await boot()
        await shutdown(session)
        with pytest.raises(CDPConnectionError, match="shut down"):
            await evaluate(session, "'x'")

    @pytest.mark.asyncio
    async def test_open_session_context(self, conn, launcher, registry, make_config):
        async def resolve(port):
            return "ws://fake"

        async def dial(url):
            return CDPTransport(conn, url)

        async with open_session(
            make_config(),
            launcher=launcher,
            registry=registry,
            resolve_endpoint=resolve,
            dial=dial,
        ) as session:
            assert session.usable
        assert session.state == SessionState.CLOSED
        assert launcher.killed == [launcher.pid]


# ── Executable resolution and config ─────────────────────────────────


class TestResolveExecutable:
    def test_explicit_override_wins(self, monkeypatch):
        monkeypatch.setenv("CHROME_BINARY", "/nope/chrome")
        assert resolve_executable(LaunchConfig(browser_binary_path=sys.executable)) == sys.executable

    def test_env_variable(self, monkeypatch):
        monkeypatch.setenv("CHROME_BINARY", sys.executable)
        assert resolve_executable(LaunchConfig()) == sys.executable

    def test_platform_default_on_path(self, monkeypatch):
        monkeypatch.delenv("CHROME_BINARY", raising=False)
        monkeypatch.setattr(launcher_mod.platform, "system", lambda: "Linux")
        monkeypatch.setattr(
            launcher_mod.shutil,
            "which",
            lambda name: "/usr/bin/chromium" if name == "chromium" else None,
        )
        assert resolve_executable(LaunchConfig()) == "/usr/bin/chromium"

    def test_nothing_found(self, monkeypatch):
        monkeypatch.delenv("CHROME_BINARY", raising=False)
        monkeypatch.setattr(launcher_mod.platform, "system", lambda: "Linux")
        monkeypatch.setattr(launcher_mod.shutil, "which", lambda name: None)
        with pytest.raises(LaunchError, match="no Chrome"):
            resolve_executable(LaunchConfig())

    def test_build_args(self):
        args = build_args(9000, "/tmp/p", ["--x"])
        assert args == [
            "--remote-debugging-port=9000",
            "--disable-notifications",
            "--no-first-run",
            "--kiosk",
            "--user-data-dir=/tmp/p",
            "--x",
        ]


class TestLaunchConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CHROME_BINARY", "/opt/chrome")
        monkeypatch.setenv("CURSORDRIVER_DEBUGGING_PORT", "9333")
        monkeypatch.delenv("CURSORDRIVER_USER_DATA_DIR", raising=False)
        config = LaunchConfig.from_env(grace_period_s=0.5)
        assert config.browser_binary_path == "/opt/chrome"
        assert config.debugging_port == 9333
        assert config.user_data_dir is None
        assert config.grace_period_s == 0.5

    @pytest.mark.parametrize("port", [0, -1, 70000])
    def test_port_range(self, port):
        with pytest.raises(ValueError):
            LaunchConfig(debugging_port=port)
