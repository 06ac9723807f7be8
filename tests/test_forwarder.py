"""Tests for EventForwarder (daemon probe, forward, legacy fallback)."""

import subprocess
from unittest.mock import Mock

import pytest

from sleep_forwarder.forwarder import (
    COMMAND_NOT_EXECUTABLE_EXIT_CODE,
    COMMAND_NOT_FOUND_EXIT_CODE,
    EventForwarder,
    is_valid_event,
)
from utils.settings_store import update_settings

VBHT = "/opt/vbht/vbht"
LEGACY = "/etc/acpi/pre-vbht-sleepbtn.sh"


def _settings(**overrides):
    settings = {
        "vbht_binary": VBHT,
        "legacy_sleep_handler": LEGACY,
        "legacy_handlers": {},
        "probe_timeout_secs": 5,
        "log_level": "INFO",
    }
    settings.update(overrides)
    return settings


def _runner(probe_output=b"", probe_exc=None, handler_rc=0, handler_exc=None):
    """Fake subprocess.run: answers the probe, then runs the chosen handler."""

    def run(argv, **kwargs):
        if argv[1:] == ["info", "-M"]:
            if probe_exc is not None:
                raise probe_exc
            return subprocess.CompletedProcess(argv, 0, stdout=probe_output)
        if handler_exc is not None:
            raise handler_exc
        return subprocess.CompletedProcess(argv, handler_rc)

    return Mock(side_effect=run)


def _handler_call(runner):
    calls = [c for c in runner.call_args_list if c.args[0][1:] != ["info", "-M"]]
    assert len(calls) == 1
    return calls[0]


class TestProbeDaemon:
    """Daemon detection through `vbht info -M`."""

    def test_output_means_running(self):
        """Test that any output on stdout means a running instance."""
        runner = _runner(probe_output=b"machine-1\n")
        assert EventForwarder(_settings(), runner).probe_daemon() is True

    def test_empty_output_means_not_running(self):
        """Test that empty output means no instance."""
        runner = _runner(probe_output=b"")
        assert EventForwarder(_settings(), runner).probe_daemon() is False

    def test_trailing_newlines_are_ignored(self):
        """Test that output made only of newlines counts as empty."""
        runner = _runner(probe_output=b"\n\n")
        assert EventForwarder(_settings(), runner).probe_daemon() is False

    def test_undecodable_output_means_running(self):
        """Test that non-UTF-8 bytes still count as output."""
        runner = _runner(probe_output=b"\xff\xfe running\n")
        assert EventForwarder(_settings(), runner).probe_daemon() is True

    def test_undecodable_output_with_deep_logging(self):
        """Test that the deep log line tolerates non-UTF-8 output."""
        update_settings({"log_level": "DEEP"})
        runner = _runner(probe_output=b"\xff")
        result = EventForwarder(_settings(log_level="DEEP"), runner).forward("sleep")
        assert result.handler_used == "daemon"

    def test_missing_binary_means_not_running(self):
        """Test that a missing vbht binary counts as no instance."""
        runner = _runner(probe_exc=FileNotFoundError(VBHT))
        assert EventForwarder(_settings(), runner).probe_daemon() is False

    def test_timeout_means_not_running(self):
        """Test that a hanging probe counts as no instance."""
        runner = _runner(probe_exc=subprocess.TimeoutExpired([VBHT], 5))
        assert EventForwarder(_settings(), runner).probe_daemon() is False

    def test_exit_status_is_ignored(self):
        """Test that output decides even when the probe exits non-zero."""

        def run(argv, **kwargs):
            return subprocess.CompletedProcess(argv, 3, stdout=b"busy")

        assert EventForwarder(_settings(), Mock(side_effect=run)).probe_daemon() is True

    def test_probe_uses_timeout_from_settings(self):
        """Test that the configured timeout is passed to the probe."""
        runner = _runner(probe_output=b"")
        EventForwarder(_settings(probe_timeout_secs=2), runner).probe_daemon()
        assert runner.call_args.kwargs["timeout"] == 2.0
        assert runner.call_args.args[0] == [VBHT, "info", "-M"]


class TestForward:
    """Dispatching the event to exactly one handler."""

    def test_forwards_to_daemon_quietly(self):
        """Test that a running daemon receives the event with output discarded."""
        runner = _runner(probe_output=b"vm\n")
        result = EventForwarder(_settings(), runner).forward("sleep")

        call = _handler_call(runner)
        assert call.args[0] == [VBHT, "forward", "sleep"]
        assert call.kwargs["stdout"] is subprocess.DEVNULL
        assert call.kwargs["stderr"] is subprocess.DEVNULL
        assert result.status == "ok"
        assert result.handler_used == "daemon"
        assert result.attempts_made == ["probe", "daemon"]
        assert result.returncode == 0

    def test_falls_back_to_legacy_handler(self):
        """Test that the legacy handler runs when no daemon is up."""
        runner = _runner(probe_output=b"")
        result = EventForwarder(_settings(), runner).forward()

        call = _handler_call(runner)
        assert call.args[0] == [LEGACY]
        assert call.kwargs["stdout"] is None
        assert result.handler_used == "legacy"
        assert result.command == [LEGACY]

    def test_exit_code_is_propagated(self):
        """Test that the handler's exit code ends up in the result."""
        runner = _runner(probe_output=b"", handler_rc=4)
        result = EventForwarder(_settings(), runner).forward()
        assert result.status == "failed"
        assert result.returncode == 4

    def test_missing_handler_returns_127(self):
        """Test shell-like exit code when the handler does not exist."""
        runner = _runner(probe_output=b"", handler_exc=FileNotFoundError(LEGACY))
        result = EventForwarder(_settings(), runner).forward()
        assert result.status == "failed"
        assert result.returncode == COMMAND_NOT_FOUND_EXIT_CODE
        assert result.error_message

    def test_unexecutable_handler_returns_126(self):
        """Test shell-like exit code when the handler cannot be executed."""
        runner = _runner(probe_output=b"", handler_exc=PermissionError(LEGACY))
        result = EventForwarder(_settings(), runner).forward()
        assert result.returncode == COMMAND_NOT_EXECUTABLE_EXIT_CODE

    def test_per_event_legacy_handler(self):
        """Test that legacy_handlers overrides the handler for one event."""
        settings = _settings(legacy_handlers={"power": "/etc/acpi/pre-vbht-powerbtn.sh"})
        runner = _runner(probe_output=b"")
        EventForwarder(settings, runner).forward("power")
        assert _handler_call(runner).args[0] == ["/etc/acpi/pre-vbht-powerbtn.sh"]

    def test_invalid_event_runs_nothing(self):
        """Test that an event name looking like an option is rejected."""
        runner = _runner(probe_output=b"vm")
        result = EventForwarder(_settings(), runner).forward("--help")
        assert result.status == "failed"
        assert result.handler_used == "none"
        runner.assert_not_called()

    def test_dry_run_only_probes(self):
        """Test that dry run reports the plan without running the handler."""
        runner = _runner(probe_output=b"vm")
        result = EventForwarder(_settings(), runner).forward("sleep", dry_run=True)
        assert runner.call_count == 1
        assert result.handler_used == "daemon"
        assert result.command == [VBHT, "forward", "sleep"]
        assert result.returncode is None

    def test_to_dict_omits_missing_error(self):
        """Test the serialized result payload."""
        runner = _runner(probe_output=b"")
        payload = EventForwarder(_settings(), runner).forward().to_dict()
        assert payload["handler_used"] == "legacy"
        assert "error_message" not in payload


@pytest.mark.parametrize(
    "event,valid",
    [("sleep", True), ("power", True), ("lid-close", True), ("", False), ("-M", False), ("Sleep", False)],
)
def test_is_valid_event(event, valid):
    assert is_valid_event(event) is valid
