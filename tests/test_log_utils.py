"""Tests for the timestamped logging helpers and settings cache."""

import io
import json
import os
import re

from utils import log_utils, settings_store


class TestTprint:
    """Tag normalization and sinks."""

    def test_tag_order(self):
        """Test that a leading level tag moves behind the system tag."""
        assert log_utils._format_message("[WARN][OPENX] busy") == "[OPENX][WARN] busy"
        assert log_utils._format_message("[SLEEPBTN] event") == "[SLEEPBTN] event"
        assert log_utils._format_message("plain") == "[VBHT] plain"

    def test_extra_tags(self):
        """Test that tags past the second are grouped."""
        assert log_utils._format_message("[A][B][C][D] x") == "[A][B] [C D] x"

    def test_untagged_line_uses_tool_system(self):
        """Test that lines without a system tag carry the configured tool name."""
        stream = io.StringIO()
        log_utils.configure(None, stream=stream, system="OPENX")
        log_utils.tprint("plain")
        log_utils.tprint("[WARN] busy")
        lines = [line.split("]", 1)[1] for line in stream.getvalue().splitlines()]
        assert lines == ["[OPENX] plain", "[OPENX][WARN] busy"]

    def test_stderr_routing_keeps_system(self, capsys):
        """Test that switching to stderr keeps the tool name."""
        log_utils.configure(None, system="SLEEPBTN")
        log_utils.log_to_stderr()
        log_utils.tprint("event sleep")
        assert capsys.readouterr().err.rstrip().endswith("[SLEEPBTN] event sleep")

    def test_blank_and_unclosed_tags_are_text(self):
        """Test that only well-formed leading tags are split off."""
        assert log_utils._format_message("[ ] x") == "[VBHT] [ ] x"
        assert log_utils._format_message("[OPENX] [half") == "[OPENX] [half"

    def test_stream_and_file(self, tmp_path):
        """Test that a line reaches both the stream and the log file."""
        stream = io.StringIO()
        log_file = tmp_path / "nested" / "vbht.log"
        log_utils.configure(log_file, stream=stream)
        log_utils.log("OPENX", "hello", "INFO")

        line = stream.getvalue().strip()
        assert re.match(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\]\[OPENX\]\[INFO\] hello$", line)
        assert log_file.read_text().strip() == line

    def test_unwritable_file_is_ignored(self, tmp_path):
        """Test that a log file that cannot be opened does not break logging."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        stream = io.StringIO()
        log_utils.configure(blocker / "vbht.log", stream=stream)
        log_utils.tprint("[OPENX] still printed")
        assert "still printed" in stream.getvalue()


class TestSettingsStore:
    """Defaults merged with the settings file."""

    def test_defaults_and_overrides(self, isolated_settings):
        """Test that file values override defaults and the rest stay."""
        isolated_settings.write_text(json.dumps({"first_display": 9}))
        settings = settings_store.refresh_settings()
        assert settings["first_display"] == 9
        assert settings["vbht_binary"] == "/opt/vbht/vbht"

    def test_deep_logging_toggle(self):
        """Test that update_settings switches deep logging on."""
        assert not settings_store.is_deep_logging()
        settings_store.update_settings({"log_level": "deep"})
        assert settings_store.is_deep_logging()

    def test_env_file_loaded_without_override(self, tmp_path, monkeypatch):
        """Test that .env values fill gaps but never replace the environment."""
        (tmp_path / ".env").write_text("VBHT_TEST_A=from-file\nVBHT_TEST_B=from-file\n")
        monkeypatch.setenv("VBHT_TEST_A", "from-env")
        monkeypatch.delenv("VBHT_TEST_B", raising=False)
        settings_store.load_env_files()
        assert os.environ["VBHT_TEST_A"] == "from-env"
        assert os.environ["VBHT_TEST_B"] == "from-file"
        os.environ.pop("VBHT_TEST_B")
