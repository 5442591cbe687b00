"""Tests for child process creation and priority handling."""

import logging
import sys
from unittest.mock import MagicMock, patch

import psutil
import pytest

from fftools.exceptions import InvalidArgumentError, ProcessLaunchError
from fftools.executor.process_runner import (
    ProcessPriority,
    RunConfiguration,
    apply_priority,
    quote_argument,
    spawn,
    spawn_configured,
    split_arguments,
)


class TestSplitArguments:
    """Tests for argument string tokenisation."""

    def test_plain_words(self):
        """Test plain whitespace splitting."""
        assert split_arguments("-i in.mp4 -y out.mp4") == ["-i", "in.mp4", "-y", "out.mp4"]

    def test_quoted_path_with_spaces(self):
        """Test quoted path with spaces stays one argument."""
        args = f"-i {quote_argument('my movie.mkv')} out.mp4"
        assert split_arguments(args) == ["-i", "my movie.mkv", "out.mp4"]

    def test_filter_with_quotes(self):
        """Test filter with nested quotes."""
        args = "-vf \"drawtext=text='hi there'\""
        assert split_arguments(args) == ["-vf", "drawtext=text='hi there'"]

    def test_empty(self):
        """Test empty argument string."""
        assert split_arguments("") == []


class TestApplyPriority:
    """Tests for priority assignment through psutil."""

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX niceness mapping")
    def test_explicit_priority(self):
        """Test explicit priority mapped to niceness."""
        with patch("fftools.executor.process_runner.psutil.Process") as proc_cls:
            assert apply_priority(4321, ProcessPriority.IDLE) is True

        proc_cls.assert_called_with(4321)
        proc_cls.return_value.nice.assert_called_with(19)

    def test_inherits_caller_priority(self):
        """Test caller priority copied when none given."""
        with patch("fftools.executor.process_runner.psutil.Process") as proc_cls:
            proc_cls.return_value.nice.return_value = 7
            apply_priority(4321, None)

        proc_cls.return_value.nice.assert_called_with(7)

    def test_failure_is_logged_not_raised(self, caplog):
        """Test priority failure logged and reported, not raised."""
        child = MagicMock()
        child.nice.side_effect = psutil.AccessDenied(4321)
        with patch("fftools.executor.process_runner.psutil.Process", return_value=child):
            with caplog.at_level(logging.WARNING, logger="fftools"):
                assert apply_priority(4321, ProcessPriority.HIGH) is False

        assert "Could not set priority" in caplog.text


class TestSpawn:
    """Tests for spawn()."""

    @pytest.mark.asyncio
    async def test_empty_path_rejected(self):
        """Test empty or missing path rejected."""
        with pytest.raises(InvalidArgumentError):
            await spawn("-version", "")
        with pytest.raises(ValueError):
            await spawn("-version", None)

    @pytest.mark.asyncio
    async def test_unbalanced_quote_rejected(self):
        """Test unterminated quote raises InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError) as excinfo:
            await spawn('-i "unterminated.mkv out.mp4', sys.executable)

        assert isinstance(excinfo.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_launch_failure_raises(self, tmp_path):
        """Test missing executable raises ProcessLaunchError."""
        missing = str(tmp_path / "no-such-ffmpeg")
        with pytest.raises(ProcessLaunchError) as excinfo:
            await spawn("-version", missing)

        assert excinfo.value.path == missing
        assert isinstance(excinfo.value.cause, OSError)

    @pytest.mark.asyncio
    async def test_redirected_stdout(self):
        """Test stdout piped when requested."""
        process = await spawn(
            "-c \"print('hello')\"", sys.executable, redirect_stdout=True
        )
        stdout, stderr = await process.communicate()

        assert process.returncode == 0
        assert stdout.decode().strip() == "hello"
        assert stderr is None

    @pytest.mark.asyncio
    async def test_priority_failure_still_returns_process(self):
        """Test process returned when priority cannot be set."""
        with patch("fftools.executor.process_runner.apply_priority", return_value=False):
            process = await spawn(
                "-c \"import sys; sys.exit(3)\"", sys.executable,
                priority=ProcessPriority.REALTIME,
            )
        assert await process.wait() == 3

    @pytest.mark.asyncio
    async def test_spawn_configured(self):
        """Test spawn from a RunConfiguration."""
        config = RunConfiguration(
            arguments="-c \"import sys; sys.stderr.write('err')\"",
            redirect_stderr=True,
        )
        process = await spawn_configured(sys.executable, config)
        _, stderr = await process.communicate()

        assert stderr == b"err"
