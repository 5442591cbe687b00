"""Single-run ffmpeg orchestration with progress relay and cancellation."""

import asyncio
import logging
import os
import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..config import Settings, get_settings
from ..events import EventHook
from ..exceptions import ConversionError, SessionAlreadyRunningError
from .locator import ExecutableLocator, get_locator
from .process_runner import ProcessPriority, RunConfiguration, spawn_configured
from .progress import ProgressEvent, ProgressMonitor, RawOutputEvent

logger = logging.getLogger("fftools")

_ERROR_PATTERNS = [
    r"Error.*",
    r"Invalid.*",
    r"No such file.*",
    r".*not found.*",
    r"Permission denied.*",
    r"Discarding.*",
]


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of one completed ffmpeg run."""
    start_time: datetime
    end_time: datetime
    arguments: str
    duration: float = 0.0
    return_code: int = 0


class Stopwatch:
    """Monotonic elapsed time plus wall-clock start and end stamps."""

    def __init__(self) -> None:
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None
        self._t0: Optional[float] = None
        self.elapsed = 0.0

    def start(self) -> None:
        self.started_at = datetime.now()
        self.ended_at = None
        self._t0 = time.monotonic()

    def stop(self) -> None:
        if self._t0 is None:
            raise RuntimeError("Stopwatch was never started")
        self.elapsed = time.monotonic() - self._t0
        self.ended_at = max(datetime.now(), self.started_at)


def extract_error_message(lines: Iterable[str]) -> str:
    """Pick the most meaningful error line from ffmpeg's output tail."""
    lines = [line.strip() for line in lines]

    for line in reversed(lines):
        for pattern in _ERROR_PATTERNS:
            if re.search(pattern, line, re.IGNORECASE):
                return line

    for line in reversed(lines):
        if line:
            return line

    return "Unknown error"


def thread_count(max_threads: int) -> int:
    """Threads to request from ffmpeg: processor count, capped."""
    return max(1, min(os.cpu_count() or 1, max_threads))


class ConversionSession:
    """Runs ffmpeg once at a time and relays its output events.

    Example::

        session = ConversionSession().set_multi_thread(True)
        session.on_progress.subscribe(lambda e: print(e.percent))
        result = await session.start("-i in.mkv -c:v libx264 out.mp4")

    A session refuses a second :meth:`start` while one is in progress.
    Several sessions may run side by side.
    """

    def __init__(
        self,
        locator: Optional[ExecutableLocator] = None,
        settings: Optional[Settings] = None,
    ):
        self._locator = locator
        self._settings = settings or get_settings()
        self._multi_thread = False
        self._priority: Optional[ProcessPriority] = None
        self._running = False
        self._state_lock = threading.Lock()
        self.on_progress: EventHook[ProgressEvent] = EventHook()
        self.on_data_received: EventHook[RawOutputEvent] = EventHook()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def multi_thread(self) -> bool:
        return self._multi_thread

    @property
    def priority(self) -> Optional[ProcessPriority]:
        return self._priority

    def set_multi_thread(self, value: bool) -> "ConversionSession":
        """Enable ``-threads`` injection for the next run only."""
        self._multi_thread = value
        return self

    def set_priority(self, priority: Optional[ProcessPriority | str]) -> "ConversionSession":
        """Priority for spawned processes; ``None`` inherits the caller's."""
        self._priority = ProcessPriority(priority) if priority is not None else None
        return self

    def build_arguments(self, parameters: str) -> str:
        """Prefix ``parameters`` with the thread flag when multi-threading is on."""
        if not self._multi_thread:
            return parameters
        return f"-threads {thread_count(self._settings.max_threads)} {parameters}"

    async def start(
        self,
        parameters: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ConversionResult:
        """Run ffmpeg with ``parameters`` and wait for it to exit.

        Args:
            parameters: ffmpeg arguments, excluding the executable.
            cancel_event: Setting this event terminates ffmpeg. Cancelling the
                awaiting task has the same effect.

        Returns:
            ConversionResult for a run that exited with code 0.

        Raises:
            SessionAlreadyRunningError: If this session is already running.
            ExecutableNotFoundError: If ffmpeg cannot be located.
            ConversionError: If ffmpeg exits with a non-zero code.
            asyncio.CancelledError: If the run was cancelled.
        """
        with self._state_lock:
            if self._running:
                raise SessionAlreadyRunningError("ffmpeg has already been started")
            self._running = True

        stopwatch = Stopwatch()
        stopwatch.start()
        monitor = ProgressMonitor(tail_size=self._settings.output_tail_size)
        try:
            with monitor.on_progress.relay_to(self.on_progress), \
                    monitor.on_data_received.relay_to(self.on_data_received):
                config = RunConfiguration(
                    arguments=self.build_arguments(parameters),
                    priority=self._priority,
                    redirect_stderr=True,
                    multi_thread=self._multi_thread,
                )
                locator = self._locator or get_locator()
                process = await spawn_configured(locator.resolve().ffmpeg, config)
                monitor.pid = process.pid
                return_code = await self._wait(process, monitor, cancel_event)
        finally:
            self._multi_thread = False
            with self._state_lock:
                self._running = False

        stopwatch.stop()
        if return_code != 0:
            raise ConversionError(
                return_code, parameters, extract_error_message(monitor.tail)
            )

        logger.debug("ffmpeg finished in %.2fs: %s", stopwatch.elapsed, parameters)
        return ConversionResult(
            start_time=stopwatch.started_at,
            end_time=stopwatch.ended_at,
            arguments=parameters,
            duration=stopwatch.elapsed,
            return_code=return_code,
        )

    async def _wait(
        self,
        process: asyncio.subprocess.Process,
        monitor: ProgressMonitor,
        cancel_event: Optional[asyncio.Event],
    ) -> int:
        async def run_to_exit() -> int:
            if process.stderr is not None:
                await monitor.watch(process.stderr)
            return await process.wait()

        run = asyncio.ensure_future(run_to_exit())
        try:
            if cancel_event is not None:
                cancelled = asyncio.ensure_future(cancel_event.wait())
                try:
                    done, _ = await asyncio.wait(
                        {run, cancelled}, return_when=asyncio.FIRST_COMPLETED
                    )
                finally:
                    cancelled.cancel()
                if run not in done:
                    raise asyncio.CancelledError()
            return await run
        except BaseException:
            # Cancellation, or a failing subscriber or stream read
            run.cancel()
            logger.debug("Stopping ffmpeg pid %s", process.pid)
            await self._terminate(process)
            raise

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), self._settings.terminate_timeout)
        except asyncio.TimeoutError:
            logger.warning("ffmpeg pid %s ignored terminate, killing", process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()
