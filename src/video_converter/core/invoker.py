"""Run external command-line tools with bounded output capture."""

from __future__ import annotations

import codecs
import logging
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import IO, Callable

from ..errors import OutputTooLarge, ToolExecutionFailed, ToolMissing, ToolTimeout

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
_CHUNK_SIZE = 64 * 1024

ProgressSink = Callable[[str], None]


@dataclass
class ToolResult:
    """Captured output of a finished tool run."""

    stdout: str
    stderr: str
    returncode: int
    elapsed: float


def resolve_binary(binary: str) -> str:
    """Return an executable path for binary, or raise ToolMissing."""
    if Path(binary).is_file():
        return binary
    found = shutil.which(binary)
    if found is None:
        raise ToolMissing(binary)
    return found


class _Capture:
    """Drains one pipe into a bounded buffer on a background thread."""

    def __init__(self, stream: IO[bytes], limit: int, on_overflow: Callable[[], None], sink: ProgressSink | None = None):
        self._stream = stream
        self._limit = limit
        self._on_overflow = on_overflow
        self._sink = sink
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.buffer = bytearray()
        self.overflowed = False
        self.thread = threading.Thread(target=self._pump, daemon=True)

    def _pump(self) -> None:
        for chunk in iter(partial(self._stream.read1, _CHUNK_SIZE), b""):
            if len(self.buffer) + len(chunk) > self._limit:
                self.overflowed = True
                self._on_overflow()
                break
            self.buffer.extend(chunk)
            if self._sink is not None:
                text = self._decoder.decode(chunk)
                if text:
                    try:
                        self._sink(text)
                    except Exception:
                        logger.exception("Progress sink raised; detaching it")
                        self._sink = None

    def text(self) -> str:
        return self.buffer.decode("utf-8", errors="replace")


def run_tool(
    binary: str,
    args: list[str],
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    progress: ProgressSink | None = None,
    timeout: float | None = None,
    cwd: str | Path | None = None,
) -> ToolResult:
    """
    Run binary with args and wait for it to finish.

    Spawns exactly one child process and never retries. stderr chunks are
    forwarded to ``progress`` as they arrive.

    Raises:
        ToolMissing: binary cannot be found
        OutputTooLarge: stdout or stderr exceeded max_output_bytes
        ToolTimeout: the process outlived timeout and was killed
        ToolExecutionFailed: the process exited non-zero
    """
    executable = resolve_binary(binary)
    cmd = [executable, *args]
    logger.debug(f"Running: {' '.join(cmd)}")

    started = time.monotonic()
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError as e:
        raise ToolMissing(binary) from e
    except OSError as e:
        raise ToolExecutionFailed(binary, None, message=f"Could not start {binary}: {e}") from e

    out = _Capture(proc.stdout, max_output_bytes, proc.kill)
    err = _Capture(proc.stderr, max_output_bytes, proc.kill, sink=progress)
    out.thread.start()
    err.thread.start()

    timed_out = False
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        proc.kill()
        proc.wait()
    finally:
        # Grandchildren (e.g. ffmpeg) may hold the pipes open after a kill
        for capture, stream in ((out, proc.stdout), (err, proc.stderr)):
            capture.thread.join(timeout=5)
            if not capture.thread.is_alive():
                stream.close()

    elapsed = time.monotonic() - started
    stdout, stderr = out.text(), err.text()

    if out.overflowed or err.overflowed:
        raise OutputTooLarge(binary, max_output_bytes)
    if timed_out:
        raise ToolTimeout(binary, timeout, stderr, stdout)
    if proc.returncode != 0:
        logger.debug(f"{binary} exited with {proc.returncode} after {elapsed:.1f}s")
        raise ToolExecutionFailed(binary, proc.returncode, stderr, stdout)

    return ToolResult(stdout=stdout, stderr=stderr, returncode=proc.returncode, elapsed=elapsed)
