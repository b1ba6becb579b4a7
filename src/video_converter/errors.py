"""Error taxonomy for video-converter."""

from __future__ import annotations

from typing import Any

INSTALL_NOTE = "Make sure yt-dlp is installed and on PATH (or set VIDEO_CONVERTER_EXTRACTOR)."


class ConverterError(Exception):
    """Base class for every failure surfaced to a client."""

    status_code = 500
    code = "InternalError"

    def __init__(self, message: str, note: str | None = None):
        super().__init__(message)
        self.message = message
        self.note = note

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.note:
            body["note"] = self.note
        return body


class InvalidRequest(ConverterError):
    status_code = 400
    code = "InvalidRequest"


class InvalidUrl(ConverterError):
    status_code = 400
    code = "InvalidUrl"


class UnsupportedSource(ConverterError):
    status_code = 400
    code = "UnsupportedSource"


class InvalidFormat(ConverterError):
    status_code = 400
    code = "InvalidFormat"


class ToolMissing(ConverterError):
    code = "ToolMissing"

    def __init__(self, binary: str):
        super().__init__(f"External tool not found: {binary}", note=INSTALL_NOTE)
        self.binary = binary


class ToolExecutionFailed(ConverterError):
    """The external tool exited non-zero; captured output is kept for diagnostics."""

    code = "ToolExecutionFailed"

    def __init__(
        self,
        binary: str,
        returncode: int | None,
        stderr: str = "",
        stdout: str = "",
        message: str | None = None,
    ):
        detail = (stderr or stdout).strip()
        if len(detail) > 2000:
            detail = "..." + detail[-2000:]
        if message is None:
            message = f"{binary} exited with code {returncode}"
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message, note="Check that the link is valid or try another quality option.")
        self.binary = binary
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout


class ToolTimeout(ToolExecutionFailed):
    code = "ToolTimeout"

    def __init__(self, binary: str, timeout: float, stderr: str = "", stdout: str = ""):
        super().__init__(
            binary,
            None,
            stderr,
            stdout,
            message=f"{binary} did not finish within {timeout:g}s",
        )
        self.timeout = timeout


class OutputTooLarge(ConverterError):
    code = "OutputTooLarge"

    def __init__(self, binary: str, limit: int):
        super().__init__(f"{binary} produced more than {limit} bytes of output")
        self.binary = binary
        self.limit = limit


class ExtractorOutputInvalid(ConverterError):
    code = "ExtractorOutputInvalid"


class OutputNotFound(ConverterError):
    code = "OutputNotFound"


class NoOutputProduced(OutputNotFound):
    code = "NoOutputProduced"


class BatchTooLarge(ConverterError):
    status_code = 400
    code = "BatchTooLarge"

    def __init__(self, size: int, limit: int):
        super().__init__(f"A batch may contain at most {limit} links (got {size})")
        self.size = size
        self.limit = limit


class JobNotFound(ConverterError):
    status_code = 404
    code = "JobNotFound"

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class NotReady(ConverterError):
    status_code = 400
    code = "NotReady"


class NoMatchingFormat(ConverterError):
    status_code = 404
    code = "NoMatchingFormat"


class ArtifactMissing(ConverterError):
    status_code = 404
    code = "ArtifactMissing"


class QueueClosed(ConverterError):
    status_code = 503
    code = "QueueClosed"

    def __init__(self):
        super().__init__("The service is shutting down and no longer accepts conversions", note="Retry once it is back.")
