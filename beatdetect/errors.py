"""Exceptions raised by the analysis pipeline.

Every error carries the name of the stage that produced it ("fetch",
"render", "process", ...) so callers can tell where a run failed.
"""


class BeatDetectError(Exception):
    """Base class for pipeline failures."""

    def __init__(self, message: str, stage: str = "process"):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {self.args[0]}"


class ConfigurationError(BeatDetectError):
    """A stage received missing or invalid inputs."""


class RetrievalError(BeatDetectError):
    """The audio could not be fetched."""

    def __init__(self, message: str, stage: str = "fetch", not_found: bool = False):
        super().__init__(message, stage)
        self.not_found = not_found


class DecodeError(BeatDetectError):
    """The audio could not be decoded or rendered."""


class DetectionFailure(BeatDetectError):
    """Numeric analysis hit a degenerate case and produced no estimate."""
