"""
Error taxonomy for stimulation synthesis and encoding.
"""


class F2HealError(Exception):
    """Base class for all errors raised by f2heal."""


class ConfigurationError(F2HealError):
    """
    Invalid or inconsistent stimulation parameters.

    Raised before any synthesis begins. Carries every problem found so a
    caller can report them all at once.
    """

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        lines = "\n".join(f"  - {error}" for error in self.errors)
        super().__init__(f"Invalid stimulation configuration:\n{lines}")


class EncodingError(F2HealError):
    """The FLAC encoder failed while writing. Fatal for the run."""

    def __init__(self, message: str, frame_offset: int | None = None):
        self.frame_offset = frame_offset
        if frame_offset is not None:
            message = f"{message} (after {frame_offset} frames)"
        super().__init__(message)


class InternalInvariantError(F2HealError):
    """A frame or channel count did not add up. Indicates a bug."""
