from typing import Optional


class ConversionError(Exception):
    """Base class for every failure raised by the conversion engine."""


class InvalidInput(ConversionError, ValueError):
    """Client-side problem: bad scheme, unsupported content type, oversized source."""


class ToolFailure(ConversionError):
    """An external tool exited non-zero or did not leave its output behind."""

    def __init__(self, message: str, exit_code: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output


class TransientIOFailure(ConversionError):
    """Network trouble while fetching a remote source."""


class JobStateError(ConversionError):
    """A job was asked to move backwards in its lifecycle."""
