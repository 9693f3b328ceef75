"""Exception types raised by render calls."""

from __future__ import annotations


class SitroError(RuntimeError):
    """Base class for every failure surfaced by a render call."""


class InvalidInputError(SitroError):
    """Raised when a render call is given input it cannot attempt, such as empty bytes."""


class SessionConstructionError(SitroError):
    """Raised when the shared Docker environment never became ready.

    Terminal for the process: the lazy session holder re-raises the same
    failure to every later caller.
    """


class ExecutionError(SitroError):
    """Raised when a backend command could not be started or exited non-zero."""

    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(f"{message}: {output.strip()}" if output.strip() else message)
        self.output = output


class ExecutionTimeoutError(ExecutionError):
    """Raised when a backend command exceeded the execution timeout."""


class OutputContractError(SitroError):
    """Raised when a backend produced missing, duplicate, or invalid pages."""


class NativeRenderError(SitroError):
    """Raised by in-process backends on malformed input or platform API failures."""


__all__ = [
    "SitroError",
    "InvalidInputError",
    "SessionConstructionError",
    "ExecutionError",
    "ExecutionTimeoutError",
    "OutputContractError",
    "NativeRenderError",
]
