"""Error types raised by the package generators."""

from pathlib import Path
from typing import Optional, Sequence


class LscError(Exception):
    """Base class for all lscpkg failures."""


class InvalidInputError(LscError, ValueError):
    """Credential input rejected before any filesystem or process work."""


class StagingError(LscError):
    """A staging directory or file could not be created, written or read."""


class ToolError(LscError):
    """An external tool could not be spawned or did not exit cleanly.

    Args:
        message: Human readable description
        argv: Command line, already redacted
        returncode: Exit status (negative for a signal), None if never started
        stdout: Captured standard output
        stderr: Captured standard error
    """

    def __init__(self, message: str, argv: Sequence[str] = (),
                 returncode: Optional[int] = None,
                 stdout: str = '', stderr: str = ''):
        super().__init__(message)
        self.argv = list(argv)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class CleanupError(LscError):
    """A staging directory survived its operation.

    `artifact` is set when a package had already been read into memory
    before removal failed.
    """

    def __init__(self, message: str, path: Path, artifact=None):
        super().__init__(message)
        self.path = path
        self.artifact = artifact
