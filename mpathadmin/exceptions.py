"""
Exception classes for multipath operations.

This module defines the exception hierarchy used throughout the multipath
administration library for consistent error handling.
"""

from enum import Enum


class MultipathErrorCode(Enum):
    """Error codes for standardized error classification.

    Attributes:
        NOT_FOUND: Target, volume or device is absent (user-correctable)
        COMMAND_FAILED: An external tool invocation failed (transient I/O)
        MALFORMED_OUTPUT: A collaborator returned output that cannot be parsed
        FATAL_ERROR: Any other unrecoverable failure
    """

    NOT_FOUND = "MPATH_NOT_FOUND"
    COMMAND_FAILED = "MPATH_COMMAND_FAILED"
    MALFORMED_OUTPUT = "MPATH_MALFORMED_OUTPUT"
    FATAL_ERROR = "MPATH_FATAL_ERROR"


class MultipathError(Exception):
    """Base exception class for all multipath-related errors.

    This exception is raised for all multipath operation failures including:
    - Sysfs interface errors (permission, path not found, etc.)
    - Configuration parsing errors
    - Unmount, flush and forced removal failures
    - iSCSI target resolution failures

    Callers should catch MultipathError rather than generic exceptions;
    the ``code`` attribute tells the failure classes apart.
    """

    def __init__(self, message: str, code: MultipathErrorCode = MultipathErrorCode.FATAL_ERROR):
        super().__init__(message)
        self.code = code


class MultipathNotFoundError(MultipathError):
    """Raised when a target, volume or device cannot be located."""

    def __init__(self, message: str):
        super().__init__(message, MultipathErrorCode.NOT_FOUND)


class MultipathCommandError(MultipathError):
    """Raised when an external command exits unsuccessfully or cannot be started."""

    def __init__(self, cmd, returncode: int, stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or f"exit code {returncode}"
        super().__init__(f"Command '{' '.join(self.cmd)}' failed: {detail}",
                         MultipathErrorCode.COMMAND_FAILED)


class MultipathMalformedOutputError(MultipathError):
    """Raised when the output of a collaborator cannot be parsed."""

    def __init__(self, message: str):
        super().__init__(message, MultipathErrorCode.MALFORMED_OUTPUT)
