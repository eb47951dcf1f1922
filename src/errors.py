"""
Errors - Exception taxonomy for the validator setup core.

Every wallet, node and validator operation raises the most specific class
below. The dashboard layer maps them onto responses; nothing here is fatal
to the process.
"""

from typing import Optional


class ValidatorSetupError(Exception):
    """Base class for all validator setup errors."""


class ValidationError(ValidatorSetupError):
    """Malformed input: bad mnemonic, short password, empty moniker."""


class ConflictError(ValidatorSetupError):
    """The requested object already exists (e.g. wallet already imported)."""


class NotFoundError(ValidatorSetupError):
    """Unknown wallet id, no wallet configured, no validator record, missing binary."""


class PreconditionError(ValidatorSetupError):
    """The operation is not allowed in the current node state."""


class AlreadyRunningError(PreconditionError):
    """Start requested while a node process is already supervised."""

    def __init__(self, message: str = "Node is already running"):
        super().__init__(message)


class NotRunningError(PreconditionError):
    """Stop requested while no node process is supervised."""

    def __init__(self, message: str = "Node is not running"):
        super().__init__(message)


class AuthenticationError(ValidatorSetupError):
    """Decryption failed. Always reported as a wrong password."""

    def __init__(self, message: str = "Wrong password"):
        super().__init__(message)


class ExternalToolError(ValidatorSetupError):
    """A shelled-out command failed. Carries the combined output for diagnostics."""

    def __init__(
        self,
        message: str,
        command: Optional[list[str]] = None,
        returncode: Optional[int] = None,
        output: str = ""
    ):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.output = output


class TransientIOError(ValidatorSetupError):
    """Network fetch or download failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
