# vara/errors.py
"""Exception hierarchy for the VARA client."""

from typing import Sequence


class VaraError(Exception):
    """Generic VARA client error (superclass for all client errors)."""
    pass


class VaraValidationError(VaraError, ValueError):
    """Raised synchronously for bad arguments, before anything is written."""
    pass


class VaraCommandRejected(VaraError):
    """The modem answered WRONG to an issued command."""

    def __init__(self, operation: str, arguments: Sequence = ()):
        self.operation = operation
        self.arguments = tuple(arguments)
        args_txt = ", ".join(repr(a) for a in self.arguments)
        super().__init__(
            f'VARA returned "WRONG" for {operation}({args_txt}). '
            "Check your arguments, the order of your calls, and that this command "
            "is supported by the running VARA version."
        )


class VaraCommandFailed(VaraError):
    """The modem reported a negative terminal outcome for a command."""
    pass


class VaraTransportError(VaraError):
    """Socket failure, peer close, or a locally closed client."""
    pass
