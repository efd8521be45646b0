class LedgerValidationError(ValueError):
    """Input rejected before anything is dispatched to the store."""


class NotFoundError(LedgerValidationError):
    """A referenced document does not exist."""


class PersistenceError(RuntimeError):
    """The store could not apply a command. State is unchanged; resubmit."""

    def __init__(self, message: str, command_type: str = None):
        super().__init__(message)
        self.command_type = command_type
