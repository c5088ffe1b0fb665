class TaskBotError(Exception):
    """Base class for errors the chat and API layers know how to report."""


class ValidationError(TaskBotError):
    """Input could not be turned into a valid task.

    Carries every failure found, not only the first one.
    """

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(TaskBotError):
    """Task position or id does not exist for this owner."""


class StorageError(TaskBotError):
    """The database failed. Never retried here."""
