class TimebookError(Exception):
    """Base class for errors surfaced to the user"""

    pass


class ValidationError(TimebookError):
    """Bad or missing input"""

    pass


class NotFoundError(TimebookError):
    """Unknown project, entry or timer"""

    pass


class EmptyProjectError(NotFoundError):
    """Export requested for a project without entries"""

    pass


class ConflictError(TimebookError):
    """The resource already exists"""

    pass


class DuplicateProjectError(ConflictError):
    pass


class StorageError(TimebookError):
    """The backing file could not be read or written"""

    pass


class FileLockedError(StorageError):
    """The backing file is held open by another program"""

    def __init__(self, path: object = None) -> None:
        super().__init__(
            "The time tracking file is open in another program. Close it and try again."
        )
        self.path = path
