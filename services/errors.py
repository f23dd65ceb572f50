"""Error types raised by the task store and route handlers.

Each class carries the HTTP status its message is returned with, so the
app-level error handler can render any of them the same way.
"""


class TaskServiceError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message}


class ValidationError(TaskServiceError):
    """Malformed or missing input."""
    status_code = 400


class ConflictError(TaskServiceError):
    """A position is already held by another task."""
    status_code = 400


class NotFoundError(TaskServiceError):
    status_code = 404


class StorageError(TaskServiceError):
    """The database rejected a read or write."""
    status_code = 500
