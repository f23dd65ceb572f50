import re
from dataclasses import dataclass
from typing import Optional

from services.errors import ValidationError

INVALID_BODY = "Invalid request body"

_INT_PATTERN = re.compile(r"[+-]?\d+")

# Values the database INTEGER column can hold.
MAX_INT = 2 ** 63 - 1
MIN_INT = -(2 ** 63)


def parse_positive_int(raw):
    """Parse a query/path value into a strictly positive int; return None on failure."""
    if raw is None:
        return None
    s = str(raw)
    if not _INT_PATTERN.fullmatch(s):
        return None
    value = int(s)
    return value if 0 < value <= MAX_INT else None


def _is_int(value):
    if not isinstance(value, int) or isinstance(value, bool):
        return False
    return MIN_INT <= value <= MAX_INT


@dataclass(frozen=True)
class TaskInput:
    title: str
    description: Optional[str]
    position: int

    @classmethod
    def bind(cls, data):
        """Bind one decoded JSON object; missing fields read as empty/zero."""
        if not isinstance(data, dict):
            raise ValidationError(INVALID_BODY)
        title = data.get("title")
        description = data.get("description")
        position = data.get("position")
        if title is None:
            title = ""
        if position is None:
            position = 0
        if not isinstance(title, str) or not _is_int(position):
            raise ValidationError(INVALID_BODY)
        if description is not None and not isinstance(description, str):
            raise ValidationError(INVALID_BODY)
        return cls(title=title, description=description, position=position)

    def check(self, message="Title and position are required"):
        if not self.title or self.position <= 0:
            raise ValidationError(message)
        return self


@dataclass(frozen=True)
class ReorderEntry:
    id: int
    position: int

    @classmethod
    def bind(cls, data):
        if not isinstance(data, dict):
            raise ValidationError(INVALID_BODY)
        task_id = data.get("id")
        position = data.get("position")
        if task_id is None:
            task_id = 0
        if position is None:
            position = 0
        if not _is_int(task_id) or not _is_int(position):
            raise ValidationError(INVALID_BODY)
        return cls(id=task_id, position=position)

    def check(self):
        if self.id == 0 or self.position <= 0:
            raise ValidationError("ID and position are required for all tasks")
        return self


def parse_task_payload(data):
    """Return (items, is_array) for a POST /tasks body.

    A non-empty JSON array binds every element; an object binds one task.
    Anything else, an empty array included, is an invalid body. Content
    checks run in array order only once every element has bound.
    """
    if isinstance(data, list):
        if not data:
            raise ValidationError(INVALID_BODY)
        items = [TaskInput.bind(raw) for raw in data]
        for item in items:
            item.check("Title and position are required for all tasks")
        return items, True
    if isinstance(data, dict):
        return [TaskInput.bind(data).check()], False
    raise ValidationError(INVALID_BODY)


def parse_update_payload(data):
    return TaskInput.bind(data).check()


def parse_reorder_payload(data):
    if not isinstance(data, list):
        raise ValidationError(INVALID_BODY)
    entries = [ReorderEntry.bind(raw) for raw in data]
    for entry in entries:
        entry.check()
    return entries
