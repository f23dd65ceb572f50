import pytest

from services.errors import ValidationError
from services.validation_service import (
    ReorderEntry,
    TaskInput,
    parse_positive_int,
    parse_reorder_payload,
    parse_task_payload,
    parse_update_payload,
)


@pytest.mark.parametrize("raw, expected", [
    ("1", 1),
    ("+7", 7),
    ("010", 10),
    ("0", None),
    ("-2", None),
    ("1.5", None),
    (" 3", None),
    ("", None),
    (None, None),
])
def test_parse_positive_int(raw, expected):
    assert parse_positive_int(raw) == expected


def test_task_input_treats_missing_fields_as_empty():
    item = TaskInput.bind({})
    assert item == TaskInput(title="", description=None, position=0)
    with pytest.raises(ValidationError, match="Title and position are required"):
        item.check()


def test_task_input_rejects_wrong_types():
    for data in ({"title": "A", "position": True}, {"title": "A", "position": 1.0}, {"title": "A", "position": 1, "description": 3}):
        with pytest.raises(ValidationError, match="Invalid request body"):
            TaskInput.bind(data)


def test_whitespace_title_is_not_empty():
    item = parse_update_payload({"title": "   ", "position": 1})
    assert item.title == "   "


def test_integers_outside_64_bits_are_rejected():
    assert parse_positive_int(str(2 ** 63 - 1)) == 2 ** 63 - 1
    assert parse_positive_int(str(2 ** 63)) is None
    assert parse_positive_int("99999999999999999999") is None
    for position in (2 ** 63, -(2 ** 63) - 1, 10 ** 20):
        with pytest.raises(ValidationError, match="Invalid request body"):
            TaskInput.bind({"title": "A", "position": position})
    with pytest.raises(ValidationError, match="Invalid request body"):
        ReorderEntry.bind({"id": 10 ** 20, "position": 1})


def test_parse_task_payload_object_and_array():
    items, is_array = parse_task_payload({"title": "A", "position": 1})
    assert not is_array
    assert items == [TaskInput("A", None, 1)]

    items, is_array = parse_task_payload([{"title": "A", "position": 1}, {"title": "B", "description": "b", "position": 2}])
    assert is_array
    assert [i.position for i in items] == [1, 2]


def test_parse_task_payload_type_errors_win_over_missing_fields():
    with pytest.raises(ValidationError, match="Invalid request body"):
        parse_task_payload([{"title": ""}, {"title": "B", "position": "2"}])


def test_parse_reorder_payload():
    entries = parse_reorder_payload([{"id": 3, "position": 1}, {"id": 1, "position": 2}])
    assert entries == [ReorderEntry(3, 1), ReorderEntry(1, 2)]
    assert parse_reorder_payload([]) == []

    with pytest.raises(ValidationError, match="ID and position are required"):
        parse_reorder_payload([{"id": 0, "position": 1}])
    with pytest.raises(ValidationError, match="Invalid request body"):
        parse_reorder_payload({"id": 1, "position": 1})
