"""HTTP handlers for the /tasks resource.

Handlers take the current `request` and a `store` (TaskStore) as keyword
arguments and return a (response, status) pair. Client errors are raised as
TaskServiceError subclasses and rendered by the app-level error handler.
"""
import logging

from flask import jsonify

from services.errors import ConflictError, NotFoundError, StorageError, ValidationError
from services.validation_service import (
    INVALID_BODY,
    MAX_INT,
    parse_positive_int,
    parse_reorder_payload,
    parse_task_payload,
    parse_update_payload,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_MAX_GENERATE = 1_000_000


def _storage_failure(message, exc):
    logger.exception("%s: %s", message, exc.message)
    return StorageError(message)


def _parse_task_id(raw_id):
    task_id = parse_positive_int(raw_id)
    if task_id is None:
        raise ValidationError("Invalid task ID")
    return task_id


def _require_task(store, task_id):
    try:
        found = store.exists(task_id)
    except StorageError as exc:
        raise _storage_failure("Failed to check task existence", exc) from exc
    if not found:
        raise NotFoundError("Task not found")


def _json_body(request):
    data = request.get_json(force=True, silent=True)
    if data is None:
        raise ValidationError(INVALID_BODY)
    return data


def list_tasks_route(*, request, store, default_limit=DEFAULT_LIMIT):
    page = parse_positive_int(request.args.get('page', str(DEFAULT_PAGE)))
    if page is None:
        raise ValidationError("Invalid page value")
    limit = parse_positive_int(request.args.get('limit', str(default_limit)))
    if limit is None:
        raise ValidationError("Invalid limit value")

    try:
        tasks, total = store.list(min((page - 1) * limit, MAX_INT), limit)
    except StorageError as exc:
        raise _storage_failure("Failed to fetch tasks", exc) from exc

    return jsonify({
        '_totalTasks': total,
        'page': page,
        'limit': limit,
        'tasks': [task.to_dict() for task in tasks],
    }), 200


def get_task_route(raw_id, *, store):
    task_id = _parse_task_id(raw_id)
    try:
        task = store.get_by_id(task_id)
    except NotFoundError:
        raise NotFoundError("Task not found")
    except StorageError as exc:
        raise _storage_failure("Failed to fetch task", exc) from exc
    return jsonify(task.to_dict()), 200


def create_tasks_route(*, request, store):
    """Create one task from an object body, or several from an array body.

    Every item is validated and checked against stored positions, in order,
    before anything is written. An array is then inserted in one
    transaction, so a rejected request leaves no rows behind.
    """
    logger.debug("Received payload: %s", request.get_data(as_text=True))
    items, is_array = parse_task_payload(_json_body(request))
    logger.debug("Decoded as %s", "an array of tasks" if is_array else "a single task")

    seen = set()
    for item in items:
        if item.position in seen:
            raise ConflictError(f"Position {item.position} already exists")
        seen.add(item.position)
        try:
            taken = store.position_exists(item.position)
        except StorageError as exc:
            raise _storage_failure("Failed to check position existence", exc) from exc
        if taken:
            raise ConflictError(f"Position {item.position} already exists")

    rows = [(item.title, item.description, item.position) for item in items]
    if not is_array:
        try:
            task = store.create(*rows[0])
        except StorageError as exc:
            raise _storage_failure("Failed to add task", exc) from exc
        return jsonify(task.to_dict()), 201

    try:
        created = store.create_many(rows)
    except StorageError as exc:
        raise _storage_failure("Failed to add tasks", exc) from exc
    return jsonify([task.to_dict() for task in created]), 201


def generate_tasks_route(*, request, store, max_count=DEFAULT_MAX_GENERATE):
    raw_count = request.args.get('count', '')
    if raw_count == '':
        raise ValidationError("Count parameter is required")
    count = parse_positive_int(raw_count)
    if count is None or count > max_count:
        raise ValidationError("Invalid count value")

    try:
        store.generate_bulk(count)
    except StorageError as exc:
        raise _storage_failure("Failed to generate dummy tasks", exc) from exc
    return jsonify({'message': f"Successfully generated {count} dummy tasks"}), 200


def update_task_route(raw_id, *, request, store):
    task_id = _parse_task_id(raw_id)
    _require_task(store, task_id)
    data = parse_update_payload(_json_body(request))

    try:
        taken = store.position_exists(data.position, exclude_id=task_id)
    except StorageError as exc:
        raise _storage_failure("Failed to check position existence", exc) from exc
    if taken:
        raise ConflictError(f"Position {data.position} already exists")

    try:
        store.update(task_id, data.title, data.description, data.position)
    except NotFoundError:
        raise NotFoundError("Task not found")
    except StorageError as exc:
        raise _storage_failure("Failed to update task", exc) from exc
    return jsonify({'message': "Task updated successfully"}), 200


def delete_task_route(raw_id, *, store):
    task_id = _parse_task_id(raw_id)
    _require_task(store, task_id)
    try:
        store.delete(task_id)
    except NotFoundError:
        raise NotFoundError("Task not found")
    except StorageError as exc:
        raise _storage_failure("Failed to delete task", exc) from exc
    return jsonify({'message': "Task deleted successfully"}), 200


def delete_all_tasks_route(*, store):
    try:
        deleted = store.delete_all()
    except StorageError as exc:
        raise _storage_failure("Failed to delete all tasks", exc) from exc
    logger.info("Deleted %d tasks", deleted)
    return jsonify({'message': "All tasks deleted successfully"}), 200


def reorder_tasks_route(*, request, store):
    entries = parse_reorder_payload(_json_body(request))

    try:
        missing = store.missing_ids([entry.id for entry in entries])
    except StorageError as exc:
        raise _storage_failure("Failed to check task existence", exc) from exc
    if missing:
        raise NotFoundError(f"Task with ID {missing[0]} not found")

    targets = {}
    for entry in entries:
        targets[entry.id] = entry.position
    seen = set()
    for position in targets.values():
        if position in seen:
            raise ConflictError(f"Position {position} is assigned more than once")
        seen.add(position)
    try:
        taken = store.taken_positions(seen, exclude_ids=targets.keys())
    except StorageError as exc:
        raise _storage_failure("Failed to check position existence", exc) from exc
    if taken:
        raise ConflictError(f"Position {min(taken)} already exists")

    try:
        store.reorder(targets.items())
    except StorageError as exc:
        raise _storage_failure("Failed to reorder tasks", exc) from exc
    return jsonify({'message': "Tasks reordered successfully"}), 200
