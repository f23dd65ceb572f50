from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from models import Task, db
from services.errors import NotFoundError, StorageError


def _positions(store):
    return {task.id: task.position for task in Task.query.all()}


def test_create_assigns_id_and_timestamps(store):
    task = store.create("A", "desc", 1)
    assert task.id == 1
    assert task.position == 1
    assert task.created_at is not None
    assert task.updated_at == task.created_at


def test_create_at_taken_position_raises_storage_error(store, seeded):
    with pytest.raises(StorageError):
        store.create("dup", None, 2)
    assert Task.query.count() == 3


def test_create_many_is_all_or_nothing(store, seeded):
    with pytest.raises(StorageError):
        store.create_many([("D", None, 4), ("E", None, 1)])
    assert Task.query.count() == 3
    assert not store.position_exists(4)


def test_list_orders_by_position_and_counts_all_rows(store):
    store.create_many([("late", None, 30), ("early", None, 10), ("mid", None, 20)])
    tasks, total = store.list(0, 2)
    assert [t.title for t in tasks] == ["early", "mid"]
    assert total == 3
    tasks, total = store.list(2, 2)
    assert [t.title for t in tasks] == ["late"]
    assert total == 3


def test_get_by_id_missing_raises(store):
    with pytest.raises(NotFoundError):
        store.get_by_id(42)


def test_exists_and_position_exists(store, seeded):
    assert store.exists(seeded[0].id)
    assert not store.exists(999)
    assert store.position_exists(2)
    assert not store.position_exists(2, exclude_id=seeded[1].id)
    assert not store.position_exists(7)


def test_update_overwrites_fields_and_refreshes_updated_at(store, seeded):
    task = seeded[0]
    before = task.updated_at
    updated = store.update(task.id, "A2", None, 10)
    assert updated.title == "A2"
    assert updated.description is None
    assert updated.position == 10
    assert updated.updated_at >= before


def test_update_never_moves_updated_at_backwards(store, seeded):
    task = seeded[0]
    future = task.updated_at + timedelta(days=1)
    task.updated_at = future
    db.session.commit()
    store.update(task.id, "A", "first", 1)
    assert store.get_by_id(task.id).updated_at == future


def test_update_missing_raises(store):
    with pytest.raises(NotFoundError):
        store.update(5, "x", None, 1)


def test_delete_removes_exactly_one_row(store, seeded):
    store.delete(seeded[1].id)
    assert Task.query.count() == 2
    assert not store.exists(seeded[1].id)
    with pytest.raises(NotFoundError):
        store.delete(seeded[1].id)


def test_delete_all_returns_count(store, seeded):
    assert store.delete_all() == 3
    assert Task.query.count() == 0


def test_reorder_swaps_positions(store, seeded):
    a, b, c = seeded
    store.reorder([(a.id, 3), (c.id, 1)])
    assert _positions(store) == {a.id: 3, b.id: 2, c.id: 1}


def test_reorder_unknown_id_changes_nothing(store, seeded):
    a, _, _ = seeded
    with pytest.raises(NotFoundError):
        store.reorder([(a.id, 9), (404, 10)])
    assert _positions(store)[a.id] == 1


def test_reorder_rolls_back_on_commit_failure(store, seeded, monkeypatch):
    a, b, c = seeded
    before = _positions(store)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db.session, "commit", failing_commit)
    with pytest.raises(StorageError):
        store.reorder([(a.id, 2), (b.id, 1), (c.id, 7)])
    monkeypatch.undo()

    db.session.expire_all()
    assert _positions(store) == before


def test_reorder_collision_with_outside_task_rolls_back(store, seeded):
    a, b, _ = seeded
    with pytest.raises(StorageError):
        store.reorder([(a.id, 5), (b.id, 3)])
    db.session.expire_all()
    assert _positions(store)[a.id] == 1
    assert _positions(store)[b.id] == 2


def test_generate_bulk_on_empty_table(store):
    assert store.generate_bulk(5) == 5
    tasks = Task.query.order_by(Task.id).all()
    assert [t.position for t in tasks] == [1, 2, 3, 4, 5]
    assert tasks[0].title == "Task 1"
    assert tasks[-1].description == "Description for task 5"


def test_generate_bulk_continues_from_maximum(store):
    store.create("existing", None, 40)
    store.generate_bulk(2500, batch_size=1000)
    tasks = Task.query.order_by(Task.id).all()
    assert len(tasks) == 2501
    generated = tasks[1:]
    ids = [t.id for t in generated]
    positions = [t.position for t in generated]
    assert ids == sorted(ids) and len(set(ids)) == len(ids)
    assert ids[0] > 1
    assert positions == list(range(41, 41 + 2500))
    assert generated[0].title == "Task 2"


def test_generate_bulk_keeps_committed_batches_on_failure(store, monkeypatch):
    real_execute = db.session.execute
    calls = {"n": 0}

    def flaky_execute(statement, *args, **kwargs):
        if args and isinstance(args[0], list):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("INSERT", {}, Exception("disk full"))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db.session, "execute", flaky_execute)
    with pytest.raises(StorageError):
        store.generate_bulk(25, batch_size=10)
    monkeypatch.undo()

    assert Task.query.count() == 10


def test_next_slot(store):
    assert store.next_slot() == (1, 1)
    store.create("x", None, 8)
    assert store.next_slot() == (2, 9)
