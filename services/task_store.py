"""Persistence for the tasks table.

All reads and writes go through the Flask-SQLAlchemy session, so a store
instance must be used inside an application context. Any SQLAlchemy error
during a write rolls the session back and surfaces as StorageError.
"""
import logging
from datetime import datetime

import pytz
from sqlalchemy import func, insert
from sqlalchemy.exc import SQLAlchemyError

from models import Task
from services.errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000


def _utcnow():
    return datetime.now(pytz.UTC).replace(tzinfo=None)


class TaskStore:
    def __init__(self, db, batch_size=DEFAULT_BATCH_SIZE):
        self.db = db
        self.batch_size = batch_size

    # ---- reads ----

    def list(self, offset, limit):
        """Return (tasks ordered by position, total row count)."""
        try:
            total = Task.query.count()
            tasks = (
                Task.query.order_by(Task.position.asc())
                .offset(offset)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"list failed: {exc}") from exc
        return tasks, total

    def get_by_id(self, task_id):
        try:
            task = self.db.session.get(Task, task_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"lookup of task {task_id} failed: {exc}") from exc
        if task is None:
            raise NotFoundError(f"Task with ID {task_id} not found")
        return task

    def exists(self, task_id):
        try:
            return self.db.session.query(Task.query.filter_by(id=task_id).exists()).scalar()
        except SQLAlchemyError as exc:
            raise StorageError(f"existence check for task {task_id} failed: {exc}") from exc

    def position_exists(self, position, exclude_id=None):
        query = Task.query.filter(Task.position == position)
        if exclude_id is not None:
            query = query.filter(Task.id != exclude_id)
        try:
            return self.db.session.query(query.exists()).scalar()
        except SQLAlchemyError as exc:
            raise StorageError(f"position check for {position} failed: {exc}") from exc

    def taken_positions(self, positions, exclude_ids=()):
        """Positions from `positions` currently held by tasks outside `exclude_ids`."""
        if not positions:
            return set()
        query = self.db.session.query(Task.position).filter(Task.position.in_(list(positions)))
        if exclude_ids:
            query = query.filter(~Task.id.in_(list(exclude_ids)))
        try:
            return {row[0] for row in query.all()}
        except SQLAlchemyError as exc:
            raise StorageError(f"position lookup failed: {exc}") from exc

    def missing_ids(self, task_ids):
        """Ids from `task_ids` with no stored task, in input order."""
        wanted = list(dict.fromkeys(task_ids))
        if not wanted:
            return []
        try:
            found = {row[0] for row in self.db.session.query(Task.id).filter(Task.id.in_(wanted)).all()}
        except SQLAlchemyError as exc:
            raise StorageError(f"id lookup failed: {exc}") from exc
        return [task_id for task_id in wanted if task_id not in found]

    def next_slot(self):
        """Return (next_id, next_position) following the current maxima."""
        try:
            max_id, max_position = self.db.session.query(
                func.max(Task.id), func.max(Task.position)
            ).one()
        except SQLAlchemyError as exc:
            raise StorageError(f"fetching last task failed: {exc}") from exc
        return (max_id or 0) + 1, (max_position or 0) + 1

    # ---- writes ----

    def _commit(self, action):
        try:
            self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StorageError(f"{action} failed: {exc}") from exc

    def create(self, title, description, position):
        return self.create_many([(title, description, position)])[0]

    def create_many(self, items):
        """Insert every (title, description, position) in one transaction."""
        now = _utcnow()
        tasks = [
            Task(title=title, description=description, position=position,
                 created_at=now, updated_at=now)
            for title, description, position in items
        ]
        try:
            self.db.session.add_all(tasks)
            self.db.session.flush()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StorageError(f"insert of {len(tasks)} task(s) failed: {exc}") from exc
        self._commit(f"insert of {len(tasks)} task(s)")
        return tasks

    def update(self, task_id, title, description, position):
        task = self.get_by_id(task_id)
        task.title = title
        task.description = description
        task.position = position
        task.touch(_utcnow())
        self._commit(f"update of task {task_id}")
        return task

    def delete(self, task_id):
        task = self.get_by_id(task_id)
        self.db.session.delete(task)
        self._commit(f"delete of task {task_id}")

    def delete_all(self):
        try:
            deleted = Task.query.delete()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StorageError(f"delete all failed: {exc}") from exc
        self._commit("delete all")
        return deleted

    def reorder(self, moves):
        """Apply every (task_id, position) move atomically.

        Missing ids are rejected before anything is written. Rows are first
        parked on -id so that swaps never trip the unique position index.
        """
        moves = list(moves)
        missing = self.missing_ids([task_id for task_id, _ in moves])
        if missing:
            raise NotFoundError(f"Task with ID {missing[0]} not found")
        if not moves:
            return

        now = _utcnow()
        session = self.db.session
        try:
            tasks = {
                task.id: task
                for task in Task.query.filter(Task.id.in_([task_id for task_id, _ in moves])).all()
            }
            for task in tasks.values():
                task.position = -task.id
            session.flush()
            for task_id, position in moves:
                task = tasks[task_id]
                task.position = position
                task.touch(now)
            session.flush()
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"reorder of {len(moves)} task(s) failed: {exc}") from exc

    def generate_bulk(self, count, batch_size=None):
        """Insert `count` placeholder tasks numbered on from the current maximum.

        Each batch commits on its own; a failure keeps earlier batches.
        """
        batch_size = batch_size or self.batch_size
        start_id, start_position = self.next_slot()
        logger.info(
            "Generating %d tasks: starting id=%d position=%d batch_size=%d",
            count, start_id, start_position, batch_size,
        )
        session = self.db.session
        inserted = 0
        while inserted < count:
            size = min(batch_size, count - inserted)
            now = _utcnow()
            rows = []
            for offset in range(inserted, inserted + size):
                number = start_id + offset
                rows.append({
                    'title': f"Task {number}",
                    'description': f"Description for task {number}",
                    'position': start_position + offset,
                    'created_at': now,
                    'updated_at': now,
                })
            try:
                session.execute(insert(Task), rows)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error(
                    "Bulk generate stopped: %d of %d tasks committed, failed batch started at position %d: %s",
                    inserted, count, start_position + inserted, exc,
                )
                raise StorageError(f"bulk generate failed after {inserted} task(s): {exc}") from exc
            inserted += size
            logger.debug("Committed batch ending at position %d", start_position + inserted - 1)
        logger.info("Successfully inserted %d dummy tasks", inserted)
        return inserted
