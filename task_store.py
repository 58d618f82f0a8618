"""
Task persistence, always scoped by owner.

Every query here filters on ``user_id``; a task that belongs to somebody
else behaves exactly like one that does not exist.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from errors import InternalError, NotFound, ValidationError
from models import Task, db, utcnow

logger = logging.getLogger(__name__)

# SQLite INTEGER is a signed 64-bit value; larger ids cannot name a row
MAX_ID = 2**63 - 1


def _field_error(field, message):
    return {"field": field, "message": message}


def _clean_title(title, errors):
    if not isinstance(title, str) or not title.strip():
        errors.append(_field_error("title", "Title is required"))
        return None
    return title.strip()


def _clean_description(description, errors):
    if not isinstance(description, str):
        errors.append(_field_error("description", "Description must be a string"))
        return None
    return description.strip()


@dataclass
class TaskPatch:
    """The fields an update may touch. ``None`` means "leave as is"."""

    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None

    def __post_init__(self):
        errors = []
        if self.title is not None:
            self.title = _clean_title(self.title, errors)
        if self.description is not None:
            self.description = _clean_description(self.description, errors)
        if self.completed is not None and not isinstance(self.completed, bool):
            errors.append(_field_error("completed", "Completed must be a boolean"))
        if errors:
            raise ValidationError(details=errors)

    @classmethod
    def from_json(cls, body):
        return cls(
            title=body.get("title"),
            description=body.get("description"),
            completed=body.get("completed"),
        )

    def to_values(self):
        values = {}
        if self.title is not None:
            values["title"] = self.title
        if self.description is not None:
            values["description"] = self.description
        if self.completed is not None:
            values["completed"] = self.completed
        return values

    def is_empty(self):
        return not self.to_values()


class TaskStore:

    def __init__(self, session=None, clock=utcnow):
        self.session = session if session is not None else db.session
        self.clock = clock

    def _owned(self, user_id):
        return self.session.query(Task).filter_by(user_id=user_id)

    def _owned_task(self, user_id, task_id):
        if not 0 < task_id <= MAX_ID:
            raise NotFound("Task not found")
        return self._owned(user_id).filter_by(id=task_id)

    def list(self, user_id, completed=None):
        """All of the user's tasks, newest first, optionally only (un)completed ones."""
        query = self._owned(user_id)
        if completed is not None:
            query = query.filter_by(completed=completed)
        try:
            return query.order_by(Task.created_at.desc(), Task.id.desc()).all()
        except SQLAlchemyError as exc:
            logger.exception("Listing tasks failed")
            raise InternalError() from exc

    def create(self, user_id, title, description=None):
        errors = []
        title = _clean_title(title, errors)
        if description is None:
            description = ""
        else:
            description = _clean_description(description, errors)
        if errors:
            raise ValidationError(details=errors)

        now = self.clock()
        task = Task(
            user_id=user_id,
            title=title,
            description=description,
            completed=False,
            created_at=now,
            updated_at=now,
        )
        try:
            self.session.add(task)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Task creation failed")
            raise InternalError() from exc

        logger.debug("Task created id=%s user=%s", task.id, user_id)
        return task

    def update(self, user_id, task_id, patch):
        """Apply only the fields present in ``patch`` and bump ``updated_at``.

        Raises NotFound when the user owns no such task and ValidationError
        when the patch is empty, in that order.
        """
        values = patch.to_values()
        scoped = self._owned_task(user_id, task_id)
        try:
            if not values:
                if scoped.first() is None:
                    raise NotFound("Task not found")
                raise ValidationError("No fields to update")

            values["updated_at"] = self.clock()
            matched = scoped.update(values, synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Task update failed")
            raise InternalError() from exc

        if matched == 0:
            raise NotFound("Task not found")
        task = self.session.get(Task, task_id)
        if task is None:
            # deleted between the update and the re-read
            raise NotFound("Task not found")
        logger.debug("Task updated id=%s fields=%s", task_id, sorted(values))
        return task

    def delete(self, user_id, task_id):
        try:
            deleted = self._owned_task(user_id, task_id).delete(synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Task deletion failed")
            raise InternalError() from exc

        if deleted == 0:
            raise NotFound("Task not found")
        logger.debug("Task deleted id=%s user=%s", task_id, user_id)

    def count(self, user_id=None):
        query = self.session.query(Task)
        if user_id is not None:
            query = query.filter_by(user_id=user_id)
        return query.count()
