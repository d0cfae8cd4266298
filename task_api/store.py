from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from task_api import models, schemas
from task_api.errors import InvalidError, NotFoundError, StoreError
from task_api.logger import logger


class TaskStore(ABC):
    """Persistence boundary for tasks.

    Implementations raise ``NotFoundError`` for unknown ids, ``InvalidError``
    for records that break a business rule, and ``StoreError`` for anything
    else the backend reports.
    """

    @abstractmethod
    def list_tasks(self, completed: Optional[bool] = None) -> list[schemas.Task]:
        """Return all tasks, or only those whose completed flag matches"""

    @abstractmethod
    def get_task(self, task_id: int) -> schemas.Task:
        """Return a single task"""

    @abstractmethod
    def create_task(self, task: schemas.Task) -> schemas.Task:
        """Persist a new task, filling in id, completed and timestamps"""

    @abstractmethod
    def update_task(self, task: schemas.Task) -> schemas.Task:
        """Replace title, description and completed of an existing task"""

    @abstractmethod
    def delete_task(self, task_id: int) -> None:
        """Remove a task permanently"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_title(task: schemas.Task) -> None:
    if not task.title or not task.title.strip():
        raise InvalidError("title is required")


class SQLTaskStore(TaskStore):
    """TaskStore backed by the ``tasks`` table through SQLAlchemy"""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def list_tasks(self, completed: Optional[bool] = None) -> list[schemas.Task]:
        query = select(models.Task)
        if completed is not None:
            query = query.where(models.Task.completed == completed)
        query = query.order_by(models.Task.id)
        try:
            with self.session_factory() as db:
                rows = db.scalars(query).all()
                return [schemas.Task.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching tasks: {str(e)}")
            raise StoreError("failed to fetch tasks") from e

    def get_task(self, task_id: int) -> schemas.Task:
        try:
            with self.session_factory() as db:
                row = db.get(models.Task, task_id)
                if row is None:
                    raise NotFoundError()
                return schemas.Task.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching task {task_id}: {str(e)}")
            raise StoreError(f"failed to fetch task {task_id}") from e

    def create_task(self, task: schemas.Task) -> schemas.Task:
        _require_title(task)
        now = _utcnow()
        db_task = models.Task(
            title=task.title,
            description=task.description,
            completed=False,
            created_at=now,
            updated_at=now,
        )
        with self.session_factory() as db:
            try:
                db.add(db_task)
                db.commit()
                task_id = db_task.id
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error creating task: {str(e)}")
                raise StoreError("failed to create task") from e

        task.id = task_id
        task.completed = False
        task.created_at = now
        task.updated_at = now
        logger.info(f"Created task with ID: {task.id}")
        return task

    def update_task(self, task: schemas.Task) -> schemas.Task:
        if task.id <= 0:
            raise InvalidError("invalid id")
        _require_title(task)
        now = _utcnow()
        statement = (
            update(models.Task)
            .where(models.Task.id == task.id)
            .values(
                title=task.title,
                description=task.description,
                completed=task.completed,
                updated_at=now,
            )
        )
        with self.session_factory() as db:
            try:
                matched = db.execute(statement).rowcount
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error updating task {task.id}: {str(e)}")
                raise StoreError(f"failed to update task {task.id}") from e

        if matched == 0:
            raise NotFoundError()
        task.updated_at = now
        logger.info(f"Updated task with ID: {task.id}")
        return task

    def delete_task(self, task_id: int) -> None:
        statement = delete(models.Task).where(models.Task.id == task_id)
        with self.session_factory() as db:
            try:
                matched = db.execute(statement).rowcount
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error deleting task {task_id}: {str(e)}")
                raise StoreError(f"failed to delete task {task_id}") from e

        if matched == 0:
            raise NotFoundError()
        logger.info(f"Deleted task with ID: {task_id}")
