"""Database CRUD operations for users and tasks.

Every task function takes the owner id and filters on it; a task owned by
someone else behaves exactly like a missing one.
"""

from datetime import datetime, timezone

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError

from . import db
from .models import User, Task, TaskTag
from .logger import logger
from .query import TaskQuery
from .utils import escape_like


# ==================== User Operations ====================


async def insert_user(name: str, email: str, hashed_password: str) -> User:
    """Insert a new user with hashed password. Raises ValueError on duplicate email."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                user = User(
                    name=name,
                    email=email,
                    hashed_password=hashed_password,
                    last_login=datetime.now(timezone.utc),
                )
                session.add(user)
            return user
        except IntegrityError as e:
            logger.debug(f"Duplicate email rejected: {email}")
            raise ValueError("duplicate email") from e


async def select_user_by_email(email: str) -> User | None:
    """Retrieve a user (including the password hash) by email address."""
    async with db.async_session() as session:
        result = await session.execute(select(User).where(User.email == email))
        return result.scalars().first()


async def select_user(user_id: str) -> User | None:
    """Retrieve a user by ID."""
    async with db.async_session() as session:
        return await session.get(User, user_id)


async def email_taken_by_other(email: str, user_id: str) -> bool:
    """True if a different user already owns this email."""
    async with db.async_session() as session:
        stmt = select(User.id).where(User.email == email, User.id != user_id)
        result = await session.execute(stmt)
        return result.first() is not None


async def update_user(user_id: str, fields: dict) -> User | None:
    """Apply a partial update to a user. Returns None if the user does not exist.

    Raises ValueError on duplicate email.
    """
    async with db.async_session() as session:
        try:
            async with session.begin():
                user = await session.get(User, user_id)
                if user is None:
                    return None
                for key, value in fields.items():
                    setattr(user, key, value)
                user.updated_at = datetime.now(timezone.utc)
            return user
        except IntegrityError as e:
            logger.debug(f"Duplicate email rejected on update: user={user_id}")
            raise ValueError("duplicate email") from e


async def touch_last_login(user_id: str) -> datetime:
    """Record a successful login and return the new timestamp."""
    now = datetime.now(timezone.utc)
    async with db.async_session() as session:
        async with session.begin():
            user = await session.get(User, user_id)
            if user is not None:
                user.last_login = now
    return now


# ==================== Task Operations ====================


async def insert_task(owner_id: str, fields: dict) -> Task:
    """Insert a task bound to its owner."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                task = Task(owner_id=owner_id, **fields)
                session.add(task)
            return task
        except Exception:
            logger.error(f"Failed to create task for owner={owner_id}", exc_info=True)
            raise


async def select_task(owner_id: str, task_id: str) -> Task | None:
    """Retrieve a task by ID, only if it belongs to owner_id."""
    async with db.async_session() as session:
        stmt = select(Task).where(Task.id == task_id, Task.owner_id == owner_id)
        result = await session.execute(stmt)
        return result.scalars().first()


async def update_task(owner_id: str, task_id: str, fields: dict) -> Task | None:
    """Apply a partial update to an owned task. Returns None if no such owned task exists."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                stmt = select(Task).where(Task.id == task_id, Task.owner_id == owner_id)
                task = (await session.execute(stmt)).scalars().first()
                if task is None:
                    return None
                for key, value in fields.items():
                    setattr(task, key, value)
                task.updated_at = datetime.now(timezone.utc)
            return task
        except Exception:
            logger.error(f"Failed to update task id={task_id} owner={owner_id}", exc_info=True)
            raise


async def delete_task(owner_id: str, task_id: str) -> bool:
    """Permanently delete an owned task. Returns False if no such owned task exists."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                stmt = select(Task).where(Task.id == task_id, Task.owner_id == owner_id)
                task = (await session.execute(stmt)).scalars().first()
                if task is None:
                    return False
                # tag rows go with it (delete-orphan cascade)
                await session.delete(task)
            return True
        except Exception:
            logger.error(f"Failed to delete task id={task_id} owner={owner_id}", exc_info=True)
            raise


def _task_conditions(query: TaskQuery) -> list:
    """SQL conditions for a validated query; the owner condition is always first."""
    conditions: list = [Task.owner_id == query.owner_id]
    if query.status is not None:
        conditions.append(Task.status == query.status.value)
    if query.priority is not None:
        conditions.append(Task.priority == query.priority.value)
    if query.search:
        pattern = f"%{escape_like(query.search)}%"
        conditions.append(
            or_(
                Task.title.ilike(pattern, escape="\\"),
                Task.description.ilike(pattern, escape="\\"),
                Task.tag_rows.any(TaskTag.value.ilike(pattern, escape="\\")),
            )
        )
    return conditions


async def list_tasks(query: TaskQuery) -> tuple[list[Task], int]:
    """List tasks matching a query. Returns one page of tasks and the total match count."""
    async with db.async_session() as session:
        try:
            conditions = _task_conditions(query)
            # Total count w/ same filters
            count_stmt = select(func.count()).select_from(Task).where(*conditions)
            total = (await session.execute(count_stmt)).scalar() or 0
            if query.skip >= total:
                return [], total

            sort_column = getattr(Task, query.sort_column)
            if query.descending:
                order = (sort_column.desc(), Task.id.desc())
            else:
                order = (sort_column.asc(), Task.id.asc())
            stmt = (
                select(Task)
                .where(*conditions)
                .order_by(*order)
                .offset(query.skip)
                .limit(query.limit)
            )
            tasks = (await session.execute(stmt)).scalars().all()
            logger.debug(f"Task query executed: returned {len(tasks)} tasks out of {total} total")
            return list(tasks), total
        except Exception:
            logger.error(f"Failed to list tasks for owner={query.owner_id}", exc_info=True)
            raise


# ==================== Aggregations ====================


async def count_tasks_by(owner_id: str, column_name: str) -> dict[str, int]:
    """Group an owner's tasks by 'status' or 'priority' and count each group."""
    column = getattr(Task, column_name)
    async with db.async_session() as session:
        stmt = (
            select(column, func.count())
            .where(Task.owner_id == owner_id)
            .group_by(column)
        )
        result = await session.execute(stmt)
        return {value: count for value, count in result.all()}
