"""
Flow Database Store

CRUD operations for tasks, projects, focus-session history and scalar
settings, backed by SQLite through SQLAlchemy.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence

from sqlalchemy import create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from founderflow.flow.models import Base, FocusSession, Project, Setting, Task
from founderflow.utils.logging import get_logger

logger = get_logger(__name__)


class FlowStore:
    """
    Database store for FounderFlow.

    Returned records are detached copies; the engines keep their own
    in-memory objects and write them back through update/insert.
    """

    def __init__(self, db_path: Optional[str] = None, echo: bool = False):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.founderflow/founderflow.db
            echo: Log emitted SQL
        """
        if db_path is None:
            db_dir = Path.home() / ".founderflow"
            db_dir.mkdir(parents=True, exist_ok=True)
            db_path = str(db_dir / "founderflow.db")

        self.db_path = db_path
        self.engine = create_engine(f"sqlite:///{db_path}", echo=echo)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        Base.metadata.create_all(self.engine)

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def close(self) -> None:
        self.engine.dispose()

    # =========================================================================
    # Task Operations
    # =========================================================================

    def list_tasks(self) -> Sequence[Task]:
        """All tasks in creation order."""
        with self._get_session() as session:
            query = select(Task).order_by(Task.created_at, Task.id)
            return session.scalars(query).all()

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._get_session() as session:
            return session.get(Task, task_id)

    def insert_task(self, task: Task) -> None:
        with self._get_session() as session:
            session.merge(task)
            session.commit()

    def update_task(self, task: Task) -> None:
        with self._get_session() as session:
            session.merge(task)
            session.commit()

    def delete_task(self, task_id: str) -> bool:
        with self._get_session() as session:
            task = session.get(Task, task_id)
            if task:
                session.delete(task)
                session.commit()
                return True
            return False

    # =========================================================================
    # Project Operations
    # =========================================================================

    def list_projects(self) -> Sequence[Project]:
        with self._get_session() as session:
            return session.scalars(select(Project).order_by(Project.name)).all()

    def insert_project(self, project: Project) -> None:
        with self._get_session() as session:
            session.merge(project)
            session.commit()

    def update_project(self, project: Project) -> None:
        with self._get_session() as session:
            session.merge(project)
            session.commit()

    def delete_project(self, project_id: str) -> bool:
        with self._get_session() as session:
            result = session.execute(delete(Project).where(Project.id == project_id))
            session.commit()
            return result.rowcount > 0

    def rename_project(self, project: Project, tasks: Iterable[Task]) -> None:
        """Write a renamed project and its re-pointed tasks in one transaction."""
        with self._get_session() as session:
            with session.begin():
                session.merge(project)
                for task in tasks:
                    session.merge(task)

    # =========================================================================
    # Focus Session History
    # =========================================================================

    def insert_focus_session(self, record: FocusSession) -> None:
        with self._get_session() as session:
            session.merge(record)
            session.commit()

    def recent_focus_sessions(self, limit: int = 50) -> Sequence[FocusSession]:
        """Most recent sessions first, by start time."""
        with self._get_session() as session:
            query = (
                select(FocusSession)
                .order_by(FocusSession.started_at.desc())
                .limit(limit)
            )
            return session.scalars(query).all()

    # =========================================================================
    # Settings (scalar key/value)
    # =========================================================================

    def get_setting(self, key: str) -> Optional[str]:
        with self._get_session() as session:
            row = session.get(Setting, key)
            return row.value if row else None

    def set_setting(self, key: str, value: str) -> None:
        with self._get_session() as session:
            session.merge(Setting(key=key, value=value))
            session.commit()


def persist(action: str, write: Callable[..., Any], *args: Any) -> bool:
    """
    Run a storage write, logging failures instead of raising.

    In-memory state is authoritative: a failed write is not rolled back.
    """
    try:
        write(*args)
        return True
    except SQLAlchemyError as e:
        logger.error("storage_write_failed", action=action, error=str(e))
        return False
