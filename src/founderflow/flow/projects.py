"""
Project Catalogue

Projects are labels. Tasks store the project *name*, so renaming a
project rewrites every task that used the old name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from founderflow.flow.models import AppState, Project, new_id
from founderflow.flow.store import persist
from founderflow.utils.clock import Clock, now_ms
from founderflow.utils.logging import get_logger

if TYPE_CHECKING:
    from founderflow.flow.store import FlowStore

logger = get_logger(__name__)

DEFAULT_PROJECTS = [
    ("Fundraising", "#f0b429"),
    ("Product", "#4ea1ff"),
    ("Hiring", "#35d07f"),
]


class ProjectManager:
    """Create, rename, pin and delete projects."""

    def __init__(self, state: AppState, store: "FlowStore", clock: Clock = now_ms):
        self.state = state
        self.store = store
        self.clock = clock

    def find_by_name(self, name: str) -> Optional[Project]:
        for project in self.state.projects.values():
            if project.name == name:
                return project
        return None

    def create_project(self, name: str, color: Optional[str] = None) -> Project:
        """Create a project; an existing name returns the existing project."""
        name = name.strip()
        existing = self.find_by_name(name)
        if existing is not None:
            return existing

        project = Project(id=new_id(), name=name, color=color, pinned=False)
        self.state.projects[project.id] = project
        persist("project_insert", self.store.insert_project, project)
        logger.info(f"Created project: {name}")
        return project

    def rename_project(
        self, project_id: str, new_name: str, new_color: Optional[str] = None
    ) -> Optional[Project]:
        """
        Rename a project and re-point its tasks.

        Returns None if the project is unknown or the name is taken.
        """
        project = self.state.projects.get(project_id)
        if project is None:
            return None

        new_name = new_name.strip()
        clash = self.find_by_name(new_name)
        if clash is not None and clash.id != project_id:
            logger.warning(f"Project name already in use: {new_name}")
            return None

        old_name = project.name
        project.name = new_name
        if new_color:
            project.color = new_color

        now = self.clock()
        moved = [t for t in self.state.tasks.values() if t.project_id == old_name]
        for task in moved:
            task.project_id = new_name
            task.updated_at = now

        persist("project_rename", self.store.rename_project, project, moved)
        logger.info(f"Renamed project {old_name!r} -> {new_name!r} ({len(moved)} tasks)")
        return project

    def toggle_pin(self, project_id: str) -> Optional[Project]:
        project = self.state.projects.get(project_id)
        if project is None:
            return None
        project.pinned = not project.pinned
        persist("project_update", self.store.update_project, project)
        return project

    def delete_project(self, project_id: str) -> bool:
        """Delete the label only; tasks keep the name they carry."""
        if self.state.projects.pop(project_id, None) is None:
            return False
        persist("project_delete", self.store.delete_project, project_id)
        return True

    def seed_defaults(self) -> list[Project]:
        """Populate a starter set of pinned projects when there are none."""
        if self.state.projects:
            return []
        seeded = []
        for name, color in DEFAULT_PROJECTS:
            project = self.create_project(name, color)
            project.pinned = True
            persist("project_update", self.store.update_project, project)
            seeded.append(project)
        return seeded
