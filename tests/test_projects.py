"""
Tests for the project catalogue.
"""

import pytest

from founderflow.flow import FlowStore, ProjectManager, TaskLifecycle
from founderflow.flow.projects import DEFAULT_PROJECTS


@pytest.fixture
def projects(state, store, clock):
    return ProjectManager(state, store, clock=clock)


@pytest.fixture
def lifecycle(state, store, clock):
    return TaskLifecycle(state, store, clock=clock)


class TestProjectManager:
    def test_create(self, projects, store):
        project = projects.create_project("  Product ", "#4ea1ff")
        assert project.name == "Product"
        assert [p.name for p in store.list_projects()] == ["Product"]

    def test_create_existing_name_returns_it(self, projects):
        first = projects.create_project("Product")
        assert projects.create_project("Product") is first

    def test_rename_cascades_to_tasks(self, projects, lifecycle, db_path, clock):
        project = projects.create_project("Product")
        tagged = lifecycle.add_task(title="Roadmap", project_id="Product")
        other = lifecycle.add_task(title="Hire", project_id="Hiring")
        clock.advance(minutes=1)

        renamed = projects.rename_project(project.id, "Core", "#000000")

        assert renamed.name == "Core"
        assert renamed.color == "#000000"
        assert tagged.project_id == "Core"
        assert tagged.updated_at == clock.now
        assert other.project_id == "Hiring"

        reopened = FlowStore(db_path=db_path)
        assert [p.name for p in reopened.list_projects()] == ["Core"]
        assert reopened.get_task(tagged.id).project_id == "Core"
        reopened.close()

    def test_rename_to_taken_name(self, projects):
        product = projects.create_project("Product")
        projects.create_project("Hiring")
        assert projects.rename_project(product.id, "Hiring") is None
        assert product.name == "Product"

    def test_rename_unknown(self, projects):
        assert projects.rename_project("missing", "Core") is None

    def test_toggle_pin(self, projects, store):
        project = projects.create_project("Product")
        assert projects.toggle_pin(project.id).pinned is True
        assert store.list_projects()[0].pinned is True
        assert projects.toggle_pin(project.id).pinned is False

    def test_delete_leaves_tasks_alone(self, projects, lifecycle, state, store):
        project = projects.create_project("Product")
        task = lifecycle.add_task(title="Roadmap", project_id="Product")

        assert projects.delete_project(project.id) is True
        assert project.id not in state.projects
        assert store.list_projects() == []
        assert task.project_id == "Product"
        assert projects.delete_project(project.id) is False

    def test_seed_defaults_once(self, projects):
        seeded = projects.seed_defaults()
        assert [p.name for p in seeded] == [name for name, _ in DEFAULT_PROJECTS]
        assert all(p.pinned for p in seeded)
        assert projects.seed_defaults() == []
