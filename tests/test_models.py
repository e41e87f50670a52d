"""Tests for plan, task and ledger models."""

import pytest
from pydantic import ValidationError

from delivery_orchestrator.plans.models import (
	AgentRole,
	AgentTaskRecord,
	DispatchPayload,
	Phase,
	ProjectPlan,
	Task,
	TaskStatus,
	TechnicalLevel,
)

from .helpers import make_plan


class TestTaskStatus:
	"""Tests for ledger status transitions."""

	def test_terminal_statuses(self):
		"""Only completed and failed are terminal."""
		assert TaskStatus.COMPLETED.is_terminal
		assert TaskStatus.FAILED.is_terminal
		assert not TaskStatus.PENDING.is_terminal
		assert not TaskStatus.QUEUED.is_terminal
		assert not TaskStatus.IN_PROGRESS.is_terminal

	def test_forward_transitions_allowed(self):
		"""The documented forward transitions are legal."""
		assert TaskStatus.can_transition(TaskStatus.PENDING, TaskStatus.QUEUED)
		assert TaskStatus.can_transition(TaskStatus.QUEUED, TaskStatus.IN_PROGRESS)
		assert TaskStatus.can_transition(TaskStatus.QUEUED, TaskStatus.FAILED)
		assert TaskStatus.can_transition(TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)

	def test_terminal_statuses_never_move(self):
		"""Nothing leaves completed or failed."""
		for dst in TaskStatus:
			assert not TaskStatus.can_transition(TaskStatus.COMPLETED, dst)
			assert not TaskStatus.can_transition(TaskStatus.FAILED, dst)

	def test_pending_cannot_skip_queue(self):
		"""A pending task must be queued before it can finish."""
		assert not TaskStatus.can_transition(TaskStatus.PENDING, TaskStatus.COMPLETED)
		assert not TaskStatus.can_transition(TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


class TestAgentRole:
	"""Tests for role name normalization."""

	@pytest.mark.parametrize("name,expected", [
		("FullStack", AgentRole.FULL_STACK),
		("FULL_STACK", AgentRole.FULL_STACK),
		("FullStackEngineerAgent", AgentRole.FULL_STACK),
		("full_stack_engineer", AgentRole.FULL_STACK),
		("qa_engineer", AgentRole.QA),
		("QAEngineerAgent", AgentRole.QA),
		("SolutionsArchitectAgent", AgentRole.SOLUTIONS_ARCHITECT),
		("devops", AgentRole.DEVOPS),
		("docs", AgentRole.DOCUMENTATION),
	])
	def test_parse_aliases(self, name, expected):
		"""Legacy and casing variants resolve to one role."""
		assert AgentRole.parse(name) == expected

	def test_parse_unknown_raises(self):
		"""Unknown roles are rejected."""
		with pytest.raises(ValueError):
			AgentRole.parse("Astronaut")

	def test_task_coerces_agent_name(self):
		"""Task accepts legacy agent names."""
		task = Task(task_id="T1", description="x", agent="QAEngineerAgent")
		assert task.agent == AgentRole.QA

	def test_task_rejects_unknown_agent(self):
		"""Task validation fails for an unknown agent."""
		with pytest.raises(ValidationError):
			Task.model_validate({"task_id": "T1", "description": "x", "agent": "Astronaut"})


class TestTechnicalLevel:
	def test_ordinals_increase(self):
		"""noCode < business < technical < expert."""
		levels = [TechnicalLevel.NO_CODE, TechnicalLevel.BUSINESS, TechnicalLevel.TECHNICAL, TechnicalLevel.EXPERT]
		assert [lvl.ordinal for lvl in levels] == [1, 2, 3, 4]


class TestProjectPlan:
	"""Tests for plan structure and progress."""

	def test_duplicate_task_ids_rejected(self):
		"""Task ids are unique across phases."""
		with pytest.raises(ValidationError):
			ProjectPlan(phases=[
				Phase(name="A", tasks=[Task(task_id="T1", description="a")]),
				Phase(name="B", tasks=[Task(task_id="T1", description="b")]),
			])

	def test_phase_accepts_phase_name_alias(self):
		"""Plans produced by the model may use phase_name."""
		plan = ProjectPlan.model_validate({
			"phases": [{"phase_name": "Development", "tasks": [{"task_id": "T1", "description": "x"}]}],
		})
		assert plan.phases[0].name == "Development"

	def test_find_task(self):
		"""find_task searches every phase."""
		plan = make_plan()
		assert plan.find_task("T2").agent == AgentRole.QA
		assert plan.find_task("missing") is None

	def test_add_tasks_creates_phase(self):
		"""add_tasks appends a new phase when needed."""
		plan = make_plan()
		plan.add_tasks("Manager Tasks", [Task(task_id="T3", description="Write docs", agent="Documentation")])
		assert plan.phases[-1].name == "Manager Tasks"
		assert plan.find_task("T3") is not None

	def test_add_tasks_rejects_duplicates(self):
		"""add_tasks refuses ids already in the plan and changes nothing."""
		plan = make_plan()
		with pytest.raises(ValueError):
			plan.add_tasks("Manager Tasks", [Task(task_id="T1", description="again")])
		assert len(plan.phases) == 1

	def test_progress_uses_ledger_statuses(self):
		"""Ledger rows override the plan's own task status."""
		plan = make_plan()
		records = [
			AgentTaskRecord(project_id=1, task_id_ref="T1", agent_type="FullStack",
				task_description="x", status=TaskStatus.COMPLETED),
			AgentTaskRecord(project_id=1, task_id_ref="T2", agent_type="QA",
				task_description="y", status=TaskStatus.QUEUED),
		]
		progress = plan.get_progress(records)
		assert progress["total_tasks"] == 2
		assert progress["completed_tasks"] == 1
		assert progress["active_tasks"] == 1
		assert progress["percent_complete"] == 50.0

	def test_progress_empty_plan(self):
		"""An empty plan reports zero percent."""
		assert ProjectPlan().get_progress()["percent_complete"] == 0

	def test_markdown_lists_tasks(self):
		"""Markdown shows ids, roles and dependencies."""
		md = make_plan().to_markdown()
		assert "## Development" in md
		assert "`T2` [QA]" in md
		assert "(after T1)" in md


class TestDispatchPayload:
	def test_accepts_camel_case_aliases(self):
		"""Payloads accept projectId/taskId as well as field names."""
		payload = DispatchPayload.model_validate({"projectId": 1, "taskId": "T1", "task": "x", "mode": "standard"})
		assert payload.project_id == 1
		assert payload.task_id == "T1"
		same = DispatchPayload(project_id=1, task_id="T1", task="x", mode="standard")
		assert same == payload
