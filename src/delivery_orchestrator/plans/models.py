"""
Plan Models - Pydantic schemas for projects, plans and the task ledger.

A project's plan is an ordered list of phases holding tasks with
dependency ids. The plan describes the work; the AgentTaskRecord rows in
the store are the source of truth for scheduling decisions.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProjectStatus(str, Enum):
	"""Status of a project."""
	DISCOVERY = "discovery"
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	COMPLETED = "completed"
	FAILED = "failed"


class TaskStatus(str, Enum):
	"""Status of a task in the ledger."""
	PENDING = "pending"
	QUEUED = "queued"
	IN_PROGRESS = "in_progress"
	COMPLETED = "completed"
	FAILED = "failed"

	@property
	def is_terminal(self) -> bool:
		return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

	@classmethod
	def can_transition(cls, src: "TaskStatus", dst: "TaskStatus") -> bool:
		"""Whether src -> dst is a legal ledger transition."""
		return dst in _TRANSITIONS.get(src, ())


_TRANSITIONS: dict[TaskStatus, tuple[TaskStatus, ...]] = {
	TaskStatus.PENDING: (TaskStatus.QUEUED,),
	TaskStatus.QUEUED: (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.FAILED),
	TaskStatus.IN_PROGRESS: (TaskStatus.COMPLETED, TaskStatus.FAILED),
	TaskStatus.COMPLETED: (),
	TaskStatus.FAILED: (),
}


class AgentRole(str, Enum):
	"""Specialised worker persona; each owns one dispatch queue."""
	FULL_STACK = "FullStack"
	SOLUTIONS_ARCHITECT = "SolutionsArchitect"
	DEVOPS = "DevOps"
	SECURITY = "Security"
	QA = "QA"
	DOCUMENTATION = "Documentation"
	PERFORMANCE = "Performance"

	@classmethod
	def parse(cls, name: "str | AgentRole") -> "AgentRole":
		"""
		Resolve a role from its value, enum name or a legacy agent name.

		Accepts e.g. "FullStack", "FULL_STACK", "FullStackEngineerAgent",
		"full_stack_engineer" and "qa_engineer".
		"""
		if isinstance(name, AgentRole):
			return name
		key = _normalize_role(str(name))
		role = _ROLE_ALIASES.get(key)
		if role is None:
			raise ValueError(f"Unknown agent role: {name!r}")
		return role


def _normalize_role(name: str) -> str:
	key = re.sub(r"[^a-z]", "", name.lower())
	for suffix in ("agent", "engineer", "specialist"):
		if key.endswith(suffix) and key != suffix:
			key = key[: -len(suffix)]
	return key


_ROLE_ALIASES: dict[str, AgentRole] = {}
for _role in AgentRole:
	_ROLE_ALIASES[_normalize_role(_role.value)] = _role
	_ROLE_ALIASES[_normalize_role(_role.name)] = _role
_ROLE_ALIASES["solutions"] = AgentRole.SOLUTIONS_ARCHITECT
_ROLE_ALIASES["docs"] = AgentRole.DOCUMENTATION


class TechnicalLevel(str, Enum):
	"""Ordinal user classification governing question eligibility and phrasing."""
	NO_CODE = "noCode"
	BUSINESS = "business"
	TECHNICAL = "technical"
	EXPERT = "expert"

	@property
	def ordinal(self) -> int:
		return _LEVEL_ORDINALS[self]


_LEVEL_ORDINALS = {
	TechnicalLevel.NO_CODE: 1,
	TechnicalLevel.BUSINESS: 2,
	TechnicalLevel.TECHNICAL: 3,
	TechnicalLevel.EXPERT: 4,
}


class Task(BaseModel):
	"""A single task within a phase."""
	task_id: str = Field(description="Unique task identifier across the plan")
	description: str = Field(description="What needs to be done")
	agent: AgentRole = Field(default=AgentRole.FULL_STACK, description="Role that executes the task")
	dependencies: list[str] = Field(default_factory=list, description="Task ids this depends on")
	status: TaskStatus = Field(default=TaskStatus.PENDING)

	@model_validator(mode="before")
	@classmethod
	def _coerce_agent(cls, data):
		if isinstance(data, dict) and isinstance(data.get("agent"), str):
			data = {**data, "agent": AgentRole.parse(data["agent"])}
		return data


class Phase(BaseModel):
	"""A phase of delivery."""
	model_config = ConfigDict(populate_by_name=True)

	name: str = Field(alias="phase_name", description="Phase name (e.g., 'Development')")
	tasks: list[Task] = Field(default_factory=list)


class ProjectPlan(BaseModel):
	"""
	An ordered sequence of phases.

	Task ids are unique across the whole plan. A dependency id need not
	resolve to an existing task; such a task is simply never dispatched.
	"""
	project_name: str = Field(default="")
	description: str = Field(default="")
	phases: list[Phase] = Field(default_factory=list)

	@model_validator(mode="after")
	def _unique_task_ids(self) -> "ProjectPlan":
		seen: set[str] = set()
		for task in self.all_tasks():
			if task.task_id in seen:
				raise ValueError(f"Duplicate task_id in plan: {task.task_id}")
			seen.add(task.task_id)
		return self

	def all_tasks(self) -> list[Task]:
		"""All tasks in phase order."""
		return [t for p in self.phases for t in p.tasks]

	def find_task(self, task_id: str) -> Optional[Task]:
		for task in self.all_tasks():
			if task.task_id == task_id:
				return task
		return None

	def add_tasks(self, phase_name: str, tasks: Iterable[Task]) -> list[Task]:
		"""
		Append tasks to the named phase, creating it if needed.

		Raises:
			ValueError: If a task id already exists in the plan
		"""
		tasks = list(tasks)
		existing = {t.task_id for t in self.all_tasks()}
		for task in tasks:
			if task.task_id in existing:
				raise ValueError(f"Duplicate task_id in plan: {task.task_id}")
			existing.add(task.task_id)

		phase = next((p for p in self.phases if p.name == phase_name), None)
		if phase is None:
			phase = Phase(name=phase_name)
			self.phases.append(phase)
		phase.tasks.extend(tasks)
		return tasks

	def get_progress(self, records: Iterable["AgentTaskRecord"] = ()) -> dict:
		"""Calculate progress, using ledger statuses where available."""
		statuses = {r.task_id_ref: r.status for r in records}
		tasks = self.all_tasks()
		counts = {s: 0 for s in TaskStatus}
		for task in tasks:
			counts[statuses.get(task.task_id, task.status)] += 1

		total = len(tasks)
		completed = counts[TaskStatus.COMPLETED]
		return {
			"total_phases": len(self.phases),
			"total_tasks": total,
			"completed_tasks": completed,
			"failed_tasks": counts[TaskStatus.FAILED],
			"active_tasks": counts[TaskStatus.QUEUED] + counts[TaskStatus.IN_PROGRESS],
			"pending_tasks": counts[TaskStatus.PENDING],
			"percent_complete": round(completed / total * 100, 1) if total > 0 else 0,
		}

	def to_markdown(self, records: Iterable["AgentTaskRecord"] = ()) -> str:
		"""Convert plan to markdown format."""
		statuses = {r.task_id_ref: r.status for r in records}
		lines = [f"# {self.project_name or 'Project plan'}", ""]
		if self.description:
			lines.extend([f"_{self.description}_", ""])

		task_icons = {
			TaskStatus.PENDING: "[ ]",
			TaskStatus.QUEUED: "[>]",
			TaskStatus.IN_PROGRESS: "[~]",
			TaskStatus.COMPLETED: "[x]",
			TaskStatus.FAILED: "[!]",
		}
		for phase in self.phases:
			lines.append(f"## {phase.name}")
			if not phase.tasks:
				lines.append("_No tasks_")
			for task in phase.tasks:
				icon = task_icons[statuses.get(task.task_id, task.status)]
				deps = f" (after {', '.join(task.dependencies)})" if task.dependencies else ""
				lines.append(f"- {icon} `{task.task_id}` [{task.agent.value}] {task.description}{deps}")
			lines.append("")

		return "\n".join(lines)


class Project(BaseModel):
	"""A delivery project."""
	id: int
	name: str
	description: Optional[str] = None
	mode: str = "standard"
	status: ProjectStatus = ProjectStatus.DISCOVERY
	project_type: str = "general"
	technical_level: TechnicalLevel = TechnicalLevel.NO_CODE
	codebase_path: Optional[str] = None
	user_id: Optional[int] = None
	plan: Optional[ProjectPlan] = None
	current_discovery_question_id: Optional[int] = None
	created_at: str = Field(default_factory=lambda: datetime.now().isoformat())


class AgentTaskRecord(BaseModel):
	"""Persisted queue/ledger row for one task of a project."""
	id: Optional[int] = None
	project_id: int
	task_id_ref: str
	agent_type: str
	task_description: str
	status: TaskStatus = TaskStatus.PENDING
	output_data: Optional[str] = None
	completed_at: Optional[str] = None
	created_at: Optional[str] = None


class DiscoveryRow(BaseModel):
	"""One persisted discovery question and (once given) its answer."""
	id: int
	project_id: int
	question_category: str
	question_text: str
	user_answer: Optional[str] = None
	answer_confidence: str = "unanswered"
	created_at: Optional[str] = None


class DispatchPayload(BaseModel):
	"""Queue message handed to a worker pool."""
	model_config = ConfigDict(populate_by_name=True)

	project_id: int = Field(alias="projectId")
	task_id: str = Field(alias="taskId")
	task: str
	mode: str
