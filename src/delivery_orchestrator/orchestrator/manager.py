"""
Manager - Request-facing collaborator for projects.

The manager owns the conversation with the user. While a project is in
discovery it routes messages into the Discovery Engine; once discovery
completes it seeds the plan and ledger and hands over to the scheduler.
After that, each message is a turn with the oracle, whose JSON reply is
dispatched as one of the closed set of ActionTypes.
"""

import logging
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, ValidationError

from ..agents.prompts import MANAGER_SYSTEM_PROMPT, build_manager_prompt
from ..discovery.engine import DiscoveryEngine, DiscoveryResultKind
from ..discovery.profiling import (
	ErrorCommunicator,
	ProgressCommunicator,
	UserProfile,
	UserProfileDetector,
	translate_concepts,
)
from ..discovery.requirements import RequirementsCompiler
from ..errors import OrchestratorError, ProjectNotFoundError
from ..llm.oracle import Oracle
from ..plans.models import Project, ProjectPlan, ProjectStatus, Task, TaskStatus
from ..plans.store import ProjectStore
from ..retry import RetryPolicy
from ..tools.registry import ToolRegistry
from .actions import ActionType, ManagerAction, parse_action
from .scheduler import Scheduler
from .tracker import ResultTracker

logger = logging.getLogger(__name__)

PREFIX = "Manager Agent: "
MANAGER_TASKS_PHASE = "Manager Tasks"
SCAN_TOOL = "get_project_structure"
SCANNABLE_OPTIONS = ("full", "structure_only")


class ProjectCreated(BaseModel):
	project_id: int
	response: str


def _truncate(text: str, limit: int) -> str:
	return text if len(text) <= limit else text[:limit] + "..."


class Manager:
	"""
	Coordinates discovery, planning and dispatch for projects.

	Usage:
		created = await manager.create_new_project("shoes", None, "standard", "An online store for shoes")
		reply = await manager.process_project_message(created.project_id, "Physical sneakers")
	"""

	def __init__(
		self,
		store: ProjectStore,
		discovery: DiscoveryEngine,
		scheduler: Scheduler,
		tracker: ResultTracker,
		oracle: Oracle,
		retry_policy: RetryPolicy,
		tools: ToolRegistry,
		compiler: Optional[RequirementsCompiler] = None,
		detector: Optional[UserProfileDetector] = None,
	):
		self.store = store
		self.discovery = discovery
		self.scheduler = scheduler
		self.tracker = tracker
		self.oracle = oracle
		self.retry_policy = retry_policy
		self.tools = tools
		self.compiler = compiler or discovery.compiler
		self.detector = detector or UserProfileDetector()
		self.progress = ProgressCommunicator()
		self.errors = ErrorCommunicator()

		self._handlers: dict[ActionType, Callable[[Project, ManagerAction], Awaitable[str]]] = {
			ActionType.ANSWER_QUESTION: self._answer_question,
			ActionType.CREATE_TASKS: self._create_tasks,
			ActionType.TOOL_CALL: self._tool_call,
			ActionType.UPDATE_PLAN: self._update_plan,
			ActionType.SCAN_CODEBASE: self._scan_codebase,
			ActionType.PROGRESS_UPDATE: self._progress_update,
			ActionType.ERROR_MESSAGE: self._error_message,
		}

	# ------------------------------------------------------------------
	# Request operations
	# ------------------------------------------------------------------

	async def create_new_project(
		self,
		name: str,
		description: Optional[str],
		mode: str,
		initial_prompt: str,
		codebase_path: Optional[str] = None,
		user_id: Optional[int] = None,
	) -> ProjectCreated:
		"""Create a project in discovery and return its first question."""
		level = await self.store.get_user_technical_level(user_id) if user_id is not None else None
		if level is None:
			level = self.detector.analyze(initial_prompt).technical_level
			if user_id is not None:
				await self.store.set_user_technical_level(user_id, level)

		project = await self.store.create_project(
			name,
			description,
			mode,
			technical_level=level,
			codebase_path=codebase_path,
			user_id=user_id,
		)
		start = await self.discovery.conduct_discovery(
			project.id, UserProfile(technical_level=level), initial_prompt,
		)

		response = f"Project \"{name}\" created. Let's start by understanding your needs.\n{start.first_question}"
		await self.store.append_conversation(project.id, "user", initial_prompt)
		await self.store.append_conversation(project.id, "assistant", response)
		logger.info(f"Created project {project.id} ({name}, type={start.project_type}, level={level.value})")
		return ProjectCreated(project_id=project.id, response=response)

	async def process_project_message(self, project_id: int, prompt: str) -> str:
		"""
		Handle one user message for a project.

		Raises:
			ProjectNotFoundError: If the project does not exist
			ModelInvocationError: If the oracle fails after all retries
		"""
		project = await self.store.get_project(project_id)
		if project is None:
			raise ProjectNotFoundError(project_id)

		history = await self.store.list_conversation(project_id)

		if project.status == ProjectStatus.DISCOVERY and project.current_discovery_question_id is not None:
			reply = await self._continue_discovery(project, prompt)
			await self.store.append_conversation(project_id, "user", prompt)
			await self.store.append_conversation(project_id, "assistant", reply)
			return PREFIX + reply

		manager_prompt = build_manager_prompt(
			project.plan,
			project.codebase_path,
			project.technical_level,
			history,
			prompt,
			self.tools.names(),
		)
		raw = await self.retry_policy.run(
			lambda: self.oracle.invoke(manager_prompt, mode=project.mode, system=MANAGER_SYSTEM_PROMPT)
		)
		await self.store.append_conversation(project_id, "user", prompt)
		if not raw or not raw.strip():
			return PREFIX + "I received an empty response. Please try again or rephrase your request."

		await self.store.append_conversation(project_id, "assistant", raw)

		action = parse_action(raw)
		if isinstance(action, str):
			logger.warning(f"Project {project_id}: unusable oracle reply: {action[:200]}")
			return PREFIX + action

		handler = self._handlers[action.action]
		return PREFIX + await handler(project, action)

	async def process_task_result(self, project_id: int, task_id: str, status: TaskStatus, output: str) -> bool:
		"""Record a task result and reschedule."""
		return await self.tracker.process_task_result(project_id, task_id, status, output)

	async def schedule_project(self, project_id: int) -> list[str]:
		"""Run the scheduler for a project and roll its status up."""
		if await self.store.get_project(project_id) is None:
			raise ProjectNotFoundError(project_id)
		dispatched = await self.scheduler.schedule_tasks(project_id)
		await self.tracker.update_project_status(project_id)
		return dispatched

	# ------------------------------------------------------------------
	# Discovery
	# ------------------------------------------------------------------

	async def _continue_discovery(self, project: Project, answer: str) -> str:
		result = await self.discovery.process_answer(project.id, answer)
		if result.kind == DiscoveryResultKind.QUESTION:
			return result.content

		plan = self.compiler.seed_plan(project.name, result.requirements, project.description or "")
		await self.store.update_project(project.id, plan=plan, status=ProjectStatus.PENDING)
		await self.store.insert_agent_tasks(project.id, plan.all_tasks())
		dispatched = await self.schedule_project(project.id)
		logger.info(
			f"Project {project.id} planned with {len(plan.all_tasks())} task(s), {len(dispatched)} dispatched"
		)
		return f"{result.content} Project plan generated and tasks scheduled."

	# ------------------------------------------------------------------
	# Actions
	# ------------------------------------------------------------------

	async def _answer_question(self, project: Project, action: ManagerAction) -> str:
		return translate_concepts(action.response, project.technical_level)

	async def _create_tasks(self, project: Project, action: ManagerAction) -> str:
		invalid = f"I was asked to create tasks, but the task list was invalid. Response: {action.response_or('No response.')}"
		try:
			tasks = [Task.model_validate(t) for t in action.tasks]
		except ValidationError as e:
			logger.warning(f"Project {project.id}: invalid tasks from oracle: {e.error_count()} error(s)")
			return invalid

		plan = project.plan or ProjectPlan(project_name=project.name, description=project.description or "")
		try:
			plan.add_tasks(MANAGER_TASKS_PHASE, tasks)
		except ValueError as e:
			return f"{invalid} ({e})"

		await self._save_plan(project, plan)
		return action.response_or("Tasks created and scheduled.")

	async def _update_plan(self, project: Project, action: ManagerAction) -> str:
		try:
			plan = ProjectPlan.model_validate(action.updated_plan)
		except ValidationError as e:
			logger.warning(f"Project {project.id}: invalid plan from oracle: {e.error_count()} error(s)")
			return f"I was asked to update the plan, but the updated plan was invalid ({e.error_count()} error(s))."

		await self._save_plan(project, plan)
		return action.response_or("Project plan updated and tasks rescheduled.")

	async def _save_plan(self, project: Project, plan: ProjectPlan) -> None:
		"""Persist a plan, record ledger rows for new task ids and reschedule."""
		updates = {"plan": plan}
		if project.status == ProjectStatus.DISCOVERY:
			updates["status"] = ProjectStatus.PENDING
		await self.store.update_project(project.id, **updates)
		await self.store.insert_agent_tasks(project.id, plan.all_tasks())
		await self.schedule_project(project.id)

	async def _tool_call(self, project: Project, action: ManagerAction) -> str:
		try:
			result = await self.tools.invoke_tool(action.tool, action.args)
		except OrchestratorError as e:
			logger.warning(f"Project {project.id}: tool {action.tool} failed: {e}")
			return f"Error executing tool '{action.tool}': {_truncate(str(e), 500)}"
		return f"Tool '{action.tool}' executed. Result: {_truncate(result, 500)}"

	async def _scan_codebase(self, project: Project, action: ManagerAction) -> str:
		if not project.codebase_path:
			return (
				"Cannot scan codebase. Path not provided or scan options missing. "
				f"Response: {action.response_or('No response.')}"
			)

		reply = f"Initiating codebase scan for {project.codebase_path} with options: {action.scan_options}.\n"
		if action.scan_options in SCANNABLE_OPTIONS:
			try:
				files = await self.tools.invoke_tool(SCAN_TOOL, {"root": project.codebase_path})
				reply += f"Files found: {_truncate(files, 1000)}"
			except OrchestratorError as e:
				reply += f"Error scanning directory: {_truncate(str(e), 500)}"
		return reply

	async def _progress_update(self, project: Project, action: ManagerAction) -> str:
		records = await self.store.list_agent_tasks(project.id)
		plan = project.plan or ProjectPlan()
		progress = plan.get_progress(records)
		active = [r.task_id_ref for r in records if r.status in (TaskStatus.QUEUED, TaskStatus.IN_PROGRESS)]
		upcoming = [r.task_id_ref for r in records if r.status == TaskStatus.PENDING]
		return self.progress.generate(project.technical_level, progress, active, upcoming)

	async def _error_message(self, project: Project, action: ManagerAction) -> str:
		return self.errors.explain(action.error_type, project.technical_level)
