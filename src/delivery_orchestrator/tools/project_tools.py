"""Project tools - create projects, converse with the manager, inspect progress."""

import json
import logging
from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from ..errors import OrchestratorError, ProjectNotFoundError
from ..plans.models import TaskStatus

if TYPE_CHECKING:
	from ..runtime import Runtime

logger = logging.getLogger(__name__)


def register_project_tools(mcp: FastMCP, runtime: "Runtime") -> None:
	"""Register project lifecycle tools."""

	@mcp.tool()
	async def create_project(
		name: str,
		initial_prompt: str,
		description: str = "",
		mode: str = "",
		codebase_path: str = "",
		user_id: int = 0,
	) -> str:
		"""
		Create a project and start discovery.

		Args:
			name: Project name
			initial_prompt: The idea in the user's own words (used to classify the project)
			description: Optional longer description
			mode: Execution mode (standard, guardian, fast); defaults to the configured mode
			codebase_path: Existing codebase to scan, if any
			user_id: Optional user id; the user's technical level is remembered across projects
		"""
		try:
			created = await runtime.manager.create_new_project(
				name,
				description or None,
				mode or runtime.config.default_mode,
				initial_prompt,
				codebase_path=codebase_path or None,
				user_id=user_id or None,
			)
		except OrchestratorError as e:
			logger.error(f"create_project failed: {e}")
			return json.dumps({"error": str(e)})

		return json.dumps({
			"success": True,
			"project_id": created.project_id,
			"response": created.response,
		}, indent=2)

	@mcp.tool()
	async def send_message(project_id: int, message: str) -> str:
		"""
		Send a message to a project's manager.

		During discovery the message answers the pending question. Afterwards
		the manager decides what to do (answer, create tasks, call a tool...).

		Args:
			project_id: The project ID
			message: The user's message
		"""
		try:
			reply = await runtime.manager.process_project_message(project_id, message)
		except ProjectNotFoundError:
			return json.dumps({"error": f"Project not found: {project_id}"})
		except OrchestratorError as e:
			logger.error(f"send_message failed for project {project_id}: {e}")
			return json.dumps({"error": str(e)})

		project = await runtime.store.get_project(project_id)
		return json.dumps({
			"response": reply,
			"status": project.status.value if project else None,
		}, indent=2)

	@mcp.tool()
	async def project_status(project_id: int) -> str:
		"""
		Get a project's plan, ledger and progress.

		Args:
			project_id: The project ID
		"""
		project = await runtime.store.get_project(project_id)
		if not project:
			return json.dumps({"error": f"Project not found: {project_id}"})

		records = await runtime.store.list_agent_tasks(project_id)
		result = {
			"project": {
				"id": project.id,
				"name": project.name,
				"status": project.status.value,
				"project_type": project.project_type,
				"technical_level": project.technical_level.value,
				"mode": project.mode,
			},
			"tasks": [
				{
					"task_id": r.task_id_ref,
					"agent": r.agent_type,
					"status": r.status.value,
					"completed_at": r.completed_at,
				}
				for r in records
			],
			"blocked": await runtime.scheduler.blocked_tasks(project_id),
		}
		if project.plan:
			result["progress"] = project.plan.get_progress(records)
			result["markdown"] = project.plan.to_markdown(records)
		return json.dumps(result, indent=2)

	@mcp.tool()
	async def list_projects() -> str:
		"""List all projects, newest first."""
		projects = await runtime.store.list_projects()
		return json.dumps({
			"projects": [
				{"id": p.id, "name": p.name, "status": p.status.value, "project_type": p.project_type}
				for p in projects
			],
		}, indent=2)

	@mcp.tool()
	async def schedule_project(project_id: int) -> str:
		"""
		Dispatch every task of a project whose dependencies are resolved.

		Args:
			project_id: The project ID
		"""
		try:
			dispatched = await runtime.manager.schedule_project(project_id)
		except ProjectNotFoundError:
			return json.dumps({"error": f"Project not found: {project_id}"})
		return json.dumps({"success": True, "dispatched": dispatched}, indent=2)

	@mcp.tool()
	async def report_task_result(project_id: int, task_id: str, status: str, output: str) -> str:
		"""
		Record the result of a task executed outside the worker pools.

		Args:
			project_id: The project ID
			task_id: Task identifier from the plan
			status: "completed" or "failed"
			output: Task output or failure details
		"""
		try:
			task_status = TaskStatus(status)
			applied = await runtime.manager.process_task_result(project_id, task_id, task_status, output)
		except ValueError as e:
			return json.dumps({"error": str(e)})
		except ProjectNotFoundError:
			return json.dumps({"error": f"Project not found: {project_id}"})
		return json.dumps({"success": True, "applied": applied}, indent=2)

	@mcp.tool()
	async def get_requirements(project_id: int) -> str:
		"""
		Get the requirements compiled from a project's discovery answers.

		Args:
			project_id: The project ID
		"""
		project = await runtime.store.get_project(project_id)
		if not project:
			return json.dumps({"error": f"Project not found: {project_id}"})

		rows = await runtime.store.list_discovery_rows(project_id)
		return json.dumps({
			"discovery": [
				{"category": r.question_category, "question": r.question_text, "answer": r.user_answer}
				for r in rows
			],
			"requirements": await runtime.store.list_requirements(project_id),
		}, indent=2)
