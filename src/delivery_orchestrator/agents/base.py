"""
Role agents - Task handlers for the worker pools.

A role agent asks the oracle what to do with a task. A JSON reply naming a
tool is executed through the tool registry and the tool's output becomes
the task result; any other reply is the result itself and is remembered.
Every failure is returned as a TaskExecutionError envelope, never raised.
"""

import json
import logging
from typing import Optional

from ..errors import TaskExecutionError
from ..llm.oracle import Oracle
from ..plans.models import AgentRole
from ..retry import RetryPolicy
from ..tools.registry import ToolRegistry
from .memory import MemoryService
from .prompts import build_task_prompt, system_prompt_for

logger = logging.getLogger(__name__)


def parse_tool_call(reply: str) -> Optional[tuple[str, dict]]:
	"""(tool, args) if the reply is a JSON tool call, else None."""
	try:
		data = json.loads(reply.strip())
	except json.JSONDecodeError:
		return None
	if isinstance(data, dict) and data.get("tool") and isinstance(data.get("args"), dict):
		return str(data["tool"]), data["args"]
	return None


class RoleAgent:
	"""Executes tasks for one agent role."""

	def __init__(
		self,
		role: AgentRole,
		oracle: Oracle,
		retry_policy: RetryPolicy,
		tools: ToolRegistry,
		memory: Optional[MemoryService] = None,
	):
		self.role = AgentRole.parse(role)
		self.oracle = oracle
		self.retry_policy = retry_policy
		self.tools = tools
		self.memory = memory
		self.system_prompt = system_prompt_for(self.role)

	@property
	def name(self) -> str:
		return f"{self.role.value}Agent"

	async def process_task(self, task: str, project_id: int, mode: str) -> str:
		"""
		Execute a task description.

		Returns:
			The task result text, or a TaskExecutionError envelope as JSON
		"""
		try:
			return await self._execute(task, project_id, mode)
		except TaskExecutionError as e:
			logger.error(f"{self.name} failed task for project {project_id}: {e}")
			return e.to_envelope().to_json()
		except Exception as e:
			logger.error(f"{self.name} failed task for project {project_id}: {e}")
			return TaskExecutionError(f"Task failed for {self.name}.", str(e)).to_envelope().to_json()

	async def _execute(self, task: str, project_id: int, mode: str) -> str:
		memories = ""
		if self.memory:
			memories = await self.memory.retrieve_relevant_memories(task, project_id)

		prompt = build_task_prompt(self.role, task, memories, self.tools.names())
		reply = await self.retry_policy.run(
			lambda: self.oracle.invoke(prompt, mode=mode, system=self.system_prompt)
		)
		if not reply or not reply.strip():
			raise TaskExecutionError(f"Task failed for {self.name}.", "The model returned an empty response.")

		tool_call = parse_tool_call(reply)
		if tool_call is not None:
			tool, args = tool_call
			logger.info(f"{self.name} calling tool {tool} for project {project_id}")
			return await self.tools.invoke_tool(tool, args)

		if self.memory:
			await self.memory.save_memory(
				self.name,
				project_id,
				decision=f'Generated {self.role.value} result for task: "{task}"',
				reasoning=f"The model generated the following response: {reply[:500]}",
				response=reply,
			)
		return reply
