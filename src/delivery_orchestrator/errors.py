"""
Error taxonomy for the orchestrator.

Tool and task failures are converted into a structured failure envelope
({error, details, type}) before they cross the worker boundary. Lookup
failures (missing project, session or question) propagate to the caller.
"""

import json
from typing import Optional

from pydantic import BaseModel


class FailureEnvelope(BaseModel):
	"""Structured failure reported through the normal result channel."""
	error: str
	details: str = ""
	type: str

	def to_json(self) -> str:
		return self.model_dump_json()

	@classmethod
	def parse(cls, output: str) -> Optional["FailureEnvelope"]:
		"""Parse an output string as an envelope, or None if it is not one."""
		try:
			data = json.loads(output)
		except (json.JSONDecodeError, TypeError):
			return None
		if not isinstance(data, dict) or "type" not in data or "error" not in data:
			return None
		return cls(
			error=str(data.get("error", "")),
			details=str(data.get("details", "")),
			type=str(data["type"]),
		)


class OrchestratorError(Exception):
	"""Base class for orchestrator errors."""
	pass


# Tool capability errors

class ToolExecutionError(OrchestratorError):
	"""Raised when a tool capability fails."""
	pass


class ToolFileNotFoundError(ToolExecutionError):
	"""Raised when a tool is pointed at a path that does not exist."""

	def __init__(self, path: str):
		super().__init__(f"File not found at path: {path}")
		self.path = path


class DirectoryCreationError(ToolExecutionError):
	"""Raised when a parent directory cannot be created."""

	def __init__(self, path: str):
		super().__init__(f"Failed to create directory at path: {path}")
		self.path = path


class CommandExecutionError(ToolExecutionError):
	"""Raised when a shell command exits non-zero or cannot be started."""
	pass


class ToolNotFound(OrchestratorError):
	"""Raised when invoking a tool name that is not registered."""

	def __init__(self, name: str):
		super().__init__(f"Tool {name} not found in registry.")
		self.name = name


# Task execution errors

class TaskExecutionError(OrchestratorError):
	"""A role agent failed to complete its task."""

	envelope_type = "TaskExecutionError"

	def __init__(self, error: str, details: str = ""):
		super().__init__(f"{error} {details}".strip())
		self.error = error
		self.details = details

	def to_envelope(self) -> FailureEnvelope:
		return FailureEnvelope(error=self.error, details=self.details, type=self.envelope_type)


class WorkerExecutionError(TaskExecutionError):
	"""An uncaught fault inside a worker while processing a task."""

	envelope_type = "WorkerExecutionError"


# Discovery / lookup errors

class ProjectNotFoundError(OrchestratorError):
	"""Raised when a project id does not exist."""

	def __init__(self, project_id: int):
		super().__init__(f"Project with ID {project_id} not found.")
		self.project_id = project_id


class DiscoverySessionNotFound(OrchestratorError):
	"""Raised when a discovery session cannot be reconstructed."""
	pass


class UnknownQuestion(OrchestratorError):
	"""Raised when the current discovery question cannot be resolved."""
	pass


class DiscoveryAlreadyStarted(OrchestratorError):
	"""Raised when discovery is started twice for the same project."""
	pass


class InvalidPlanError(OrchestratorError):
	"""Raised when a project plan fails validation."""
	pass


# Oracle errors

class ModelInvocationError(OrchestratorError):
	"""Raised when the language model call fails (after retries at call sites)."""
	pass
