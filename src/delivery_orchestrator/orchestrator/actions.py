"""
Manager actions - The closed set of things the oracle may ask the manager to do.

The oracle replies with a JSON object naming an action. Parsing never
raises on bad model output: every way the reply can be malformed maps to a
user-visible diagnostic instead.
"""

import json
import re
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ActionType(str, Enum):
	ANSWER_QUESTION = "answer_question"
	CREATE_TASKS = "create_tasks"
	TOOL_CALL = "tool_call"
	UPDATE_PLAN = "update_plan"
	SCAN_CODEBASE = "scan_codebase"
	PROGRESS_UPDATE = "progress_update"
	ERROR_MESSAGE = "error_message"


REQUIRED_FIELDS: dict[ActionType, tuple[str, ...]] = {
	ActionType.ANSWER_QUESTION: ("response",),
	ActionType.CREATE_TASKS: ("tasks",),
	ActionType.TOOL_CALL: ("tool", "args"),
	ActionType.UPDATE_PLAN: ("updated_plan",),
	ActionType.SCAN_CODEBASE: ("scan_options",),
	ActionType.PROGRESS_UPDATE: (),
	ActionType.ERROR_MESSAGE: ("error_type",),
}

MISSING_FIELD_MESSAGES: dict[ActionType, str] = {
	ActionType.ANSWER_QUESTION: "I was asked to answer, but no answer text was provided.",
	ActionType.CREATE_TASKS: "I was asked to create tasks, but the task list was invalid.",
	ActionType.TOOL_CALL: "I was asked to call a tool, but the tool or arguments were missing.",
	ActionType.UPDATE_PLAN: "I was asked to update the plan, but no updated plan was provided.",
	ActionType.SCAN_CODEBASE: "Cannot scan codebase. Path not provided or scan options missing.",
	ActionType.ERROR_MESSAGE: "I was asked to report an error, but no error type was provided.",
}


class ManagerAction(BaseModel):
	"""A parsed oracle reply."""
	model_config = ConfigDict(extra="ignore")

	action: ActionType
	response: Optional[str] = None
	tasks: Optional[list[Any]] = None
	tool: Optional[str] = None
	args: Optional[dict[str, Any]] = None
	updated_plan: Optional[dict[str, Any]] = None
	scan_options: Optional[str] = None
	error_type: Optional[str] = None

	def response_or(self, default: str) -> str:
		return self.response or default


def extract_json(text: str) -> Optional[str]:
	"""The outermost {...} span in text, or None."""
	match = _JSON_OBJECT.search(text)
	return match.group(0) if match else None


def _is_missing(field: str, value: Any) -> bool:
	if value is None or value == "":
		return True
	# An empty args object is a valid call to a tool with defaults
	return field == "tasks" and value == []


def _truncate(text: str, limit: int) -> str:
	return text if len(text) <= limit else text[:limit] + "..."


def parse_action(raw: str) -> Union[ManagerAction, str]:
	"""
	Parse an oracle reply into an action.

	Returns:
		A ManagerAction, or a diagnostic message for the user
	"""
	json_text = extract_json(raw)
	if json_text is None:
		return (
			"I received a non-JSON response. Please try again or rephrase your request. "
			f"Raw response: {_truncate(raw, 200)}"
		)

	try:
		data = json.loads(json_text)
	except json.JSONDecodeError:
		return f"I received invalid JSON. Please try again. Raw JSON: {_truncate(json_text, 200)}"

	response = data.get("response") if isinstance(data.get("response"), str) else None
	action_name = data.get("action")
	if not isinstance(action_name, str) or action_name not in {a.value for a in ActionType}:
		return f"I received an unknown action: '{action_name}'. Response: {response or 'No response.'}"

	action_type = ActionType(action_name)
	missing = [f for f in REQUIRED_FIELDS[action_type] if _is_missing(f, data.get(f))]
	if missing:
		return f"{MISSING_FIELD_MESSAGES[action_type]} Response: {response or 'No response.'}"

	try:
		return ManagerAction.model_validate(data)
	except ValidationError as e:
		fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
		return f"{MISSING_FIELD_MESSAGES.get(action_type, 'Invalid action.')} Invalid field(s): {fields}."
