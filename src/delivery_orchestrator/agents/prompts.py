"""System prompts and prompt builders for the manager and role agents."""

import json
from typing import Optional

from ..plans.models import AgentRole, ProjectPlan, TechnicalLevel

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

MANAGER_SYSTEM_PROMPT = """You are the Manager Agent of a software delivery team.
You coordinate specialist agents (FullStack, SolutionsArchitect, DevOps, Security,
QA, Documentation, Performance) that work through a phased project plan.
You never write code yourself. You answer the user, create and update tasks,
call tools, and report progress. Always reply with a single JSON object."""

ROLE_PROMPTS: dict[AgentRole, str] = {
	AgentRole.FULL_STACK: (
		"You are a senior full-stack engineer. You implement features end to end, "
		"from data model to user interface, and keep changes small and tested."
	),
	AgentRole.SOLUTIONS_ARCHITECT: (
		"You are a solutions architect. You choose components, define interfaces "
		"and data flows, and record architectural decisions with their reasoning."
	),
	AgentRole.DEVOPS: (
		"You are a DevOps engineer. You own build, packaging, deployment and "
		"infrastructure configuration."
	),
	AgentRole.SECURITY: (
		"You are a security engineer. You review authentication, authorization, "
		"secrets handling and dependencies for vulnerabilities."
	),
	AgentRole.QA: (
		"You are a QA engineer. You design and run tests and report failures "
		"with enough detail to reproduce them."
	),
	AgentRole.DOCUMENTATION: (
		"You are a technical writer. You document project structure, setup and "
		"usage for the intended audience."
	),
	AgentRole.PERFORMANCE: (
		"You are a performance engineer. You benchmark, profile and remove "
		"bottlenecks, reporting numbers before and after."
	),
}

ROLE_TOOL_HINTS: dict[AgentRole, str] = {
	AgentRole.QA: '{"tool": "run_tests", "args": {"command": "pytest"}}',
	AgentRole.DOCUMENTATION: '{"tool": "get_project_structure", "args": {"root": "."}}',
	AgentRole.DEVOPS: '{"tool": "execute_command", "args": {"command": "docker build ."}}',
}

LEVEL_STYLE = {
	TechnicalLevel.NO_CODE: "Focus on business outcomes, use simple analogies, avoid jargon.",
	TechnicalLevel.BUSINESS: "Explain processes, show ROI, use some technical context.",
	TechnicalLevel.TECHNICAL: "Provide architecture details, explain technology choices, show alternatives.",
	TechnicalLevel.EXPERT: "Use deep technical specifications, implementation details, performance metrics.",
}

ACTION_SCHEMA = """{
	"action": "answer_question" | "create_tasks" | "tool_call" | "update_plan" | "scan_codebase" | "progress_update" | "error_message",
	"response": "string",        // answer_question (required); optional for the others
	"tasks": [Task, ...],        // create_tasks: {"task_id", "description", "agent", "dependencies"}
	"tool": "string",            // tool_call: one of the registered tools
	"args": {},                  // tool_call: named arguments for the tool
	"updated_plan": {},          // update_plan: the full updated plan
	"scan_options": "string",    // scan_codebase: "full" | "structure_only"
	"error_type": "string"       // error_message: e.g. "api_rate_limit", "dependency_conflict"
}"""


def system_prompt_for(role: AgentRole) -> str:
	return ROLE_PROMPTS.get(AgentRole.parse(role), DEFAULT_SYSTEM_PROMPT)


def build_manager_prompt(
	plan: Optional[ProjectPlan],
	codebase_path: Optional[str],
	level: TechnicalLevel,
	history: list[dict],
	message: str,
	tools: list[str],
) -> str:
	"""Prompt for one manager turn after discovery."""
	lines = ["## Conversation so far"]
	for entry in history:
		lines.append(f"{entry['role']}: {entry['message']}")
	if not history:
		lines.append("(none)")
	lines.extend([
		"",
		f"Project Plan: {plan.model_dump_json() if plan else json.dumps(None)}",
		f"Codebase Path: {codebase_path or 'Not provided'}",
		f"User's Technical Level: {TechnicalLevel(level).value}",
		f"Available tools: {', '.join(tools)}",
		"",
		f"User's current message: {message}",
		"",
		"Based on the project plan, conversation history, codebase path, and the user's "
		"technical level, determine the next action.",
		f"Adapt your response style to the user's technical level: {LEVEL_STYLE[TechnicalLevel(level)]}",
		"",
		"Respond with a JSON object with the following structure:",
		ACTION_SCHEMA,
		"Always provide a response even if you are performing an action.",
	])
	return "\n".join(lines)


def build_task_prompt(role: AgentRole, task: str, memories: str, tools: list[str]) -> str:
	"""Prompt asking a role agent to either call a tool or answer directly."""
	hint = ROLE_TOOL_HINTS.get(AgentRole.parse(role), '{"tool": "read_file", "args": {"file_path": "README.md"}}')
	parts = []
	if memories:
		parts.append(memories)
	parts.extend([
		f"Available tools: {', '.join(tools)}",
		"If a tool is needed, reply with only a JSON object such as "
		f"{hint}. Otherwise reply with your result directly.",
		f"Task: {task}",
	])
	return "\n\n".join(parts)
