"""Tests for role agents and agent memory."""

import json

import pytest

from delivery_orchestrator.agents.base import RoleAgent, parse_tool_call
from delivery_orchestrator.agents.memory import MemoryService, extract_keywords
from delivery_orchestrator.agents.prompts import build_manager_prompt, build_task_prompt, system_prompt_for
from delivery_orchestrator.errors import FailureEnvelope, ModelInvocationError
from delivery_orchestrator.plans.models import AgentRole, TechnicalLevel
from delivery_orchestrator.tools.registry import default_registry

from .helpers import ScriptedOracle, fast_retry, make_plan, open_store


@pytest.fixture
async def store(tmp_path):
	store = await open_store(tmp_path)
	yield store
	await store.close()


class TestParseToolCall:
	def test_tool_call(self):
		assert parse_tool_call('{"tool": "read_file", "args": {"file_path": "a"}}') == ("read_file", {"file_path": "a"})

	def test_plain_text(self):
		assert parse_tool_call("I wrote the checkout page.") is None

	def test_json_without_tool(self):
		assert parse_tool_call('{"summary": "done"}') is None


class TestRoleAgent:
	"""Tests for RoleAgent.process_task."""

	@pytest.mark.asyncio
	async def test_plain_reply_is_result_and_remembered(self, store):
		"""A non-tool reply is returned and saved to memory."""
		memory = MemoryService(store)
		agent = RoleAgent("QAEngineerAgent", ScriptedOracle(["All checkout tests pass."]), fast_retry(), default_registry(), memory)

		result = await agent.process_task("Test the checkout flow", 1, "standard")

		assert result == "All checkout tests pass."
		assert agent.name == "QAAgent"
		rows = await store.search_memories(1, ["checkout"])
		assert len(rows) == 1
		assert "Test the checkout flow" in rows[0]["decision"]

	@pytest.mark.asyncio
	async def test_tool_reply_runs_tool(self, store, tmp_path):
		"""A JSON tool call is executed and its output returned."""
		target = tmp_path / "notes.txt"
		target.write_text("hello")
		reply = json.dumps({"tool": "readFile", "args": {"filePath": str(target)}})
		agent = RoleAgent(AgentRole.DOCUMENTATION, ScriptedOracle([reply]), fast_retry(), default_registry())

		assert await agent.process_task("Read the notes", 1, "standard") == "hello"

	@pytest.mark.asyncio
	async def test_oracle_failures_are_retried(self, store):
		"""Transient oracle errors are retried before succeeding."""
		oracle = ScriptedOracle([ModelInvocationError("busy"), "Done after retry."])
		agent = RoleAgent(AgentRole.FULL_STACK, oracle, fast_retry(), default_registry())
		assert await agent.process_task("Build it", 1, "fast") == "Done after retry."
		assert len(oracle.calls) == 2
		assert oracle.calls[0]["mode"] == "fast"
		assert oracle.calls[0]["system"] == system_prompt_for(AgentRole.FULL_STACK)

	@pytest.mark.asyncio
	async def test_exhausted_retries_return_envelope(self, store):
		"""Failures never raise; they come back as a TaskExecutionError envelope."""
		oracle = ScriptedOracle([ModelInvocationError("down")] * 3)
		agent = RoleAgent(AgentRole.QA, oracle, fast_retry(3), default_registry())

		envelope = FailureEnvelope.parse(await agent.process_task("Run tests", 1, "standard"))
		assert envelope.type == "TaskExecutionError"
		assert envelope.error == "Task failed for QAAgent."
		assert "down" in envelope.details

	@pytest.mark.asyncio
	async def test_failing_tool_returns_envelope(self, store, tmp_path):
		reply = json.dumps({"tool": "read_file", "args": {"file_path": str(tmp_path / "missing.txt")}})
		agent = RoleAgent(AgentRole.QA, ScriptedOracle([reply]), fast_retry(), default_registry())
		envelope = FailureEnvelope.parse(await agent.process_task("Read", 1, "standard"))
		assert envelope.type == "TaskExecutionError"
		assert "File not found" in envelope.details

	@pytest.mark.asyncio
	async def test_empty_reply_is_a_failure(self, store):
		agent = RoleAgent(AgentRole.QA, ScriptedOracle(["   "]), fast_retry(), default_registry())
		envelope = FailureEnvelope.parse(await agent.process_task("Run tests", 1, "standard"))
		assert envelope.type == "TaskExecutionError"

	@pytest.mark.asyncio
	async def test_memories_are_included_in_prompt(self, store):
		"""Relevant past decisions are prepended to the task prompt."""
		memory = MemoryService(store)
		await memory.save_memory("QAAgent", 1, "Use pytest for checkout", "Team standard")
		oracle = ScriptedOracle(["ok"])
		agent = RoleAgent(AgentRole.QA, oracle, fast_retry(), default_registry(), memory)

		await agent.process_task("Write checkout tests", 1, "standard")
		assert "--- Relevant Past Decisions ---" in oracle.calls[0]["prompt"]
		assert "Use pytest for checkout" in oracle.calls[0]["prompt"]


class TestMemoryService:
	def test_extract_keywords(self):
		"""Words longer than three characters, without duplicates."""
		assert extract_keywords("Add the new checkout page, checkout!") == ["checkout", "page"]

	@pytest.mark.asyncio
	async def test_no_match_returns_empty(self, store):
		assert await MemoryService(store).retrieve_relevant_memories("Deploy", 1) == ""

	@pytest.mark.asyncio
	async def test_short_words_only(self, store):
		assert await MemoryService(store).retrieve_relevant_memories("do it", 1) == ""

	@pytest.mark.asyncio
	async def test_save_failure_is_swallowed_with_warning(self, store, caplog):
		"""Unserializable context does not break the caller."""
		await MemoryService(store).save_memory("QAAgent", 1, "d", "r", blob=object())
		assert "Could not save memory" in caplog.text


class TestPrompts:
	def test_manager_prompt_includes_context(self):
		prompt = build_manager_prompt(
			make_plan(),
			"/code/shop",
			TechnicalLevel.BUSINESS,
			[{"role": "user", "message": "hi"}],
			"How is it going?",
			["read_file"],
		)
		assert "Codebase Path: /code/shop" in prompt
		assert "User's Technical Level: business" in prompt
		assert "user: hi" in prompt
		assert "User's current message: How is it going?" in prompt
		assert '"T1"' in prompt

	def test_task_prompt_lists_tools(self):
		prompt = build_task_prompt(AgentRole.QA, "Run the suite", "", ["run_tests"])
		assert "Available tools: run_tests" in prompt
		assert prompt.endswith("Task: Run the suite")
		assert "run_tests" in prompt
