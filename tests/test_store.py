"""Tests for the SQLite project store."""

import asyncio

import pytest

from delivery_orchestrator.plans.models import ProjectStatus, Task, TaskStatus, TechnicalLevel

from .helpers import make_plan, make_planned_project, open_store


@pytest.fixture
async def store(tmp_path):
	store = await open_store(tmp_path)
	yield store
	await store.close()


class TestProjects:
	"""Tests for project rows."""

	@pytest.mark.asyncio
	async def test_create_and_get(self, store):
		"""A created project starts in discovery."""
		project = await store.create_project("shop", "Shoes", "standard", technical_level=TechnicalLevel.BUSINESS)
		loaded = await store.get_project(project.id)
		assert loaded.name == "shop"
		assert loaded.status == ProjectStatus.DISCOVERY
		assert loaded.technical_level == TechnicalLevel.BUSINESS
		assert loaded.plan is None

	@pytest.mark.asyncio
	async def test_get_missing_project(self, store):
		"""Unknown ids return None."""
		assert await store.get_project(999) is None

	@pytest.mark.asyncio
	async def test_plan_round_trips_through_update(self, store):
		"""update_project serializes the plan and enum values."""
		project = await store.create_project("shop", None, "standard")
		await store.update_project(project.id, plan=make_plan(), status=ProjectStatus.PENDING, project_type="ecommerce")
		loaded = await store.get_project(project.id)
		assert loaded.status == ProjectStatus.PENDING
		assert loaded.project_type == "ecommerce"
		assert loaded.plan.find_task("T2").dependencies == ["T1"]

	@pytest.mark.asyncio
	async def test_update_rejects_unknown_columns(self, store):
		"""Column names are allowlisted."""
		project = await store.create_project("shop", None, "standard")
		with pytest.raises(ValueError):
			await store.update_project(project.id, created_at="yesterday")

	@pytest.mark.asyncio
	async def test_transition_project_is_conditional(self, store):
		"""transition_project only moves from the listed statuses."""
		project = await store.create_project("shop", None, "standard")
		assert not await store.transition_project(project.id, [ProjectStatus.PENDING], ProjectStatus.IN_PROGRESS)
		assert await store.transition_project(project.id, [ProjectStatus.DISCOVERY], ProjectStatus.PENDING)
		assert (await store.get_project(project.id)).status == ProjectStatus.PENDING

	@pytest.mark.asyncio
	async def test_list_projects_newest_first(self, store):
		first = await store.create_project("a", None, "standard")
		second = await store.create_project("b", None, "standard")
		assert [p.id for p in await store.list_projects()] == [second.id, first.id]


class TestUsers:
	@pytest.mark.asyncio
	async def test_user_level_upsert(self, store):
		"""A user's technical level is stored and replaced."""
		assert await store.get_user_technical_level(7) is None
		await store.set_user_technical_level(7, TechnicalLevel.TECHNICAL)
		await store.set_user_technical_level(7, TechnicalLevel.EXPERT)
		assert await store.get_user_technical_level(7) == TechnicalLevel.EXPERT


class TestLedger:
	"""Tests for the agent task ledger."""

	@pytest.mark.asyncio
	async def test_insert_is_idempotent(self, store):
		"""Re-inserting the same task ids adds nothing."""
		project_id = await make_planned_project(store)
		again = await store.insert_agent_tasks(project_id, make_plan().all_tasks())
		assert again == []
		records = await store.list_agent_tasks(project_id)
		assert [r.task_id_ref for r in records] == ["T1", "T2"]
		assert all(r.status == TaskStatus.PENDING for r in records)
		assert records[1].agent_type == "QA"

	@pytest.mark.asyncio
	async def test_insert_returns_only_new_ids(self, store):
		project_id = await make_planned_project(store)
		new = await store.insert_agent_tasks(project_id, [
			Task(task_id="T2", description="dup"),
			Task(task_id="T3", description="new"),
		])
		assert new == ["T3"]

	@pytest.mark.asyncio
	async def test_transition_only_from_expected_status(self, store):
		"""A conditional transition fails when the row moved on."""
		project_id = await make_planned_project(store)
		assert await store.transition_task(project_id, "T1", [TaskStatus.PENDING], TaskStatus.QUEUED)
		assert not await store.transition_task(project_id, "T1", [TaskStatus.PENDING], TaskStatus.QUEUED)

	@pytest.mark.asyncio
	async def test_terminal_transition_records_output(self, store):
		"""Completing a task stores output and completed_at."""
		project_id = await make_planned_project(store)
		await store.transition_task(project_id, "T1", [TaskStatus.PENDING], TaskStatus.QUEUED)
		await store.transition_task(project_id, "T1", [TaskStatus.QUEUED], TaskStatus.COMPLETED, output_data="built")
		record = await store.get_agent_task(project_id, "T1")
		assert record.status == TaskStatus.COMPLETED
		assert record.output_data == "built"
		assert record.completed_at is not None

	@pytest.mark.asyncio
	async def test_illegal_transition_raises(self, store):
		"""Transitions outside the state machine are programming errors."""
		project_id = await make_planned_project(store)
		with pytest.raises(ValueError):
			await store.transition_task(project_id, "T1", [TaskStatus.COMPLETED], TaskStatus.PENDING)

	@pytest.mark.asyncio
	async def test_concurrent_claims_have_one_winner(self, store):
		"""Only one of many concurrent pending -> queued claims succeeds."""
		project_id = await make_planned_project(store)
		results = await asyncio.gather(*(
			store.transition_task(project_id, "T1", [TaskStatus.PENDING], TaskStatus.QUEUED)
			for _ in range(10)
		))
		assert results.count(True) == 1

	@pytest.mark.asyncio
	async def test_list_by_status_spans_projects(self, store):
		first = await make_planned_project(store)
		second = await make_planned_project(store)
		await store.transition_task(first, "T1", [TaskStatus.PENDING], TaskStatus.QUEUED)
		await store.transition_task(second, "T1", [TaskStatus.PENDING], TaskStatus.QUEUED)
		await store.transition_task(second, "T1", [TaskStatus.QUEUED], TaskStatus.IN_PROGRESS)

		queued = await store.list_agent_tasks_with_status([TaskStatus.QUEUED])
		assert [(r.project_id, r.task_id_ref) for r in queued] == [(first, "T1")]
		running = await store.list_agent_tasks_with_status([TaskStatus.QUEUED, TaskStatus.IN_PROGRESS])
		assert [r.project_id for r in running] == [first, second]
		assert await store.list_agent_tasks_with_status([]) == []


class TestDiscoveryLog:
	"""Tests for the discovery question log."""

	@pytest.mark.asyncio
	async def test_question_sets_cursor(self, store):
		"""Adding a question points the project at it."""
		project = await store.create_project("shop", None, "standard")
		qid = await store.add_discovery_question(project.id, "business_scope", "What?")
		assert (await store.get_project(project.id)).current_discovery_question_id == qid

	@pytest.mark.asyncio
	async def test_answer_and_ask_next(self, store):
		"""Answering inserts the next question in the same step."""
		project = await store.create_project("shop", None, "standard")
		qid = await store.add_discovery_question(project.id, "a", "First?")
		answered, next_id = await store.answer_and_ask(project.id, qid, "yes", ("b", "Second?"))
		assert answered
		rows = await store.list_discovery_rows(project.id)
		assert [r.user_answer for r in rows] == ["yes", None]
		assert rows[0].answer_confidence == "complete"
		assert (await store.get_project(project.id)).current_discovery_question_id == next_id

	@pytest.mark.asyncio
	async def test_answer_last_question_clears_cursor(self, store):
		project = await store.create_project("shop", None, "standard")
		qid = await store.add_discovery_question(project.id, "a", "Only?")
		answered, next_id = await store.answer_and_ask(project.id, qid, "done")
		assert answered and next_id is None
		assert (await store.get_project(project.id)).current_discovery_question_id is None

	@pytest.mark.asyncio
	async def test_second_answer_is_rejected(self, store):
		"""A question can only be answered once; nothing else is written."""
		project = await store.create_project("shop", None, "standard")
		qid = await store.add_discovery_question(project.id, "a", "First?")
		await store.answer_and_ask(project.id, qid, "one")
		answered, next_id = await store.answer_and_ask(project.id, qid, "two", ("b", "Second?"))
		assert not answered and next_id is None
		rows = await store.list_discovery_rows(project.id)
		assert len(rows) == 1
		assert rows[0].user_answer == "one"


class TestConversationAndMemory:
	@pytest.mark.asyncio
	async def test_conversation_in_order(self, store):
		project = await store.create_project("shop", None, "standard")
		await store.append_conversation(project.id, "user", "hi")
		await store.append_conversation(project.id, "assistant", "hello")
		assert await store.list_conversation(project.id) == [
			{"role": "user", "message": "hi"},
			{"role": "assistant", "message": "hello"},
		]

	@pytest.mark.asyncio
	async def test_memory_search_newest_first_and_limited(self, store):
		"""Memory search matches keywords, newest first, up to the limit."""
		for i in range(7):
			await store.save_memory("QAAgent", 1, f"Checkout decision {i}", "because", {"i": i})
		await store.save_memory("QAAgent", 1, "Unrelated", "nothing", {})
		await store.save_memory("QAAgent", 2, "Checkout elsewhere", "other project", {})

		rows = await store.search_memories(1, ["checkout"], limit=5)
		assert len(rows) == 5
		assert rows[0]["decision"] == "Checkout decision 6"

	@pytest.mark.asyncio
	async def test_memory_search_escapes_wildcards(self, store):
		"""LIKE wildcards in keywords match literally."""
		await store.save_memory("QAAgent", 1, "plain text", "none", {})
		assert await store.search_memories(1, ["%"]) == []
		assert await store.search_memories(1, []) == []

	@pytest.mark.asyncio
	async def test_requirements_saved(self, store):
		project = await store.create_project("shop", None, "standard")
		await store.save_requirements(project.id, [("functional", "auth_system", "Login", "critical")])
		rows = await store.list_requirements(project.id)
		assert rows[0]["requirement_id"] == "auth_system"
		assert rows[0]["priority"] == "critical"
