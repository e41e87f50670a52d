"""Shared test fixtures and helpers for delivery-orchestrator tests."""

import asyncio
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from delivery_orchestrator.config import Config
from delivery_orchestrator.plans.models import AgentRole, Phase, ProjectPlan, ProjectStatus, Task
from delivery_orchestrator.plans.store import ProjectStore
from delivery_orchestrator.retry import RetryPolicy


async def no_sleep(seconds: float) -> None:
	"""Sleep replacement so retry tests never wait."""
	return None


def fast_retry(max_attempts: int = 3) -> RetryPolicy:
	"""A retry policy that never sleeps."""
	return RetryPolicy(max_attempts=max_attempts, delay_ms=0, sleep=no_sleep)


class ScriptedOracle:
	"""Oracle that replays scripted replies in order.

	A reply may be a string or an exception instance, which is raised.
	Once the script runs out, the fallback reply is returned.
	"""

	def __init__(self, replies: Iterable[Union[str, Exception]] = (), fallback: str = "Done."):
		self.replies = list(replies)
		self.fallback = fallback
		self.calls: list[dict] = []

	async def invoke(self, prompt: str, mode: str = "standard", system: Optional[str] = None) -> str:
		self.calls.append({"prompt": prompt, "mode": mode, "system": system})
		if self.replies:
			reply = self.replies.pop(0)
		else:
			reply = self.fallback
		if isinstance(reply, Exception):
			raise reply
		return reply


class RecordingHandler:
	"""Task handler that records calls and tracks its peak concurrency."""

	def __init__(self, output: Union[str, Callable[[str], str]] = "ok", delay: float = 0.0):
		self.output = output
		self.delay = delay
		self.calls: list[tuple[str, int, str]] = []
		self.running = 0
		self.peak = 0

	async def process_task(self, task: str, project_id: int, mode: str) -> str:
		self.calls.append((task, project_id, mode))
		self.running += 1
		self.peak = max(self.peak, self.running)
		try:
			if self.delay:
				await asyncio.sleep(self.delay)
			return self.output(task) if callable(self.output) else self.output
		finally:
			self.running -= 1


def make_config(tmp_path: Path, **overrides) -> Config:
	"""Config rooted in a temporary directory."""
	config = Config(config_dir=tmp_path / "config", data_dir=tmp_path / "data")
	for key, value in overrides.items():
		setattr(config, key, value)
	config.ensure_dirs()
	return config


async def open_store(tmp_path: Path) -> ProjectStore:
	"""An initialized store backed by a temporary database."""
	store = ProjectStore(str(tmp_path / "orchestrator.db"))
	await store.init()
	return store


def make_plan(tasks: Optional[list[Task]] = None, project_name: str = "shop") -> ProjectPlan:
	"""Create a plan; by default T1 (FullStack) and T2 (QA, after T1)."""
	if tasks is None:
		tasks = [
			Task(task_id="T1", description="Build the product catalog", agent=AgentRole.FULL_STACK),
			Task(task_id="T2", description="Test the product catalog", agent=AgentRole.QA, dependencies=["T1"]),
		]
	return ProjectPlan(
		project_name=project_name,
		description="An online shoe store",
		phases=[Phase(name="Development", tasks=tasks)],
	)


async def make_planned_project(
	store: ProjectStore,
	plan: Optional[ProjectPlan] = None,
	mode: str = "standard",
) -> int:
	"""Create a pending project with a plan and ledger rows. Returns its id."""
	plan = plan or make_plan()
	project = await store.create_project("shop", "An online shoe store", mode, status=ProjectStatus.PENDING)
	await store.update_project(project.id, plan=plan)
	await store.insert_agent_tasks(project.id, plan.all_tasks())
	return project.id


def capture_tools(runtime, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		runtime: Runtime (or mock) to pass to the registration function
		register_fn: The registration function (e.g., register_project_tools)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), runtime)
	return captured
