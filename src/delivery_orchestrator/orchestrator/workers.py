"""
Worker Pools - Bounded concurrent consumers, one pool per agent role.

Each pool runs `max_concurrency` consumer coroutines on its role queue.
Individual task failures never abort a pool: handler faults are converted
into a WorkerExecutionError envelope and reported like any other result.
Every payload a pool takes produces exactly one report to the tracker.
"""

import asyncio
import logging
from typing import Optional, Protocol

from ..errors import FailureEnvelope, TaskExecutionError, WorkerExecutionError
from ..plans.models import AgentRole, DispatchPayload, TaskStatus
from ..plans.store import ProjectStore
from .queues import DispatchQueues
from .tracker import ResultTracker

logger = logging.getLogger(__name__)


class TaskHandler(Protocol):
	"""Opaque per-role task executor."""

	async def process_task(self, task: str, project_id: int, mode: str) -> str:
		...


def classify_output(output: str) -> TaskStatus:
	"""A TaskExecutionError envelope means failed; anything else completed."""
	envelope = FailureEnvelope.parse(output)
	if envelope is not None and envelope.type == TaskExecutionError.envelope_type:
		return TaskStatus.FAILED
	return TaskStatus.COMPLETED


class WorkerPool:
	"""
	Consumes dispatch payloads for one role with bounded concurrency.

	Usage:
		pool = WorkerPool(AgentRole.QA, queues, agent, tracker, store, max_concurrency=2)
		pool.start()
		...
		await pool.stop()
	"""

	def __init__(
		self,
		role: AgentRole,
		queues: DispatchQueues,
		handler: TaskHandler,
		tracker: ResultTracker,
		store: ProjectStore,
		max_concurrency: int = 2,
	):
		"""
		Initialize a worker pool.

		Args:
			role: Role whose queue this pool consumes
			queues: Shared dispatch queues
			handler: Task handler for the role
			tracker: Receives exactly one report per payload
			store: Used for the queued -> in_progress transition
			max_concurrency: Number of consumer coroutines
		"""
		self.role = AgentRole.parse(role)
		self.queues = queues
		self.handler = handler
		self.tracker = tracker
		self.store = store
		self.max_concurrency = max(1, max_concurrency)
		self._consumers: list[asyncio.Task] = []
		self.processed = 0

	@property
	def running(self) -> bool:
		return any(not c.done() for c in self._consumers)

	def start(self) -> None:
		"""Start the consumer coroutines."""
		if self.running:
			return
		self._consumers = [
			asyncio.create_task(self._consume(i), name=f"{self.role.value}-worker-{i}")
			for i in range(self.max_concurrency)
		]
		logger.info(f"{self.role.value} pool started with {self.max_concurrency} worker(s)")

	async def stop(self) -> None:
		"""Cancel the consumers. Tasks already running are cancelled too."""
		for consumer in self._consumers:
			consumer.cancel()
		await asyncio.gather(*self._consumers, return_exceptions=True)
		self._consumers = []
		logger.info(f"{self.role.value} pool stopped after {self.processed} task(s)")

	async def _consume(self, worker_id: int) -> None:
		while True:
			payload = await self.queues.get(self.role)
			try:
				await self.process(payload)
			except Exception as e:
				logger.exception(f"{self.role.value} worker {worker_id} failed on {payload.task_id}: {e}")
				await self.report_fault(payload, e)
			finally:
				self.queues.task_done(self.role)

	async def report_fault(self, payload: DispatchPayload, exc: Exception) -> None:
		"""Report a failure for a payload whose processing raised outside the handler."""
		error = WorkerExecutionError(f"Worker failed for {self.role.value}.", str(exc))
		try:
			await self.tracker.process_task_result(
				payload.project_id, payload.task_id, TaskStatus.FAILED, error.to_envelope().to_json(),
			)
		except Exception as e:
			logger.exception(f"Failed to report worker fault for {payload.task_id}: {e}")

	async def run_handler(self, payload: DispatchPayload) -> tuple[TaskStatus, str]:
		"""Run the task handler, converting any fault into a failure envelope."""
		try:
			output = await self.handler.process_task(payload.task, payload.project_id, payload.mode)
		except Exception as e:
			logger.error(f"{self.role.value} handler raised on {payload.task_id}: {e}")
			error = WorkerExecutionError(f"Worker failed for {self.role.value}.", str(e))
			return TaskStatus.FAILED, error.to_envelope().to_json()

		if not isinstance(output, str):
			output = str(output)
		return classify_output(output), output

	async def process(self, payload: DispatchPayload) -> Optional[TaskStatus]:
		"""
		Process one payload and report its result.

		Returns:
			The reported status, or None if the record was no longer queued
		"""
		started = await self.store.transition_task(
			payload.project_id, payload.task_id, [TaskStatus.QUEUED], TaskStatus.IN_PROGRESS,
		)
		if not started:
			logger.warning(f"Task {payload.task_id} is no longer queued; dropping duplicate payload")
			return None

		status, output = await self.run_handler(payload)
		self.processed += 1

		try:
			await self.tracker.process_task_result(payload.project_id, payload.task_id, status, output)
		except Exception as e:
			logger.exception(f"Failed to report result for {payload.task_id}: {e}")
		return status


class PoolManager:
	"""Owns one WorkerPool per role."""

	def __init__(
		self,
		queues: DispatchQueues,
		handlers: dict[AgentRole, TaskHandler],
		tracker: ResultTracker,
		store: ProjectStore,
		concurrency: Optional[dict[AgentRole, int]] = None,
		default_concurrency: int = 2,
	):
		concurrency = concurrency or {}
		self.queues = queues
		self.pools: dict[AgentRole, WorkerPool] = {
			role: WorkerPool(
				role,
				queues,
				handler,
				tracker,
				store,
				max_concurrency=concurrency.get(role, default_concurrency),
			)
			for role, handler in handlers.items()
		}

	def start(self) -> None:
		for pool in self.pools.values():
			pool.start()

	async def join(self) -> None:
		"""Wait until every dispatched payload, including follow-on work, is handled."""
		await self.queues.join()

	async def stop(self, drain: bool = True) -> None:
		"""Stop all pools, optionally waiting for queued work first."""
		if drain:
			await self.join()
		await asyncio.gather(*(pool.stop() for pool in self.pools.values()))
