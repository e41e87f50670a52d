"""
Scheduler - Dependency-aware dispatch of pending tasks.

The scheduler is the only rescheduling trigger in the system. It runs after
every plan mutation and after every task result, so it must be cheap and
safe to call repeatedly and concurrently for the same project.

Dispatch of a record is guarded by a conditional `pending -> queued`
transition in the store. Only the caller whose UPDATE affected the row puts
the payload on a queue, so overlapping runs never double-dispatch.
"""

import logging
from enum import Enum

from ..plans.models import AgentRole, AgentTaskRecord, DispatchPayload, TaskStatus
from ..plans.store import ProjectStore
from .queues import DispatchQueues

logger = logging.getLogger(__name__)


class FailedDependencyPolicy(str, Enum):
	"""Whether a failed dependency unblocks its dependents."""
	RESOLVE = "resolve"
	BLOCK = "block"


class Scheduler:
	"""Dispatches tasks whose dependencies are resolved."""

	def __init__(
		self,
		store: ProjectStore,
		queues: DispatchQueues,
		policy: FailedDependencyPolicy = FailedDependencyPolicy.RESOLVE,
	):
		self.store = store
		self.queues = queues
		self.policy = FailedDependencyPolicy(policy)

	def resolved_ids(self, records: list[AgentTaskRecord]) -> set[str]:
		"""Task ids whose dependency obligation is satisfied under the policy."""
		if self.policy == FailedDependencyPolicy.RESOLVE:
			statuses = (TaskStatus.COMPLETED, TaskStatus.FAILED)
		else:
			statuses = (TaskStatus.COMPLETED,)
		return {r.task_id_ref for r in records if r.status in statuses}

	async def schedule_tasks(self, project_id: int) -> list[str]:
		"""
		Dispatch every pending task whose dependencies are all resolved.

		Returns:
			Task ids dispatched by this call
		"""
		project = await self.store.get_project(project_id)
		if project is None:
			logger.warning(f"Cannot schedule: project {project_id} not found")
			return []
		if project.plan is None:
			logger.warning(f"Cannot schedule: project {project_id} has no plan")
			return []

		records = await self.store.list_agent_tasks(project_id)
		resolved = self.resolved_ids(records)
		dispatched = []

		for record in records:
			if record.status != TaskStatus.PENDING:
				continue

			task = project.plan.find_task(record.task_id_ref)
			if task is None:
				logger.warning(f"Task {record.task_id_ref} has a ledger row but no plan entry; skipping")
				continue

			if not all(dep in resolved for dep in task.dependencies):
				continue

			try:
				role = AgentRole.parse(record.agent_type)
			except ValueError:
				logger.error(f"Task {record.task_id_ref} has unknown agent type {record.agent_type!r}; skipping")
				continue

			claimed = await self.store.transition_task(
				project_id, record.task_id_ref, [TaskStatus.PENDING], TaskStatus.QUEUED,
			)
			if not claimed:
				# Another scheduler run got there first
				continue

			self.queues.put(role, DispatchPayload(
				project_id=project_id,
				task_id=task.task_id,
				task=task.description,
				mode=project.mode,
			))
			dispatched.append(task.task_id)

		if dispatched:
			logger.info(f"Project {project_id}: dispatched {', '.join(dispatched)}")
		return dispatched

	async def requeue_dispatched(self) -> list[str]:
		"""
		Put every `queued` ledger row back on its role queue.

		Queues live in memory, so rows claimed by an earlier process are
		re-enqueued on startup. Call before the worker pools start.

		Returns:
			Task ids re-enqueued
		"""
		requeued = []
		modes: dict[int, str] = {}
		for record in await self.store.list_agent_tasks_with_status([TaskStatus.QUEUED]):
			try:
				role = AgentRole.parse(record.agent_type)
			except ValueError:
				logger.error(f"Task {record.task_id_ref} has unknown agent type {record.agent_type!r}; not requeued")
				continue

			if record.project_id not in modes:
				project = await self.store.get_project(record.project_id)
				modes[record.project_id] = project.mode if project else "standard"

			self.queues.put(role, DispatchPayload(
				project_id=record.project_id,
				task_id=record.task_id_ref,
				task=record.task_description,
				mode=modes[record.project_id],
			))
			requeued.append(record.task_id_ref)

		if requeued:
			logger.info(f"Requeued {len(requeued)} dispatched task(s): {', '.join(requeued)}")
		return requeued

	async def blocked_tasks(self, project_id: int) -> list[str]:
		"""
		Pending tasks that can never run because an upstream task failed.

		Always empty under the resolve policy.
		"""
		if self.policy == FailedDependencyPolicy.RESOLVE:
			return []

		project = await self.store.get_project(project_id)
		if project is None or project.plan is None:
			return []

		records = await self.store.list_agent_tasks(project_id)
		blocked = {r.task_id_ref for r in records if r.status == TaskStatus.FAILED}
		pending = [r for r in records if r.status == TaskStatus.PENDING]

		# Propagate through chains of pending dependents
		changed = True
		while changed:
			changed = False
			for record in pending:
				if record.task_id_ref in blocked:
					continue
				task = project.plan.find_task(record.task_id_ref)
				if task and any(dep in blocked for dep in task.dependencies):
					blocked.add(record.task_id_ref)
					changed = True

		return [r.task_id_ref for r in pending if r.task_id_ref in blocked]
