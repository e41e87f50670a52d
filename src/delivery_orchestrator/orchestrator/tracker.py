"""
Result Tracker - Persists task results and closes the feedback loop.

Every result triggers a scheduler run, which is how dependents of a
finished task get dispatched. After rescheduling the project status is
rolled up from the ledger.
"""

import logging
from typing import TYPE_CHECKING

from ..errors import FailureEnvelope, ProjectNotFoundError, WorkerExecutionError
from ..plans.models import ProjectStatus, TaskStatus
from ..plans.store import ProjectStore

if TYPE_CHECKING:
	from .scheduler import Scheduler

logger = logging.getLogger(__name__)


class ResultTracker:
	"""Records task outcomes and reschedules."""

	def __init__(self, store: ProjectStore, scheduler: "Scheduler"):
		self.store = store
		self.scheduler = scheduler

	async def process_task_result(
		self,
		project_id: int,
		task_id: str,
		status: TaskStatus,
		output: str,
	) -> bool:
		"""
		Persist a task's terminal status and output, then reschedule.

		Duplicate or out-of-order reports are logged and ignored, but the
		scheduler still runs.

		Returns:
			True if this report changed the ledger
		"""
		status = TaskStatus(status)
		if not status.is_terminal:
			raise ValueError(f"Task results must be completed or failed, got {status.value}")

		applied = await self.store.transition_task(
			project_id,
			task_id,
			[TaskStatus.QUEUED, TaskStatus.IN_PROGRESS],
			status,
			output_data=output,
		)
		if not applied:
			logger.warning(f"Ignoring {status.value} report for {task_id}: not queued or in progress")
		elif status == TaskStatus.FAILED:
			envelope = FailureEnvelope.parse(output)
			if envelope is not None:
				logger.error(f"Task {task_id} failed ({envelope.type}): {envelope.error} {envelope.details}")
			else:
				logger.error(f"Task {task_id} failed: {output[:500]}")
		else:
			logger.info(f"Task {task_id} completed for project {project_id}")

		await self.scheduler.schedule_tasks(project_id)
		await self.update_project_status(project_id)
		return applied

	async def recover_interrupted(self) -> list[str]:
		"""
		Fail every ledger row left `in_progress` by an earlier process.

		A handler that was running when the process stopped never reports,
		so its row is closed with a WorkerExecutionError envelope and the
		scheduler runs as for any other result.

		Returns:
			Task ids marked failed
		"""
		recovered = []
		for record in await self.store.list_agent_tasks_with_status([TaskStatus.IN_PROGRESS]):
			output = WorkerExecutionError(
				"Task interrupted before it reported a result.",
				f"{record.agent_type} run for {record.task_id_ref} did not finish",
			).to_envelope().to_json()
			if await self.process_task_result(record.project_id, record.task_id_ref, TaskStatus.FAILED, output):
				recovered.append(record.task_id_ref)

		if recovered:
			logger.warning(f"Marked {len(recovered)} interrupted task(s) failed: {', '.join(recovered)}")
		return recovered

	async def update_project_status(self, project_id: int) -> ProjectStatus:
		"""
		Roll the project status up from its ledger.

		pending -> in_progress once any task has left pending; completed when
		every task completed; failed when all are terminal and any failed.
		Projects still in discovery are left alone.

		The write is conditional on the status that was read. If another
		roll-up moved the project in between, the ledger is read again and
		the target recomputed.
		"""
		while True:
			project = await self.store.get_project(project_id)
			if project is None:
				raise ProjectNotFoundError(project_id)
			if project.status == ProjectStatus.DISCOVERY:
				return project.status

			records = await self.store.list_agent_tasks(project_id)
			if not records:
				return project.status

			if all(r.status.is_terminal for r in records):
				failed = any(r.status == TaskStatus.FAILED for r in records)
				target = ProjectStatus.FAILED if failed else ProjectStatus.COMPLETED
			elif any(r.status != TaskStatus.PENDING for r in records) or project.status != ProjectStatus.PENDING:
				target = ProjectStatus.IN_PROGRESS
			else:
				target = ProjectStatus.PENDING

			if target == project.status:
				return target

			moved = await self.store.transition_project(project_id, [project.status], target)
			if moved:
				logger.info(f"Project {project_id}: {project.status.value} -> {target.value}")
				return target
			logger.debug(f"Project {project_id} changed during roll-up; recomputing")
