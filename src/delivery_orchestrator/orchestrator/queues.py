"""
Dispatch queues - One in-process FIFO per agent role.

Besides the per-role asyncio.Queue, DispatchQueues counts outstanding
payloads across all roles so callers can wait for the whole system to go
idle, including work enqueued by tasks that finished in another role.
"""

import asyncio
import logging
from typing import Iterable, Optional

from ..plans.models import AgentRole, DispatchPayload

logger = logging.getLogger(__name__)


class DispatchQueues:
	"""Role-keyed dispatch queues with a global idle signal."""

	def __init__(self, roles: Optional[Iterable[AgentRole]] = None):
		self._queues: dict[AgentRole, asyncio.Queue[DispatchPayload]] = {
			role: asyncio.Queue() for role in (roles or AgentRole)
		}
		self._outstanding = 0
		self._idle = asyncio.Event()
		self._idle.set()

	@property
	def roles(self) -> list[AgentRole]:
		return list(self._queues)

	def queue(self, role: AgentRole) -> asyncio.Queue:
		return self._queues[AgentRole.parse(role)]

	def put(self, role: AgentRole, payload: DispatchPayload) -> None:
		"""Enqueue a payload for a role."""
		self.queue(role).put_nowait(payload)
		self._outstanding += 1
		self._idle.clear()
		logger.debug(f"Queued {payload.task_id} for {AgentRole.parse(role).value}")

	async def get(self, role: AgentRole) -> DispatchPayload:
		return await self.queue(role).get()

	def task_done(self, role: AgentRole) -> None:
		"""Mark a payload taken with get() as fully handled."""
		self.queue(role).task_done()
		self._outstanding -= 1
		if self._outstanding == 0:
			self._idle.set()

	def qsize(self, role: Optional[AgentRole] = None) -> int:
		if role is not None:
			return self.queue(role).qsize()
		return sum(q.qsize() for q in self._queues.values())

	@property
	def outstanding(self) -> int:
		"""Payloads enqueued but not yet marked done."""
		return self._outstanding

	async def join(self) -> None:
		"""Wait until every enqueued payload in every role has been handled."""
		await self._idle.wait()
