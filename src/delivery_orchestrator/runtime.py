"""
Runtime - Wires the store, scheduler, worker pools, agents and manager.

One Runtime per process. The server starts it in its lifespan; tests build
one against a temporary database and a scripted oracle.
"""

import logging
from typing import Optional

from .agents.base import RoleAgent
from .agents.memory import MemoryService
from .config import Config, load_config
from .discovery.engine import DiscoveryEngine
from .discovery.requirements import RequirementsCompiler
from .llm.oracle import ClaudeCliOracle, Oracle
from .orchestrator.manager import Manager
from .orchestrator.queues import DispatchQueues
from .orchestrator.scheduler import FailedDependencyPolicy, Scheduler
from .orchestrator.tracker import ResultTracker
from .orchestrator.workers import PoolManager
from .plans.models import AgentRole
from .plans.store import ProjectStore
from .retry import RetryPolicy
from .tools.registry import ToolRegistry, default_registry

logger = logging.getLogger(__name__)


class Runtime:
	"""
	The assembled orchestrator.

	Usage:
		runtime = Runtime(config)
		await runtime.start()
		created = await runtime.manager.create_new_project(...)
		await runtime.stop()
	"""

	def __init__(
		self,
		config: Optional[Config] = None,
		oracle: Optional[Oracle] = None,
		retry_policy: Optional[RetryPolicy] = None,
		tools: Optional[ToolRegistry] = None,
	):
		self.config = config or load_config()
		self.store = ProjectStore(str(self.config.db_path))
		self.queues = DispatchQueues()
		self.scheduler = Scheduler(
			self.store,
			self.queues,
			FailedDependencyPolicy(self.config.failed_dependency_policy),
		)
		self.tracker = ResultTracker(self.store, self.scheduler)
		self.oracle = oracle or ClaudeCliOracle(
			command=self.config.oracle_command,
			timeout=self.config.oracle_timeout,
			mode_models=self.config.mode_models,
			default_mode=self.config.default_mode,
		)
		self.retry_policy = retry_policy or RetryPolicy.from_config(self.config)
		self.tools = tools or default_registry()
		self.memory = MemoryService(self.store)

		self.agents: dict[AgentRole, RoleAgent] = {
			role: RoleAgent(role, self.oracle, self.retry_policy, self.tools, memory=self.memory)
			for role in AgentRole
		}
		self.pools = PoolManager(
			self.queues,
			self.agents,
			self.tracker,
			self.store,
			concurrency={role: self.config.concurrency_for(role.value) for role in AgentRole},
			default_concurrency=self.config.default_concurrency,
		)

		compiler = RequirementsCompiler()
		self.discovery = DiscoveryEngine(
			self.store, compiler=compiler, adaptive_followups=self.config.adaptive_followups,
		)
		self.manager = Manager(
			self.store,
			self.discovery,
			self.scheduler,
			self.tracker,
			self.oracle,
			self.retry_policy,
			self.tools,
			compiler=compiler,
		)
		self._started = False

	@property
	def started(self) -> bool:
		return self._started

	async def start(self) -> None:
		"""
		Open the database, recover unfinished ledger rows and start the
		worker pools.

		Rows still `queued` are put back on their queues; rows left
		`in_progress` are failed. Requeue runs first so that tasks
		dispatched by the recovery step are not enqueued twice.
		"""
		if self._started:
			return
		await self.store.init()
		requeued = await self.scheduler.requeue_dispatched()
		interrupted = await self.tracker.recover_interrupted()
		if requeued or interrupted:
			logger.info(f"Recovered ledger: {len(requeued)} requeued, {len(interrupted)} interrupted")
		self.pools.start()
		self._started = True
		logger.info(f"Runtime started (db={self.config.db_path}, policy={self.scheduler.policy.value})")

	async def stop(self, drain: bool = False) -> None:
		"""Stop the pools and close the database."""
		if not self._started:
			return
		await self.pools.stop(drain=drain)
		await self.store.close()
		self._started = False
		logger.info("Runtime stopped")

	async def __aenter__(self) -> "Runtime":
		await self.start()
		return self

	async def __aexit__(self, *exc) -> None:
		await self.stop()
