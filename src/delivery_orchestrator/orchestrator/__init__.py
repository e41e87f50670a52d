"""Orchestrator module - Scheduling, dispatch, worker pools, and the manager."""

from .actions import ActionType, ManagerAction, parse_action
from .manager import Manager, ProjectCreated
from .queues import DispatchQueues
from .scheduler import FailedDependencyPolicy, Scheduler
from .tracker import ResultTracker
from .workers import PoolManager, WorkerPool

__all__ = [
	"ActionType",
	"DispatchQueues",
	"FailedDependencyPolicy",
	"Manager",
	"ManagerAction",
	"PoolManager",
	"ProjectCreated",
	"ResultTracker",
	"Scheduler",
	"WorkerPool",
	"parse_action",
]
