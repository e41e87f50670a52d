"""Plans module - Project, plan and task ledger models and storage."""

from .models import (
	AgentRole,
	AgentTaskRecord,
	DiscoveryRow,
	DispatchPayload,
	Phase,
	Project,
	ProjectPlan,
	ProjectStatus,
	Task,
	TaskStatus,
	TechnicalLevel,
)
from .store import ProjectStore

__all__ = [
	"AgentRole",
	"AgentTaskRecord",
	"DiscoveryRow",
	"DispatchPayload",
	"Phase",
	"Project",
	"ProjectPlan",
	"ProjectStatus",
	"Task",
	"TaskStatus",
	"TechnicalLevel",
	"ProjectStore",
]
