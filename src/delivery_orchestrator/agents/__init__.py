"""Agents module - Role agents, prompts and agent memory."""

from .base import RoleAgent
from .memory import MemoryService

__all__ = [
	"RoleAgent",
	"MemoryService",
]
