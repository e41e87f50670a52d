"""
Agent memory - Keyword lookup of past agent decisions.

A keyword heuristic over the store's agent_memory table. Failures are logged
and the task carries on without memory.
"""

import logging
import re

import aiosqlite

from ..plans.store import ProjectStore

logger = logging.getLogger(__name__)


def extract_keywords(text: str) -> list[str]:
	"""Words longer than three characters, in order, without duplicates."""
	seen = []
	for word in re.split(r"\s+", text):
		word = word.strip(".,;:!?\"'()[]{}")
		if len(word) > 3 and word.lower() not in (w.lower() for w in seen):
			seen.append(word)
	return seen


class MemoryService:
	"""Saves and retrieves agent decisions for a project."""

	def __init__(self, store: ProjectStore, limit: int = 5):
		self.store = store
		self.limit = limit

	async def save_memory(self, agent_type: str, project_id: int, decision: str, reasoning: str, **extra) -> None:
		try:
			await self.store.save_memory(agent_type, project_id, decision, reasoning, extra)
			logger.debug(f"Memory saved for {agent_type} in project {project_id}")
		except (aiosqlite.Error, TypeError, ValueError) as e:
			logger.warning(f"Could not save memory for {agent_type} in project {project_id}: {e}")

	async def retrieve_relevant_memories(self, task: str, project_id: int, limit: int | None = None) -> str:
		"""
		Format the most recent decisions matching the task's keywords.

		Returns:
			A "Relevant Past Decisions" block, or "" when nothing matches
		"""
		keywords = extract_keywords(task)
		if not keywords:
			return ""
		try:
			rows = await self.store.search_memories(project_id, keywords, limit or self.limit)
		except aiosqlite.Error as e:
			logger.warning(f"Could not search memories for project {project_id}: {e}")
			return ""
		if not rows:
			return ""

		memories = "\n".join(
			f"Past Decision {i}: {row['decision']}. Reasoning: {row['reasoning']}"
			for i, row in enumerate(rows, start=1)
		)
		logger.debug(f"Retrieved {len(rows)} relevant memories for project {project_id}")
		return (
			"--- Relevant Past Decisions ---\n"
			"Here are some relevant decisions from earlier work that might be helpful:\n"
			f"{memories}\n"
			"-----------------------------"
		)
