"""
Project Store - SQLite-backed persistence for projects and the task ledger.

Features:
- Projects with their serialized plan and discovery cursor
- Agent task ledger with atomic conditional status transitions
- Append-only discovery question/answer log
- Conversation history, compiled requirements and agent memories
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

import aiosqlite

from .models import (
	AgentTaskRecord,
	DiscoveryRow,
	Project,
	ProjectPlan,
	ProjectStatus,
	Task,
	TaskStatus,
	TechnicalLevel,
)

logger = logging.getLogger(__name__)

SCHEMA = """
	CREATE TABLE IF NOT EXISTS users (
		id INTEGER PRIMARY KEY,
		technical_level TEXT,
		updated_at TEXT
	);

	CREATE TABLE IF NOT EXISTS projects (
		id INTEGER PRIMARY KEY AUTOINCREMENT,
		name TEXT NOT NULL,
		description TEXT,
		mode TEXT NOT NULL,
		status TEXT NOT NULL DEFAULT 'discovery',
		project_type TEXT NOT NULL DEFAULT 'general',
		technical_level TEXT NOT NULL DEFAULT 'noCode',
		codebase_path TEXT,
		user_id INTEGER,
		project_plan TEXT,
		current_discovery_question_id INTEGER,
		created_at TEXT NOT NULL,
		updated_at TEXT NOT NULL
	);

	CREATE TABLE IF NOT EXISTS agent_tasks (
		id INTEGER PRIMARY KEY AUTOINCREMENT,
		project_id INTEGER NOT NULL REFERENCES projects(id),
		agent_type TEXT NOT NULL,
		task_description TEXT NOT NULL,
		status TEXT NOT NULL DEFAULT 'pending',
		task_id_ref TEXT NOT NULL,
		output_data TEXT,
		completed_at TEXT,
		created_at TEXT NOT NULL,
		updated_at TEXT NOT NULL,
		UNIQUE(project_id, task_id_ref)
	);

	CREATE TABLE IF NOT EXISTS project_discovery (
		id INTEGER PRIMARY KEY AUTOINCREMENT,
		project_id INTEGER NOT NULL REFERENCES projects(id),
		question_category TEXT NOT NULL,
		question_text TEXT NOT NULL,
		user_answer TEXT,
		answer_confidence TEXT NOT NULL DEFAULT 'unanswered',
		created_at TEXT NOT NULL
	);

	CREATE TABLE IF NOT EXISTS project_requirements (
		id INTEGER PRIMARY KEY AUTOINCREMENT,
		project_id INTEGER NOT NULL REFERENCES projects(id),
		requirement_category TEXT NOT NULL,
		requirement_id TEXT NOT NULL,
		requirement_text TEXT NOT NULL,
		priority TEXT NOT NULL,
		created_at TEXT NOT NULL
	);

	CREATE TABLE IF NOT EXISTS conversations (
		id INTEGER PRIMARY KEY AUTOINCREMENT,
		project_id INTEGER NOT NULL REFERENCES projects(id),
		role TEXT NOT NULL,
		message TEXT NOT NULL,
		created_at TEXT NOT NULL
	);

	CREATE TABLE IF NOT EXISTS agent_memory (
		id INTEGER PRIMARY KEY AUTOINCREMENT,
		agent_type TEXT NOT NULL,
		project_id INTEGER NOT NULL,
		decision TEXT NOT NULL,
		reasoning TEXT NOT NULL,
		context TEXT NOT NULL,
		created_at TEXT NOT NULL
	);

	CREATE INDEX IF NOT EXISTS idx_agent_tasks_project ON agent_tasks(project_id, status);
	CREATE INDEX IF NOT EXISTS idx_discovery_project ON project_discovery(project_id);
	CREATE INDEX IF NOT EXISTS idx_conversations_project ON conversations(project_id);
	CREATE INDEX IF NOT EXISTS idx_memory_project ON agent_memory(project_id);
"""


def _now() -> str:
	return datetime.now().isoformat()


class ProjectStore:
	"""
	SQLite-backed project storage.

	Usage:
		store = ProjectStore("data/orchestrator.db")
		await store.init()

		project = await store.create_project("shop", None, "standard")
		await store.insert_agent_tasks(project.id, plan.all_tasks())

		# Atomic dispatch guard: only one caller wins
		claimed = await store.transition_task(
			project.id, "TASK_1", [TaskStatus.PENDING], TaskStatus.QUEUED,
		)
	"""

	# Allowlist of columns that can be updated (prevents SQL injection via column names)
	ALLOWED_PROJECT_COLUMNS = frozenset({
		"name", "description", "mode", "status", "project_type", "technical_level",
		"codebase_path", "project_plan", "current_discovery_question_id",
	})

	def __init__(self, db_path: str):
		"""Initialize the project store."""
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._db: Optional[aiosqlite.Connection] = None
		# Serializes multi-statement writes on the shared connection
		self._write_lock = asyncio.Lock()

	async def init(self):
		"""Initialize the database schema."""
		if self._db:
			return
		self._db = await aiosqlite.connect(str(self.db_path))
		self._db.row_factory = aiosqlite.Row
		await self._db.executescript(SCHEMA)
		await self._db.commit()
		logger.info(f"Project store initialized: {self.db_path}")

	async def close(self):
		"""Close the database connection."""
		if self._db:
			await self._db.close()
			self._db = None

	async def _conn(self) -> aiosqlite.Connection:
		if not self._db:
			await self.init()
		return self._db

	# ------------------------------------------------------------------
	# Users
	# ------------------------------------------------------------------

	async def get_user_technical_level(self, user_id: int) -> Optional[TechnicalLevel]:
		"""Get the stored technical level for a user, if known."""
		db = await self._conn()
		async with db.execute(
			"SELECT technical_level FROM users WHERE id = ?", (user_id,)
		) as cursor:
			row = await cursor.fetchone()
		if not row or not row["technical_level"]:
			return None
		return TechnicalLevel(row["technical_level"])

	async def set_user_technical_level(self, user_id: int, level: TechnicalLevel):
		"""Store a user's technical level."""
		db = await self._conn()
		async with self._write_lock:
			await db.execute(
				"""
				INSERT INTO users (id, technical_level, updated_at) VALUES (?, ?, ?)
				ON CONFLICT(id) DO UPDATE SET technical_level = excluded.technical_level,
					updated_at = excluded.updated_at
				""",
				(user_id, TechnicalLevel(level).value, _now()),
			)
			await db.commit()

	# ------------------------------------------------------------------
	# Projects
	# ------------------------------------------------------------------

	async def create_project(
		self,
		name: str,
		description: Optional[str],
		mode: str,
		technical_level: TechnicalLevel = TechnicalLevel.NO_CODE,
		codebase_path: Optional[str] = None,
		user_id: Optional[int] = None,
		status: ProjectStatus = ProjectStatus.DISCOVERY,
	) -> Project:
		"""
		Create a new project.

		Returns:
			The created Project
		"""
		db = await self._conn()
		now = _now()
		async with self._write_lock:
			cursor = await db.execute(
				"""
				INSERT INTO projects (name, description, mode, status, technical_level,
					codebase_path, user_id, created_at, updated_at)
				VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
				""",
				(
					name,
					description,
					mode,
					ProjectStatus(status).value,
					TechnicalLevel(technical_level).value,
					codebase_path,
					user_id,
					now,
					now,
				),
			)
			project_id = cursor.lastrowid
			await db.commit()

		logger.info(f"Created project {project_id} ({name})")
		return await self.get_project(project_id)

	async def get_project(self, project_id: int) -> Optional[Project]:
		"""Get a project by ID."""
		db = await self._conn()
		async with db.execute("SELECT * FROM projects WHERE id = ?", (project_id,)) as cursor:
			row = await cursor.fetchone()
		if not row:
			return None
		return Project(
			id=row["id"],
			name=row["name"],
			description=row["description"],
			mode=row["mode"],
			status=ProjectStatus(row["status"]),
			project_type=row["project_type"],
			technical_level=TechnicalLevel(row["technical_level"]),
			codebase_path=row["codebase_path"],
			user_id=row["user_id"],
			plan=ProjectPlan.model_validate_json(row["project_plan"]) if row["project_plan"] else None,
			current_discovery_question_id=row["current_discovery_question_id"],
			created_at=row["created_at"],
		)

	async def list_projects(self) -> list[Project]:
		"""List all projects, newest first."""
		db = await self._conn()
		async with db.execute("SELECT id FROM projects ORDER BY id DESC") as cursor:
			rows = await cursor.fetchall()
		projects = []
		for row in rows:
			project = await self.get_project(row["id"])
			if project:
				projects.append(project)
		return projects

	async def update_project(self, project_id: int, **updates) -> None:
		"""
		Update project columns.

		`plan` may be passed as a ProjectPlan (or None) and is stored as JSON.
		"""
		if "plan" in updates:
			plan = updates.pop("plan")
			updates["project_plan"] = plan.model_dump_json() if plan is not None else None

		# Validate column names to prevent SQL injection
		invalid_columns = set(updates.keys()) - self.ALLOWED_PROJECT_COLUMNS
		if invalid_columns:
			raise ValueError(f"Invalid columns for update: {invalid_columns}")

		values = [v.value if hasattr(v, "value") else v for v in updates.values()]
		set_clause = ", ".join(f"{k} = ?" for k in updates.keys())

		db = await self._conn()
		async with self._write_lock:
			await db.execute(
				f"UPDATE projects SET {set_clause}, updated_at = ? WHERE id = ?",
				values + [_now(), project_id],
			)
			await db.commit()

	async def transition_project(
		self,
		project_id: int,
		from_statuses: Iterable[ProjectStatus],
		to_status: ProjectStatus,
	) -> bool:
		"""Conditionally move a project between statuses. Returns True if it moved."""
		from_values = [ProjectStatus(s).value for s in from_statuses]
		placeholders = ",".join("?" * len(from_values))
		db = await self._conn()
		async with self._write_lock:
			cursor = await db.execute(
				f"UPDATE projects SET status = ?, updated_at = ? WHERE id = ? AND status IN ({placeholders})",
				[ProjectStatus(to_status).value, _now(), project_id, *from_values],
			)
			await db.commit()
		return cursor.rowcount == 1

	# ------------------------------------------------------------------
	# Agent task ledger
	# ------------------------------------------------------------------

	@staticmethod
	def _record_from_row(row: aiosqlite.Row) -> AgentTaskRecord:
		return AgentTaskRecord(
			id=row["id"],
			project_id=row["project_id"],
			task_id_ref=row["task_id_ref"],
			agent_type=row["agent_type"],
			task_description=row["task_description"],
			status=TaskStatus(row["status"]),
			output_data=row["output_data"],
			completed_at=row["completed_at"],
			created_at=row["created_at"],
		)

	async def insert_agent_tasks(self, project_id: int, tasks: Iterable[Task]) -> list[str]:
		"""
		Insert pending ledger rows for tasks that are not yet recorded.

		Returns:
			Task ids that were newly inserted
		"""
		db = await self._conn()
		inserted = []
		now = _now()
		async with self._write_lock:
			for task in tasks:
				cursor = await db.execute(
					"""
					INSERT OR IGNORE INTO agent_tasks (project_id, agent_type, task_description,
						status, task_id_ref, created_at, updated_at)
					VALUES (?, ?, ?, ?, ?, ?, ?)
					""",
					(
						project_id,
						task.agent.value,
						task.description,
						TaskStatus.PENDING.value,
						task.task_id,
						now,
						now,
					),
				)
				if cursor.rowcount == 1:
					inserted.append(task.task_id)
			await db.commit()
		if inserted:
			logger.info(f"Recorded {len(inserted)} task(s) for project {project_id}")
		return inserted

	async def list_agent_tasks(self, project_id: int) -> list[AgentTaskRecord]:
		"""All ledger rows for a project in insertion order."""
		db = await self._conn()
		async with db.execute(
			"SELECT * FROM agent_tasks WHERE project_id = ? ORDER BY id",
			(project_id,),
		) as cursor:
			rows = await cursor.fetchall()
		return [self._record_from_row(row) for row in rows]

	async def list_agent_tasks_with_status(self, statuses: Iterable[TaskStatus]) -> list[AgentTaskRecord]:
		"""Ledger rows in any of the given statuses, across all projects, oldest first."""
		values = [TaskStatus(s).value for s in statuses]
		if not values:
			return []
		placeholders = ",".join("?" * len(values))
		db = await self._conn()
		async with db.execute(
			f"SELECT * FROM agent_tasks WHERE status IN ({placeholders}) ORDER BY id",
			values,
		) as cursor:
			rows = await cursor.fetchall()
		return [self._record_from_row(row) for row in rows]

	async def get_agent_task(self, project_id: int, task_id: str) -> Optional[AgentTaskRecord]:
		"""Get one ledger row."""
		db = await self._conn()
		async with db.execute(
			"SELECT * FROM agent_tasks WHERE project_id = ? AND task_id_ref = ?",
			(project_id, task_id),
		) as cursor:
			row = await cursor.fetchone()
		return self._record_from_row(row) if row else None

	async def transition_task(
		self,
		project_id: int,
		task_id: str,
		from_statuses: Iterable[TaskStatus],
		to_status: TaskStatus,
		output_data: Optional[str] = None,
	) -> bool:
		"""
		Atomically move a ledger row from one of `from_statuses` to `to_status`.

		The status check and the write are a single conditional UPDATE, so
		concurrent callers can never both win the same transition. Terminal
		statuses also record output_data and completed_at.

		Returns:
			True if this call performed the transition
		"""
		from_statuses = [TaskStatus(s) for s in from_statuses]
		for src in from_statuses:
			if not TaskStatus.can_transition(src, to_status):
				raise ValueError(f"Illegal task transition: {src.value} -> {TaskStatus(to_status).value}")

		placeholders = ",".join("?" * len(from_statuses))
		now = _now()
		if TaskStatus(to_status).is_terminal:
			set_clause = "status = ?, output_data = ?, completed_at = ?, updated_at = ?"
			params = [TaskStatus(to_status).value, output_data, now, now]
		else:
			set_clause = "status = ?, updated_at = ?"
			params = [TaskStatus(to_status).value, now]

		db = await self._conn()
		async with self._write_lock:
			cursor = await db.execute(
				f"""
				UPDATE agent_tasks SET {set_clause}
				WHERE project_id = ? AND task_id_ref = ? AND status IN ({placeholders})
				""",
				params + [project_id, task_id, *(s.value for s in from_statuses)],
			)
			await db.commit()
		return cursor.rowcount == 1

	# ------------------------------------------------------------------
	# Discovery log
	# ------------------------------------------------------------------

	@staticmethod
	def _discovery_from_row(row: aiosqlite.Row) -> DiscoveryRow:
		return DiscoveryRow(
			id=row["id"],
			project_id=row["project_id"],
			question_category=row["question_category"],
			question_text=row["question_text"],
			user_answer=row["user_answer"],
			answer_confidence=row["answer_confidence"],
			created_at=row["created_at"],
		)

	async def _insert_question(self, db: aiosqlite.Connection, project_id: int, category: str, text: str) -> int:
		cursor = await db.execute(
			"""
			INSERT INTO project_discovery (project_id, question_category, question_text,
				answer_confidence, created_at)
			VALUES (?, ?, ?, 'unanswered', ?)
			""",
			(project_id, category, text, _now()),
		)
		question_id = cursor.lastrowid
		await db.execute(
			"UPDATE projects SET current_discovery_question_id = ?, updated_at = ? WHERE id = ?",
			(question_id, _now(), project_id),
		)
		return question_id

	async def add_discovery_question(self, project_id: int, category: str, text: str) -> int:
		"""
		Persist an unanswered question and point the project at it.

		Returns:
			The new question row id
		"""
		db = await self._conn()
		async with self._write_lock:
			question_id = await self._insert_question(db, project_id, category, text)
			await db.commit()
		return question_id

	async def list_discovery_rows(self, project_id: int) -> list[DiscoveryRow]:
		"""All discovery rows for a project in the order they were asked."""
		db = await self._conn()
		async with db.execute(
			"SELECT * FROM project_discovery WHERE project_id = ? ORDER BY id",
			(project_id,),
		) as cursor:
			rows = await cursor.fetchall()
		return [self._discovery_from_row(row) for row in rows]

	async def answer_and_ask(
		self,
		project_id: int,
		question_id: int,
		answer: str,
		next_question: Optional[tuple[str, str]] = None,
	) -> tuple[bool, Optional[int]]:
		"""
		Record an answer and, optionally, ask the next question in one transaction.

		Args:
			project_id: Project the question belongs to
			question_id: Row being answered (must still be unanswered)
			answer: The user's answer
			next_question: (category, text) of the next question, or None

		Returns:
			(answered, next_question_id). answered is False if the row was
			already answered, in which case nothing is written.
		"""
		db = await self._conn()
		async with self._write_lock:
			cursor = await db.execute(
				"""
				UPDATE project_discovery SET user_answer = ?, answer_confidence = 'complete'
				WHERE id = ? AND project_id = ? AND user_answer IS NULL
				""",
				(answer, question_id, project_id),
			)
			if cursor.rowcount != 1:
				await db.rollback()
				return False, None

			next_id = None
			if next_question is not None:
				category, text = next_question
				next_id = await self._insert_question(db, project_id, category, text)
			else:
				await db.execute(
					"UPDATE projects SET current_discovery_question_id = NULL, updated_at = ? WHERE id = ?",
					(_now(), project_id),
				)
			await db.commit()
		return True, next_id

	async def save_requirements(self, project_id: int, rows: Iterable[tuple[str, str, str, str]]) -> None:
		"""Persist compiled requirements as (category, requirement_id, text, priority) rows."""
		db = await self._conn()
		now = _now()
		async with self._write_lock:
			await db.executemany(
				"""
				INSERT INTO project_requirements (project_id, requirement_category, requirement_id,
					requirement_text, priority, created_at)
				VALUES (?, ?, ?, ?, ?, ?)
				""",
				[(project_id, c, rid, text, prio, now) for c, rid, text, prio in rows],
			)
			await db.commit()

	async def list_requirements(self, project_id: int) -> list[dict]:
		db = await self._conn()
		async with db.execute(
			"SELECT * FROM project_requirements WHERE project_id = ? ORDER BY id",
			(project_id,),
		) as cursor:
			rows = await cursor.fetchall()
		return [dict(row) for row in rows]

	# ------------------------------------------------------------------
	# Conversations
	# ------------------------------------------------------------------

	async def append_conversation(self, project_id: int, role: str, message: str) -> None:
		db = await self._conn()
		async with self._write_lock:
			await db.execute(
				"INSERT INTO conversations (project_id, role, message, created_at) VALUES (?, ?, ?, ?)",
				(project_id, role, message, _now()),
			)
			await db.commit()

	async def list_conversation(self, project_id: int) -> list[dict]:
		"""Conversation history as [{role, message}] oldest first."""
		db = await self._conn()
		async with db.execute(
			"SELECT role, message FROM conversations WHERE project_id = ? ORDER BY id",
			(project_id,),
		) as cursor:
			rows = await cursor.fetchall()
		return [{"role": row["role"], "message": row["message"]} for row in rows]

	# ------------------------------------------------------------------
	# Agent memory
	# ------------------------------------------------------------------

	async def save_memory(self, agent_type: str, project_id: int, decision: str, reasoning: str, context: dict) -> None:
		db = await self._conn()
		async with self._write_lock:
			await db.execute(
				"""
				INSERT INTO agent_memory (agent_type, project_id, decision, reasoning, context, created_at)
				VALUES (?, ?, ?, ?, ?, ?)
				""",
				(agent_type, project_id, decision, reasoning, json.dumps(context), _now()),
			)
			await db.commit()

	async def search_memories(self, project_id: int, keywords: list[str], limit: int = 5) -> list[dict]:
		"""Keyword LIKE search over decision/reasoning, newest first."""
		if not keywords:
			return []
		conditions = " OR ".join(
			"(decision LIKE ? ESCAPE '\\' OR reasoning LIKE ? ESCAPE '\\')" for _ in keywords
		)
		params: list = [project_id]
		for keyword in keywords:
			escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
			params.extend([f"%{escaped}%", f"%{escaped}%"])
		params.append(limit)

		db = await self._conn()
		async with db.execute(
			f"""
			SELECT agent_type, decision, reasoning, context, created_at FROM agent_memory
			WHERE project_id = ? AND ({conditions})
			ORDER BY id DESC LIMIT ?
			""",
			params,
		) as cursor:
			rows = await cursor.fetchall()
		return [dict(row) for row in rows]
