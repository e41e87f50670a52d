"""
Discovery Engine - Adaptive requirement-gathering dialog.

A project's discovery session is never stored as a separate object. It is
rebuilt on every call from the append-only question/answer log in the
store (see `load_snapshot`), with one documented invariant:

	current_question_id is exactly the last unanswered row, or None.

At most one question is outstanding at a time. Answering and asking the
next question happen in a single store transaction.

States: NOT_STARTED -> AWAITING_ANSWER -> COMPLETE (never backwards).
"""

import logging
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from ..errors import DiscoveryAlreadyStarted, DiscoverySessionNotFound, UnknownQuestion
from ..plans.models import TechnicalLevel
from ..plans.store import ProjectStore
from .profiling import UserProfile
from .questions import (
	CRM_QUESTIONS,
	CUSTOM_ORDERS_QUESTION,
	DEFAULT_QUESTIONS,
	ECOMMERCE_QUESTIONS,
	ENTERPRISE_QUESTION,
	AnsweredQuestion,
	Question,
	adaptive_questions,
	classify_project,
	format_question,
	questions_for_project_type,
)
from .requirements import Requirements, RequirementsCompiler

logger = logging.getLogger(__name__)

COMPLETE_MESSAGE = "Project discovery complete. Generating project plan."

# Known questions by text, to restore importance/filters when replaying the log
_KNOWN_QUESTIONS: dict[str, Question] = {
	q.text: q
	for q in [
		*ECOMMERCE_QUESTIONS,
		*CRM_QUESTIONS,
		*DEFAULT_QUESTIONS,
		CUSTOM_ORDERS_QUESTION,
		ENTERPRISE_QUESTION,
	]
}


class DiscoveryState(str, Enum):
	NOT_STARTED = "not_started"
	AWAITING_ANSWER = "awaiting_answer"
	COMPLETE = "complete"


class DiscoverySession(BaseModel):
	"""Snapshot of a project's discovery dialog, rebuilt from the log."""
	project_id: int
	user_profile: UserProfile = Field(default_factory=UserProfile)
	project_type: str = "general"
	current_question_id: Optional[int] = None
	current_question: Optional[Question] = None
	answered: dict[int, AnsweredQuestion] = Field(default_factory=dict)
	asked: int = 0

	@property
	def state(self) -> DiscoveryState:
		if self.current_question_id is not None:
			return DiscoveryState.AWAITING_ANSWER
		if self.asked == 0:
			return DiscoveryState.NOT_STARTED
		return DiscoveryState.COMPLETE

	@property
	def technical_level(self) -> TechnicalLevel:
		return self.user_profile.technical_level

	def answered_in_order(self) -> list[AnsweredQuestion]:
		return [self.answered[row_id] for row_id in sorted(self.answered)]


class DiscoveryStart(BaseModel):
	project_type: str
	question_id: int
	first_question: str


class DiscoveryResultKind(str, Enum):
	QUESTION = "question"
	COMPLETE = "complete"


class DiscoveryResult(BaseModel):
	kind: DiscoveryResultKind
	content: str
	question_id: Optional[int] = None
	requirements: Optional[Requirements] = None


class DiscoveryEngine:
	"""
	Drives discovery for projects persisted in a ProjectStore.

	Usage:
		engine = DiscoveryEngine(store)
		start = await engine.conduct_discovery(project.id, profile, "an online shoe store")
		result = await engine.process_answer(project.id, "Physical sneakers")
	"""

	def __init__(
		self,
		store: ProjectStore,
		compiler: Optional[RequirementsCompiler] = None,
		adaptive_followups: bool = True,
	):
		self.store = store
		self.compiler = compiler or RequirementsCompiler()
		self.adaptive_followups = adaptive_followups

	# ------------------------------------------------------------------
	# Selection
	# ------------------------------------------------------------------

	def candidate_pool(self, session: DiscoverySession) -> list[Question]:
		pool = questions_for_project_type(session.project_type)
		if self.adaptive_followups:
			pool.extend(adaptive_questions(session.project_type, session.answered_in_order()))
		return pool

	def select_next_question(self, session: DiscoverySession) -> Optional[Question]:
		"""
		Pick the next question to ask, or None when discovery is done.

		Drops questions above the user's level and questions already
		answered (by text), then takes the most important; ties keep
		pool order.
		"""
		answered_texts = {a.question.text for a in session.answered.values()}
		candidates = [
			q for q in self.candidate_pool(session)
			if q.visible_to(session.technical_level) and q.text not in answered_texts
		]
		candidates.sort(key=lambda q: q.importance.rank, reverse=True)
		return candidates[0] if candidates else None

	# ------------------------------------------------------------------
	# Session snapshot
	# ------------------------------------------------------------------

	async def load_snapshot(self, project_id: int) -> DiscoverySession:
		"""
		Rebuild the discovery session from the project's question log.

		Raises:
			DiscoverySessionNotFound: If the project does not exist
		"""
		project = await self.store.get_project(project_id)
		if project is None:
			raise DiscoverySessionNotFound(f"Discovery session not found for project {project_id}.")

		rows = await self.store.list_discovery_rows(project_id)
		session = DiscoverySession(
			project_id=project_id,
			user_profile=UserProfile(technical_level=project.technical_level),
			project_type=project.project_type,
			asked=len(rows),
		)
		for row in rows:
			question = _KNOWN_QUESTIONS.get(row.question_text) or Question(
				category=row.question_category,
				text=row.question_text,
			)
			if row.user_answer is not None:
				session.answered[row.id] = AnsweredQuestion(question=question, answer=row.user_answer)
			else:
				session.current_question_id = row.id
				session.current_question = question

		if session.current_question_id != project.current_discovery_question_id:
			logger.warning(
				f"Project {project_id} points at question {project.current_discovery_question_id}, "
				f"log says {session.current_question_id}; using the log"
			)
		return session

	# ------------------------------------------------------------------
	# Operations
	# ------------------------------------------------------------------

	async def conduct_discovery(
		self,
		project_id: int,
		user_profile: Union[UserProfile, TechnicalLevel],
		initial_idea: str,
	) -> DiscoveryStart:
		"""
		Classify the idea, ask the first question and enter AWAITING_ANSWER.

		Raises:
			DiscoverySessionNotFound: If the project does not exist
			DiscoveryAlreadyStarted: If questions were already asked
			UnknownQuestion: If no question is available
		"""
		if not isinstance(user_profile, UserProfile):
			user_profile = UserProfile(technical_level=user_profile)

		existing = await self.load_snapshot(project_id)
		if existing.state != DiscoveryState.NOT_STARTED:
			raise DiscoveryAlreadyStarted(f"Discovery already started for project {project_id}.")

		project_type = classify_project(initial_idea)
		session = DiscoverySession(
			project_id=project_id,
			user_profile=user_profile,
			project_type=project_type,
		)
		question = self.select_next_question(session)
		if question is None:
			raise UnknownQuestion(f"No initial questions available for project type {project_type}.")

		await self.store.update_project(
			project_id,
			project_type=project_type,
			technical_level=user_profile.technical_level,
		)
		question_id = await self.store.add_discovery_question(project_id, question.category, question.text)
		logger.info(f"Discovery started for project {project_id} (type={project_type}, question={question_id})")

		return DiscoveryStart(
			project_type=project_type,
			question_id=question_id,
			first_question=format_question(question, user_profile.technical_level),
		)

	async def process_answer(self, project_id: int, answer: str) -> DiscoveryResult:
		"""
		Record the answer to the pending question and advance the dialog.

		Raises:
			DiscoverySessionNotFound: If the project does not exist
			UnknownQuestion: If no question is pending, or it was answered concurrently
		"""
		session = await self.load_snapshot(project_id)
		question_id = session.current_question_id
		current = session.current_question
		if question_id is None or current is None:
			raise UnknownQuestion(f"No current question in session for project {project_id}.")

		session.answered[question_id] = AnsweredQuestion(question=current, answer=answer)
		session.current_question_id = None
		session.current_question = None

		next_question = self.select_next_question(session)
		answered, next_id = await self.store.answer_and_ask(
			project_id,
			question_id,
			answer,
			(next_question.category, next_question.text) if next_question else None,
		)
		if not answered:
			raise UnknownQuestion(f"Question {question_id} was already answered.")

		if next_question is not None:
			logger.debug(f"Project {project_id}: answered {question_id}, asking {next_id}")
			return DiscoveryResult(
				kind=DiscoveryResultKind.QUESTION,
				content=format_question(next_question, session.technical_level),
				question_id=next_id,
			)

		requirements = self.compiler.compile(session.answered_in_order())
		await self.store.save_requirements(project_id, requirements.rows())
		logger.info(
			f"Discovery complete for project {project_id}: "
			f"{len(requirements.all())} requirement(s) from {len(session.answered)} answer(s)"
		)
		return DiscoveryResult(
			kind=DiscoveryResultKind.COMPLETE,
			content=COMPLETE_MESSAGE,
			requirements=requirements,
		)
