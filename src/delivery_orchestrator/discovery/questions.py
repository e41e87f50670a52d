"""
Discovery question pools and project classification.

Question pools are keyed by project type. A project type is detected from
the user's initial idea by keyword; types without their own pool fall back
to the default questions, which every pool ends with.
"""

import re
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from ..plans.models import TechnicalLevel


class Importance(str, Enum):
	"""How badly discovery needs an answer to a question."""
	CRITICAL = "critical"
	HIGH = "high"
	MEDIUM = "medium"
	LOW = "low"

	@property
	def rank(self) -> int:
		return {"critical": 4, "high": 3, "medium": 2, "low": 1}[self.value]


class Question(BaseModel):
	"""A discovery question."""
	category: str
	text: str
	importance: Importance = Importance.MEDIUM
	technical_level_filter: Optional[TechnicalLevel] = Field(
		default=None,
		description="Minimum technical level required to be asked this question",
	)
	follow_up: Optional[str] = None
	options: list[str] = Field(default_factory=list)
	examples: list[str] = Field(default_factory=list)

	def visible_to(self, level: TechnicalLevel) -> bool:
		if self.technical_level_filter is None:
			return True
		return self.technical_level_filter.ordinal <= TechnicalLevel(level).ordinal


GENERAL = "general"

# Declared order matters: the first matching category wins
PROJECT_CATEGORIES: dict[str, list[str]] = {
	"ecommerce": ["shop", "store", "buy", "sell", "product", "cart", "payment", "online store", "e-commerce"],
	"social": ["social", "chat", "message", "friend", "post", "share", "community", "feed", "network"],
	"crm": ["customer", "lead", "sales", "contact", "manage", "pipeline", "client", "relationship"],
	"dashboard": ["dashboard", "analytics", "report", "chart", "data", "metrics", "insights", "overview"],
	"booking": ["book", "appointment", "schedule", "calendar", "reservation", "event", "time slot"],
	"education": ["course", "learn", "student", "teach", "lesson", "quiz", "academy", "training"],
}


ECOMMERCE_QUESTIONS = [
	Question(
		category="business_scope",
		text="What type of products will you be selling?",
		follow_up="Are these physical products, digital downloads, or services?",
		importance=Importance.CRITICAL,
	),
	Question(
		category="business_scope",
		text="Who is your target customer?",
		follow_up="What age group, location, and buying behavior?",
		importance=Importance.CRITICAL,
	),
	Question(
		category="business_scope",
		text="How many products do you plan to have initially?",
		follow_up="Will this grow to hundreds, thousands, or more?",
		importance=Importance.HIGH,
	),
	Question(
		category="payment_shipping",
		text="What payment methods do you want to accept?",
		options=["Credit cards", "PayPal", "Stripe", "Bank transfers", "Cryptocurrency"],
		importance=Importance.CRITICAL,
	),
	Question(
		category="payment_shipping",
		text="Do you need shipping and inventory management?",
		follow_up="Will you handle shipping yourself or use dropshipping?",
		importance=Importance.HIGH,
	),
	Question(
		category="user_features",
		text="What features do customers need?",
		options=["User accounts", "Wishlist", "Reviews", "Recommendations", "Loyalty program"],
		importance=Importance.MEDIUM,
	),
	Question(
		category="technical_specifications",
		text="What are your expected peak concurrent users and daily transaction volume?",
		importance=Importance.HIGH,
		technical_level_filter=TechnicalLevel.EXPERT,
	),
	Question(
		category="technical_specifications",
		text="Do you have any existing product data feeds (e.g., XML, CSV) or APIs to integrate?",
		importance=Importance.HIGH,
		technical_level_filter=TechnicalLevel.TECHNICAL,
	),
]

CRM_QUESTIONS = [
	Question(
		category="business_process",
		text="What is your current process for managing customers?",
		follow_up="What tools do you use now and what's frustrating about them?",
		importance=Importance.CRITICAL,
	),
	Question(
		category="user_roles",
		text="Who will be using this system?",
		options=["Sales team", "Marketing", "Customer service", "Management", "External clients"],
		importance=Importance.CRITICAL,
	),
	Question(
		category="integrations",
		text="What existing tools need to connect with this system?",
		examples=["Email (Gmail, Outlook)", "Calendar", "Accounting software", "Marketing tools"],
		importance=Importance.HIGH,
	),
	Question(
		category="technical_specifications",
		text="What are the key data entities (e.g., Leads, Contacts, Deals) and their relationships?",
		importance=Importance.HIGH,
		technical_level_filter=TechnicalLevel.TECHNICAL,
	),
	Question(
		category="technical_specifications",
		text="Do you require custom workflow automation or complex reporting capabilities?",
		importance=Importance.HIGH,
		technical_level_filter=TechnicalLevel.EXPERT,
	),
]

DEFAULT_QUESTIONS = [
	Question(
		category="general_scope",
		text="What is the primary goal or problem this project aims to solve?",
		importance=Importance.CRITICAL,
	),
	Question(
		category="target_users",
		text="Who are the main users of this application?",
		importance=Importance.CRITICAL,
	),
	Question(
		category="key_features",
		text="What are the absolute must-have features for the first version?",
		importance=Importance.HIGH,
	),
	Question(
		category="technical_preference",
		text="Do you have any preferred technologies or platforms?",
		importance=Importance.MEDIUM,
		technical_level_filter=TechnicalLevel.TECHNICAL,
	),
	Question(
		category="timeline_budget",
		text="What is your ideal timeline and budget for this project?",
		importance=Importance.MEDIUM,
	),
]

TYPE_QUESTIONS: dict[str, list[Question]] = {
	"ecommerce": ECOMMERCE_QUESTIONS,
	"crm": CRM_QUESTIONS,
}

CUSTOM_ORDERS_QUESTION = Question(
	category="custom_features",
	text="Since you're selling handmade jewelry, do you need features for custom orders and personalization?",
	importance=Importance.HIGH,
)

ENTERPRISE_QUESTION = Question(
	category="enterprise_features",
	text="With a larger team, do you need role-based permissions and approval workflows?",
	importance=Importance.HIGH,
)


def classify_project(idea: str) -> str:
	"""Return the first category with a keyword in the idea, or 'general'."""
	lowered = idea.lower()
	for category, keywords in PROJECT_CATEGORIES.items():
		if any(keyword in lowered for keyword in keywords):
			return category
	return GENERAL


def questions_for_project_type(project_type: str) -> list[Question]:
	"""Type-specific questions followed by the default pool."""
	return [*TYPE_QUESTIONS.get(project_type, []), *DEFAULT_QUESTIONS]


def leading_int(text: str) -> Optional[int]:
	"""Integer at the start of text (after whitespace), or None."""
	match = re.match(r"\s*([+-]?\d+)", text)
	return int(match.group(1)) if match else None


def adaptive_questions(project_type: str, answered: Iterable["AnsweredQuestion"]) -> list[Question]:
	"""
	Follow-up questions suggested by earlier answers.

	Args:
		project_type: Detected project type
		answered: Answered questions in the order they were asked

	Returns:
		Follow-up questions to add to the pool
	"""
	answered = list(answered)
	extra = []

	product_answer = next(
		(a.answer for a in answered if a.question.category == "business_scope" and "products" in a.question.text),
		None,
	)
	if project_type == "ecommerce" and product_answer is not None:
		lowered = product_answer.lower()
		if "handmade" in lowered or "jewelry" in lowered:
			extra.append(CUSTOM_ORDERS_QUESTION)

	team_answer = next(
		(
			a.answer for a in answered
			if a.question.category == "user_roles" and "Who will be using this system" in a.question.text
		),
		None,
	)
	if team_answer is not None:
		size = leading_int(team_answer)
		if (size is not None and size > 50) or "large team" in team_answer.lower():
			extra.append(ENTERPRISE_QUESTION)

	return extra


def format_question(question: Question, level: TechnicalLevel) -> str:
	"""Render a question for a user of the given technical level."""
	level = TechnicalLevel(level)
	text = question.text
	if question.follow_up and level != TechnicalLevel.EXPERT:
		text += f"\n(e.g., {question.follow_up})"
	if question.options and level != TechnicalLevel.EXPERT:
		text += f"\nOptions: {', '.join(question.options)}"
	if question.examples and level in (TechnicalLevel.TECHNICAL, TechnicalLevel.EXPERT):
		text += f"\nExamples: {', '.join(question.examples)}"
	return text


class AnsweredQuestion(BaseModel):
	"""A question together with the user's answer to it."""
	question: Question
	answer: str
