"""
Requirements Compiler - Turns discovery answers into requirements and a seed plan.

Compilation is a pure function over a static rule table: the same answers
always produce the same requirements, in the same order.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from ..plans.models import AgentRole, Phase, ProjectPlan, Task
from .questions import AnsweredQuestion, leading_int

ALWAYS = "always"

DISCOVERY_PHASE = "Discovery & Planning"
DEVELOPMENT_PHASE = "Development"
DEPLOYMENT_PHASE = "Deployment"


class RequirementCategory(str, Enum):
	FUNCTIONAL = "functional"
	NON_FUNCTIONAL = "non_functional"
	TECHNICAL = "technical"
	BUSINESS = "business"


class Requirement(BaseModel):
	"""A structured need; seeds exactly one initial task."""
	id: str
	description: str
	priority: str
	agents: list[AgentRole] = Field(default_factory=list)


class Requirements(BaseModel):
	"""Compiled requirements grouped by category."""
	functional: list[Requirement] = Field(default_factory=list)
	non_functional: list[Requirement] = Field(default_factory=list)
	technical: list[Requirement] = Field(default_factory=list)
	business: list[Requirement] = Field(default_factory=list)

	def by_category(self) -> list[tuple[RequirementCategory, list[Requirement]]]:
		"""Categories in seeding order."""
		return [
			(RequirementCategory.FUNCTIONAL, self.functional),
			(RequirementCategory.NON_FUNCTIONAL, self.non_functional),
			(RequirementCategory.TECHNICAL, self.technical),
			(RequirementCategory.BUSINESS, self.business),
		]

	def all(self) -> list[Requirement]:
		return [r for _, reqs in self.by_category() for r in reqs]

	def rows(self) -> list[tuple[str, str, str, str]]:
		"""(category, id, description, priority) rows for persistence."""
		return [
			(category.value, r.id, r.description, r.priority)
			for category, reqs in self.by_category()
			for r in reqs
		]


@dataclass(frozen=True)
class RequirementRule:
	"""
	One row of the rule table.

	trigger is either ALWAYS, a tuple of keywords (any substring of the
	lower-cased answer fires), or an int threshold the answer's leading
	number must exceed.
	"""
	category: str
	trigger: object
	requirement_id: str
	description: str
	priority: str
	agents: tuple[AgentRole, ...]
	question_fragment: Optional[str] = None
	target: RequirementCategory = RequirementCategory.FUNCTIONAL

	def matches(self, answered: AnsweredQuestion) -> bool:
		if answered.question.category != self.category:
			return False
		if self.question_fragment and self.question_fragment not in answered.question.text:
			return False
		answer = answered.answer.lower()
		if self.trigger == ALWAYS:
			return True
		if isinstance(self.trigger, int):
			number = leading_int(answer)
			return number is not None and number > self.trigger
		return any(keyword in answer for keyword in self.trigger)

	def build(self, answered: AnsweredQuestion) -> Requirement:
		return Requirement(
			id=self.requirement_id,
			description=self.description.format(answer=answered.answer.lower()),
			priority=self.priority,
			agents=list(self.agents),
		)


FULL_STACK = AgentRole.FULL_STACK
ARCHITECT = AgentRole.SOLUTIONS_ARCHITECT
DEVOPS = AgentRole.DEVOPS
SECURITY = AgentRole.SECURITY
PERFORMANCE = AgentRole.PERFORMANCE

RULES: list[RequirementRule] = [
	RequirementRule(
		"user_features", ("user accounts",), "auth_system",
		"User registration and login system", "critical", (FULL_STACK, SECURITY),
	),
	RequirementRule(
		"user_features", ("wishlist",), "wishlist_feature",
		"Customer wishlist functionality", "medium", (FULL_STACK,),
	),
	RequirementRule(
		"business_scope", ("physical",), "physical_product_management",
		"Management of physical products", "critical", (FULL_STACK,),
		question_fragment="products",
	),
	RequirementRule(
		"business_scope", ("digital",), "digital_product_management",
		"Management of digital products/downloads", "critical", (FULL_STACK,),
		question_fragment="products",
	),
	RequirementRule(
		"payment_shipping", ("credit cards", "stripe"), "credit_card_payment",
		"Credit card payment processing via Stripe or similar gateway", "critical", (FULL_STACK, SECURITY),
		question_fragment="payment methods",
	),
	RequirementRule(
		"payment_shipping", ("paypal",), "paypal_payment",
		"PayPal payment integration", "high", (FULL_STACK,),
		question_fragment="payment methods",
	),
	RequirementRule(
		"payment_shipping", ("yes", "shipping"), "shipping_management",
		"Shipping management functionality", "high", (FULL_STACK, DEVOPS),
		question_fragment="shipping and inventory",
	),
	RequirementRule(
		"payment_shipping", ("yes", "shipping"), "inventory_management",
		"Inventory management system", "high", (FULL_STACK,),
		question_fragment="shipping and inventory",
	),
	RequirementRule(
		"technical_specifications", 1000, "high_scalability",
		"Support for {answer} concurrent users", "critical", (ARCHITECT, DEVOPS, PERFORMANCE),
		question_fragment="concurrent users",
		target=RequirementCategory.NON_FUNCTIONAL,
	),
	RequirementRule(
		"technical_specifications", ("yes", "api", "xml", "csv"), "data_feed_integration",
		"Integration with existing product data feeds", "high", (FULL_STACK, ARCHITECT),
		question_fragment="existing product data feeds",
		target=RequirementCategory.TECHNICAL,
	),
	RequirementRule(
		"business_process", ALWAYS, "current_crm_process",
		"Understand current CRM process: {answer}", "medium", (ARCHITECT,),
		question_fragment="current process for managing customers",
		target=RequirementCategory.BUSINESS,
	),
	RequirementRule(
		"user_roles", ALWAYS, "role_based_access",
		"Role-based access for users: {answer}", "critical", (FULL_STACK, SECURITY),
		question_fragment="Who will be using this system",
	),
	RequirementRule(
		"integrations", ("email",), "email_integration",
		"Email system integration", "high", (FULL_STACK,),
		question_fragment="existing tools need to connect",
	),
	RequirementRule(
		"integrations", ("calendar",), "calendar_integration",
		"Calendar integration", "high", (FULL_STACK,),
		question_fragment="existing tools need to connect",
	),
	RequirementRule(
		"custom_features", ("yes",), "custom_order_personalization",
		"Custom order and personalization features", "high", (FULL_STACK,),
	),
	RequirementRule(
		"enterprise_features", ("yes",), "role_based_permissions_workflows",
		"Role-based permissions and approval workflows", "critical", (FULL_STACK, ARCHITECT, SECURITY),
	),
]


@dataclass
class RequirementsCompiler:
	"""Applies the rule table to answers and seeds the initial plan."""
	rules: list[RequirementRule] = field(default_factory=lambda: list(RULES))

	def compile(self, answered: Iterable[AnsweredQuestion]) -> Requirements:
		"""
		Compile requirements from answers, visited in the order given.

		Callers pass answers in question-row order so the output is stable.
		"""
		requirements = Requirements()
		buckets = dict(requirements.by_category())
		for entry in answered:
			for rule in self.rules:
				if rule.matches(entry):
					buckets[rule.target].append(rule.build(entry))
		return requirements

	def seed_plan(self, project_name: str, requirements: Requirements, description: str = "") -> ProjectPlan:
		"""
		Build the initial three-phase plan.

		Each requirement becomes one pending Development task with no
		dependencies, assigned to its first eligible role.
		"""
		tasks = [
			Task(
				task_id=f"TASK_{n}",
				description=req.description,
				agent=req.agents[0] if req.agents else AgentRole.FULL_STACK,
			)
			for n, req in enumerate(requirements.all(), start=1)
		]
		return ProjectPlan(
			project_name=project_name,
			description=description,
			phases=[
				Phase(name=DISCOVERY_PHASE),
				Phase(name=DEVELOPMENT_PHASE, tasks=tasks),
				Phase(name=DEPLOYMENT_PHASE),
			],
		)
