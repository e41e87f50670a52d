"""
User profiling and level-adapted phrasing.

The detector guesses a technical level from keyword counts in what the user
has written. The communicators phrase concepts, progress and errors for
that level.
"""

import re
from typing import Iterable

from pydantic import BaseModel

from ..plans.models import TechnicalLevel

TECHNICAL_KEYWORDS = [
	"api", "database", "backend", "frontend", "framework", "deployment",
	"repository", "git", "docker", "kubernetes", "microservices", "rest",
	"graphql", "authentication", "authorization", "ci/cd", "cloud", "typescript",
	"javascript", "python", "java", "go", "sql", "nosql", "orm", "pwa", "ssr",
	"jwt", "oauth", "containerization", "orchestration", "iac", "terraform",
	"aws", "gcp", "azure", "security", "vulnerability", "testing", "unit test",
	"integration test", "e2e", "performance", "load testing", "monitoring",
	"observability", "architecture", "design pattern", "scalability",
	"resilience", "devops", "agile", "scrum", "kanban",
]

BUSINESS_KEYWORDS = [
	"customers", "users", "sales", "revenue", "marketing", "business model",
	"workflow", "process", "efficiency", "automation", "dashboard", "reports",
	"roi", "profit", "market", "strategy", "goal", "objective", "stakeholder",
	"budget", "cost", "value", "growth", "metrics", "analytics",
	"user experience", "ux", "customer journey",
]

NO_CODE_KEYWORDS = [
	"simple", "easy", "drag and drop", "template", "no coding", "visual",
	"builder", "wizard", "automated", "ready-made", "out-of-the-box",
	"platform", "solution", "tool", "quickly", "without code", "low-code",
]


class UserProfile(BaseModel):
	"""What we know about how the user talks."""
	technical_level: TechnicalLevel = TechnicalLevel.NO_CODE
	business_focus: bool = False
	prefers_no_code: bool = False


class UserProfileDetector:
	"""Keyword-count heuristic for a user's technical level."""

	def analyze(self, text: str, history: Iterable[str] = ()) -> UserProfile:
		corpus = " ".join([text, *history]).lower()

		technical = sum(1 for kw in TECHNICAL_KEYWORDS if kw in corpus)
		business = sum(1 for kw in BUSINESS_KEYWORDS if kw in corpus)
		no_code = sum(1 for kw in NO_CODE_KEYWORDS if kw in corpus)

		if technical > 5:
			level = TechnicalLevel.EXPERT
		elif technical > 2:
			level = TechnicalLevel.TECHNICAL
		elif business > 3:
			level = TechnicalLevel.BUSINESS
		else:
			level = TechnicalLevel.NO_CODE

		return UserProfile(
			technical_level=level,
			business_focus=business > technical,
			prefers_no_code=no_code > 0,
		)


CONCEPT_TRANSLATIONS: dict[str, dict[TechnicalLevel, str]] = {
	"API": {
		TechnicalLevel.NO_CODE: "a way for different applications to talk to each other, like a phone connection between two systems",
		TechnicalLevel.BUSINESS: "the connection that lets your application share data with other business tools",
		TechnicalLevel.TECHNICAL: "RESTful API with standard HTTP methods and JSON payloads",
		TechnicalLevel.EXPERT: "GraphQL API with schema federation and automatic persisted queries",
	},
	"Database": {
		TechnicalLevel.NO_CODE: "secure digital filing cabinet that remembers all your information",
		TechnicalLevel.BUSINESS: "organized storage system that keeps track of your customers, orders, and business data",
		TechnicalLevel.TECHNICAL: "PostgreSQL relational database with proper indexing and query optimization",
		TechnicalLevel.EXPERT: "PostgreSQL with read replicas, connection pooling, and optimized query execution plans",
	},
	"Authentication": {
		TechnicalLevel.NO_CODE: "secure login system that makes sure only the right people can access your app",
		TechnicalLevel.BUSINESS: "user login system with different permission levels for employees and customers",
		TechnicalLevel.TECHNICAL: "JWT-based authentication with role-based access control (RBAC)",
		TechnicalLevel.EXPERT: "OAuth 2.0 + OIDC with PKCE flow, RS256 JWT signing, and refresh token rotation",
	},
	"Frontend": {
		TechnicalLevel.NO_CODE: "the part of the app you see and interact with, like the buttons and screens",
		TechnicalLevel.BUSINESS: "the user interface where your customers or employees will perform their tasks",
		TechnicalLevel.TECHNICAL: "React 18 with TypeScript for type safety and maintainability",
		TechnicalLevel.EXPERT: "Next.js 13+ with App Router, React Server Components",
	},
	"Backend": {
		TechnicalLevel.NO_CODE: "the 'brain' of the app that handles all the logic and data behind the scenes",
		TechnicalLevel.BUSINESS: "the server-side logic that processes requests and manages data for your business operations",
		TechnicalLevel.TECHNICAL: "Node.js with Express.js for rapid development and JavaScript ecosystem",
		TechnicalLevel.EXPERT: "Node.js with Fastify for performance, GraphQL Federation",
	},
	"Deployment": {
		TechnicalLevel.NO_CODE: "getting your app ready and live for people to use",
		TechnicalLevel.BUSINESS: "the process of making the application available to your users, ensuring it runs smoothly",
		TechnicalLevel.TECHNICAL: "Docker containers on AWS with auto-scaling capabilities",
		TechnicalLevel.EXPERT: "Kubernetes on AWS with Terraform IaC, blue-green deployments",
	},
	"Scalability": {
		TechnicalLevel.NO_CODE: "making sure your app can handle more users and grow without slowing down",
		TechnicalLevel.BUSINESS: "the ability of the system to handle increased user load and data volume as your business grows",
		TechnicalLevel.TECHNICAL: "Horizontal scaling with load balancing and database sharding",
		TechnicalLevel.EXPERT: "Microservices architecture with event-driven communication and distributed caching",
	},
	"CI/CD": {
		TechnicalLevel.NO_CODE: "automated process to quickly and safely update your app with new features",
		TechnicalLevel.BUSINESS: "an automated release pipeline that reduces manual effort and errors",
		TechnicalLevel.TECHNICAL: "Automated testing and deployment pipeline using GitHub Actions or GitLab CI",
		TechnicalLevel.EXPERT: "GitOps-driven CI/CD with ArgoCD/Flux, automated testing, and canary deployments",
	},
	"Security": {
		TechnicalLevel.NO_CODE: "keeping your app and user information safe from bad guys",
		TechnicalLevel.BUSINESS: "measures that protect your application and data from unauthorized access and breaches",
		TechnicalLevel.TECHNICAL: "OWASP Top 10 mitigations, secure coding practices, and regular vulnerability scanning",
		TechnicalLevel.EXPERT: "Zero Trust architecture, multi-factor authentication, end-to-end encryption, and continuous security monitoring",
	},
	"Testing": {
		TechnicalLevel.NO_CODE: "checking if your app works correctly and doesn't have any mistakes",
		TechnicalLevel.BUSINESS: "a systematic check that the application meets business requirements and works as expected",
		TechnicalLevel.TECHNICAL: "Unit, integration, and end-to-end testing with frameworks like pytest, Cypress, and Playwright",
		TechnicalLevel.EXPERT: "Test-driven development, contract testing, and chaos engineering",
	},
	"Cloud": {
		TechnicalLevel.NO_CODE: "using powerful computers over the internet instead of owning your own",
		TechnicalLevel.BUSINESS: "remote servers (AWS, Azure, GCP) that store and process data with room to grow",
		TechnicalLevel.TECHNICAL: "Deploying applications on AWS, Azure, or GCP compute, storage, and networking services",
		TechnicalLevel.EXPERT: "Multi-cloud strategy with cloud-native services and Infrastructure as Code",
	},
}


def translate_concepts(text: str, level: TechnicalLevel) -> str:
	"""Replace known concept names with phrasing suited to the user's level."""
	level = TechnicalLevel(level)
	for concept, translations in CONCEPT_TRANSLATIONS.items():
		if concept in text and level in translations:
			text = re.sub(re.escape(concept), translations[level], text)
	return text


class ProgressCommunicator:
	"""Phrases real ledger progress for the user's technical level."""

	def generate(self, level: TechnicalLevel, progress: dict, active: list[str], upcoming: list[str]) -> str:
		total = progress.get("total_tasks", 0)
		done = progress.get("completed_tasks", 0)
		failed = progress.get("failed_tasks", 0)
		pct = progress.get("percent_complete", 0)

		if total == 0:
			return "No tasks have been planned yet."

		level = TechnicalLevel(level)
		if level == TechnicalLevel.NO_CODE:
			lines = [f"Good progress! {done} of {total} pieces of your app are finished."]
			if active:
				lines.append(f"Currently working on: {active[0]}")
			if upcoming:
				lines.append(f"Next: {upcoming[0]}")
			lines.append(f"Your app is about {pct:.0f}% complete.")
		elif level == TechnicalLevel.BUSINESS:
			lines = [
				"Project Status Update:",
				f"Completed: {done}/{total} tasks",
				f"In progress: {', '.join(active) if active else 'none'}",
				f"Upcoming: {', '.join(upcoming[:3]) if upcoming else 'none'}",
				f"Progress: {pct:.0f}% complete",
			]
		else:
			lines = [
				"Development Progress:",
				f"completed={done} failed={failed} active={len(active)} pending={progress.get('pending_tasks', 0)} total={total}",
			]
			if active:
				lines.append(f"Active: {', '.join(active)}")
			if upcoming:
				lines.append(f"Queue: {', '.join(upcoming)}")
			lines.append(f"Progress: {pct}% complete")

		if failed and level in (TechnicalLevel.NO_CODE, TechnicalLevel.BUSINESS):
			lines.append(f"{failed} task(s) ran into problems and may need another look.")
		return "\n".join(lines)


ERROR_EXPLANATIONS: dict[str, dict[TechnicalLevel, str]] = {
	"api_rate_limit": {
		TechnicalLevel.NO_CODE: "I need to slow down a bit because I'm making too many requests. This is normal and will resolve in a few minutes.",
		TechnicalLevel.BUSINESS: "Hit API rate limits - this is a temporary slowdown to prevent system overload. No data lost.",
		TechnicalLevel.TECHNICAL: "Rate limited by the LLM API. Retrying with delay.",
		TechnicalLevel.EXPERT: "429 Too Many Requests from the model API. Retrying within the configured attempt budget.",
	},
	"dependency_conflict": {
		TechnicalLevel.NO_CODE: "Found a small conflict between different parts of your app. I'm fixing it automatically.",
		TechnicalLevel.BUSINESS: "Detected integration conflict between components. Resolving with alternative approach.",
		TechnicalLevel.TECHNICAL: "Dependency conflict in the package manifest. Resolving with compatible versions.",
		TechnicalLevel.EXPERT: "Peer dependency conflict. Analyzing version constraints and updating the resolution strategy.",
	},
	"database_connection_error": {
		TechnicalLevel.NO_CODE: "I'm having trouble connecting to the app's data storage. I'll try again in a moment.",
		TechnicalLevel.BUSINESS: "Database connection failed. This might be a temporary network or configuration problem. Attempting to reconnect.",
		TechnicalLevel.TECHNICAL: "Failed to connect to the database. Checking connection string, credentials, and network accessibility.",
		TechnicalLevel.EXPERT: "Database connection refused. Verifying access rules, firewall settings and service status before retrying.",
	},
	"invalid_json_response": {
		TechnicalLevel.NO_CODE: "I received some confusing information and couldn't understand it. I'll try to get clearer instructions.",
		TechnicalLevel.BUSINESS: "The system received an unreadable response from a component. Retrying the operation.",
		TechnicalLevel.TECHNICAL: "Received invalid JSON from the model. Inspecting the raw response for malformed syntax.",
		TechnicalLevel.EXPERT: "JSON parsing error on the model response. Checking for serialization mismatches against the action schema.",
	},
	"unknown_action": {
		TechnicalLevel.NO_CODE: "I'm not sure what to do next based on that. Could you tell me in simpler terms?",
		TechnicalLevel.BUSINESS: "The requested action is not recognized within the current project scope. Please clarify the desired outcome.",
		TechnicalLevel.TECHNICAL: "Unrecognized action in the model's structured response. Reviewing the expected JSON schema.",
		TechnicalLevel.EXPERT: "Unhandled action type from the model, which deviates from the defined action schema.",
	},
}


class ErrorCommunicator:
	"""Explains error categories at the user's technical level."""

	def explain(self, error_type: str, level: TechnicalLevel) -> str:
		explanation = ERROR_EXPLANATIONS.get(error_type, {}).get(TechnicalLevel(level))
		return explanation or f"An unexpected error occurred: {error_type}."
