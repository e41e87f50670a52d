"""Discovery module - Requirement-gathering dialog and requirements compilation."""

from .engine import (
	DiscoveryEngine,
	DiscoveryResult,
	DiscoveryResultKind,
	DiscoverySession,
	DiscoveryStart,
	DiscoveryState,
)
from .profiling import ErrorCommunicator, ProgressCommunicator, UserProfile, UserProfileDetector
from .questions import AnsweredQuestion, Importance, Question, classify_project, format_question
from .requirements import Requirement, Requirements, RequirementsCompiler

__all__ = [
	"DiscoveryEngine",
	"DiscoveryResult",
	"DiscoveryResultKind",
	"DiscoverySession",
	"DiscoveryStart",
	"DiscoveryState",
	"ErrorCommunicator",
	"ProgressCommunicator",
	"UserProfile",
	"UserProfileDetector",
	"AnsweredQuestion",
	"Importance",
	"Question",
	"classify_project",
	"format_question",
	"Requirement",
	"Requirements",
	"RequirementsCompiler",
]
