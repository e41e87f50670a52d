"""LLM module - Oracle interface and the claude CLI implementation."""

from .oracle import ClaudeCliOracle, Oracle

__all__ = [
	"ClaudeCliOracle",
	"Oracle",
]
