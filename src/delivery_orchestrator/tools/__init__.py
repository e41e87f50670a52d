"""MCP tool registration and the capability registry used by agents."""

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from .project_tools import register_project_tools
from .registry import ToolRegistry, default_registry

if TYPE_CHECKING:
	from ..runtime import Runtime


def register_all_tools(mcp: FastMCP, runtime: "Runtime") -> None:
	"""Register all MCP tools."""
	register_project_tools(mcp, runtime)


__all__ = [
	"ToolRegistry",
	"default_registry",
	"register_all_tools",
]
