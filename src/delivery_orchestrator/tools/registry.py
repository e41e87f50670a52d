"""
Tool registry - Named capabilities invoked with named arguments.

Arguments are bound to the capability's parameters by name, so key order
in the caller's JSON never matters. camelCase tool names and argument keys
(readFile, filePath) are accepted as aliases of their snake_case forms.
"""

import inspect
import logging
import re
from typing import Any, Awaitable, Callable, Optional

from ..errors import ToolExecutionError, ToolNotFound
from . import capabilities

logger = logging.getLogger(__name__)

ToolFn = Callable[..., Awaitable[str]]


def to_snake_case(name: str) -> str:
	"""readFile -> read_file, dirPath -> dir_path."""
	return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name).lower()


class ToolRegistry:
	"""
	Registry of tool capabilities.

	Usage:
		registry = default_registry()
		listing = await registry.invoke_tool("list_directory", {"dir_path": "."})
	"""

	def __init__(self):
		self._tools: dict[str, ToolFn] = {}

	def register(self, name: str, fn: ToolFn) -> None:
		self._tools[name] = fn

	def names(self) -> list[str]:
		return sorted(self._tools)

	def resolve(self, name: str) -> Optional[ToolFn]:
		return self._tools.get(name) or self._tools.get(to_snake_case(name))

	def bind(self, name: str, fn: ToolFn, args: Optional[dict[str, Any]]) -> inspect.BoundArguments:
		"""Bind args to fn's parameters by name."""
		if args is None:
			args = {}
		if not isinstance(args, dict):
			raise ToolExecutionError(f"Arguments for tool {name} must be an object, got {type(args).__name__}")

		params = inspect.signature(fn).parameters
		kwargs = {}
		for key, value in args.items():
			param = key if key in params else to_snake_case(key)
			if param not in params:
				raise ToolExecutionError(f"Unknown argument '{key}' for tool {name}")
			kwargs[param] = value

		try:
			bound = inspect.signature(fn).bind(**kwargs)
		except TypeError as e:
			raise ToolExecutionError(f"Invalid arguments for tool {name}: {e}") from e
		bound.apply_defaults()
		return bound

	async def invoke_tool(self, name: str, args: Optional[dict[str, Any]] = None) -> str:
		"""
		Invoke a registered tool.

		Raises:
			ToolNotFound: If no tool is registered under name (or its alias)
			ToolExecutionError: On bad arguments or a failing capability
		"""
		fn = self.resolve(name)
		if fn is None:
			raise ToolNotFound(name)

		bound = self.bind(name, fn, args)
		logger.info(f"Invoking tool {name} with {sorted(bound.arguments)}")
		return await fn(*bound.args, **bound.kwargs)


def default_registry() -> ToolRegistry:
	"""Registry with the file, process and project capabilities."""
	registry = ToolRegistry()
	for fn in (
		capabilities.read_file,
		capabilities.write_file,
		capabilities.execute_command,
		capabilities.list_directory,
		capabilities.run_tests,
		capabilities.get_project_structure,
	):
		registry.register(fn.__name__, fn)
	return registry
