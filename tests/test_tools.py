"""Tests for tool capabilities and the tool registry."""

import sys

import pytest

from delivery_orchestrator.errors import (
	CommandExecutionError,
	DirectoryCreationError,
	ToolExecutionError,
	ToolFileNotFoundError,
	ToolNotFound,
)
from delivery_orchestrator.tools import capabilities
from delivery_orchestrator.tools.registry import ToolRegistry, default_registry, to_snake_case


class TestFileCapabilities:
	"""Tests for read_file, write_file and list_directory."""

	@pytest.mark.asyncio
	async def test_write_then_read(self, tmp_path):
		target = tmp_path / "nested" / "dir" / "notes.md"
		result = await capabilities.write_file(str(target), "# Notes")
		assert result == f"Successfully wrote to {target}"
		assert await capabilities.read_file(str(target)) == "# Notes"

	@pytest.mark.asyncio
	async def test_read_missing_file(self, tmp_path):
		with pytest.raises(ToolFileNotFoundError, match="File not found at path"):
			await capabilities.read_file(str(tmp_path / "missing.txt"))

	@pytest.mark.asyncio
	async def test_write_under_a_file_fails_on_directory(self, tmp_path):
		"""A parent path that is a regular file cannot be created as a directory."""
		blocker = tmp_path / "blocker"
		blocker.write_text("")
		with pytest.raises(DirectoryCreationError):
			await capabilities.write_file(str(blocker / "child" / "file.txt"), "x")

	@pytest.mark.asyncio
	async def test_list_directory_sorted(self, tmp_path):
		(tmp_path / "b.txt").write_text("")
		(tmp_path / "a.txt").write_text("")
		assert await capabilities.list_directory(str(tmp_path)) == "a.txt\nb.txt"

	@pytest.mark.asyncio
	async def test_list_missing_directory(self, tmp_path):
		with pytest.raises(ToolFileNotFoundError):
			await capabilities.list_directory(str(tmp_path / "nope"))


class TestProcessCapabilities:
	"""Tests for execute_command and run_tests."""

	@pytest.mark.asyncio
	async def test_execute_command_stdout(self, tmp_path):
		result = await capabilities.execute_command(f'"{sys.executable}" -c "print(42)"', cwd=str(tmp_path))
		assert result.strip() == "42"

	@pytest.mark.asyncio
	async def test_execute_command_stderr_is_labelled(self):
		cmd = f'"{sys.executable}" -c "import sys; print(1); print(2, file=sys.stderr)"'
		result = await capabilities.execute_command(cmd)
		assert result.startswith("stdout:\n1")
		assert "stderr:\n2" in result

	@pytest.mark.asyncio
	async def test_execute_command_nonzero_exit(self):
		with pytest.raises(CommandExecutionError, match="exit 3"):
			await capabilities.execute_command(f'"{sys.executable}" -c "raise SystemExit(3)"')

	@pytest.mark.asyncio
	async def test_execute_command_timeout(self):
		with pytest.raises(CommandExecutionError, match="timed out"):
			await capabilities.execute_command(f'"{sys.executable}" -c "import time; time.sleep(5)"', timeout=0.2)

	@pytest.mark.asyncio
	async def test_run_tests_failure_is_a_result(self):
		"""A failing test run returns its output instead of raising."""
		result = await capabilities.run_tests(f'"{sys.executable}" -c "print(\'1 failed\'); raise SystemExit(1)"')
		assert result.startswith("Tests failed. Output:\n1 failed")

	@pytest.mark.asyncio
	async def test_run_tests_success(self):
		result = await capabilities.run_tests(f'"{sys.executable}" -c "print(\'3 passed\')"')
		assert result.startswith("Tests passed successfully:\n3 passed")


class TestProjectStructure:
	@pytest.mark.asyncio
	async def test_structure_skips_ignored(self, tmp_path):
		(tmp_path / "src").mkdir()
		(tmp_path / "src" / "app.py").write_text("")
		(tmp_path / "node_modules").mkdir()
		(tmp_path / "README.md").write_text("")

		result = await capabilities.get_project_structure(str(tmp_path))

		assert result.splitlines() == ["- README.md", "- src", "  - app.py"]

	@pytest.mark.asyncio
	async def test_structure_depth_limit(self, tmp_path):
		(tmp_path / "a" / "b").mkdir(parents=True)
		(tmp_path / "a" / "b" / "deep.txt").write_text("")
		result = await capabilities.get_project_structure(str(tmp_path), max_depth=2)
		assert "deep.txt" not in result
		assert "  - b" in result

	@pytest.mark.asyncio
	async def test_structure_missing_root(self, tmp_path):
		with pytest.raises(ToolFileNotFoundError):
			await capabilities.get_project_structure(str(tmp_path / "missing"))


class TestToolRegistry:
	"""Tests for named-argument tool invocation."""

	def test_to_snake_case(self):
		assert to_snake_case("readFile") == "read_file"
		assert to_snake_case("getProjectStructure") == "get_project_structure"
		assert to_snake_case("read_file") == "read_file"

	def test_default_registry_names(self):
		assert default_registry().names() == [
			"execute_command",
			"get_project_structure",
			"list_directory",
			"read_file",
			"run_tests",
			"write_file",
		]

	@pytest.mark.asyncio
	async def test_arguments_bound_by_name(self, tmp_path):
		"""Argument order in the call never matters."""
		target = tmp_path / "out.txt"
		registry = default_registry()
		await registry.invoke_tool("write_file", {"content": "hello", "file_path": str(target)})
		assert target.read_text() == "hello"

	@pytest.mark.asyncio
	async def test_camel_case_aliases(self, tmp_path):
		target = tmp_path / "in.txt"
		target.write_text("data")
		assert await default_registry().invoke_tool("readFile", {"filePath": str(target)}) == "data"

	@pytest.mark.asyncio
	async def test_unknown_tool(self):
		with pytest.raises(ToolNotFound, match="Tool deploy not found in registry."):
			await default_registry().invoke_tool("deploy", {})

	@pytest.mark.asyncio
	async def test_unknown_argument(self, tmp_path):
		with pytest.raises(ToolExecutionError, match="Unknown argument 'path'"):
			await default_registry().invoke_tool("read_file", {"path": str(tmp_path)})

	@pytest.mark.asyncio
	async def test_missing_required_argument(self):
		with pytest.raises(ToolExecutionError, match="Invalid arguments for tool read_file"):
			await default_registry().invoke_tool("read_file", {})

	@pytest.mark.asyncio
	async def test_non_object_arguments(self):
		with pytest.raises(ToolExecutionError, match="must be an object"):
			await default_registry().invoke_tool("read_file", ["a.txt"])

	@pytest.mark.asyncio
	async def test_defaults_applied(self, tmp_path):
		"""Registered functions can be custom coroutines with defaults."""
		async def greet(name: str, greeting: str = "Hello") -> str:
			return f"{greeting}, {name}"

		registry = ToolRegistry()
		registry.register("greet", greet)
		assert await registry.invoke_tool("greet", {"name": "Ada"}) == "Hello, Ada"
