"""
Tool capabilities available to agents.

Each capability is an async function with named parameters returning text.
Failures raise ToolExecutionError subclasses; the caller decides whether to
report them or retry.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from ..errors import CommandExecutionError, DirectoryCreationError, ToolExecutionError, ToolFileNotFoundError

logger = logging.getLogger(__name__)

STRUCTURE_IGNORE = frozenset({"node_modules", ".git", ".env", "__pycache__", ".venv", ".pytest_cache"})


async def read_file(file_path: str) -> str:
	"""Read a UTF-8 text file."""
	path = Path(file_path)
	try:
		return await asyncio.to_thread(path.read_text, encoding="utf-8")
	except FileNotFoundError as e:
		raise ToolFileNotFoundError(file_path) from e
	except OSError as e:
		raise ToolExecutionError(f"Error reading file: {e}") from e


async def write_file(file_path: str, content: str) -> str:
	"""Write a UTF-8 text file, creating parent directories."""
	path = Path(file_path)
	try:
		await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
	except OSError as e:
		raise DirectoryCreationError(str(path.parent)) from e

	try:
		await asyncio.to_thread(path.write_text, content, encoding="utf-8")
	except OSError as e:
		raise ToolExecutionError(f"Error writing to file: {e}") from e
	return f"Successfully wrote to {file_path}"


async def _run_shell(command: str, cwd: Optional[str], timeout: float) -> tuple[int, str, str]:
	try:
		process = await asyncio.create_subprocess_shell(
			command,
			cwd=cwd,
			stdout=asyncio.subprocess.PIPE,
			stderr=asyncio.subprocess.PIPE,
		)
	except (FileNotFoundError, NotADirectoryError) as e:
		raise CommandExecutionError(f'Error executing command "{command}": {e}') from e

	try:
		stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
	except asyncio.TimeoutError as e:
		process.kill()
		await process.wait()
		raise CommandExecutionError(f'Command "{command}" timed out after {timeout:.0f}s') from e

	return process.returncode, stdout.decode(errors="replace"), stderr.decode(errors="replace")


async def execute_command(command: str, cwd: Optional[str] = None, timeout: float = 600) -> str:
	"""
	Run a shell command.

	Returns stdout, or stdout and stderr labelled when stderr is non-empty.

	Raises:
		CommandExecutionError: On non-zero exit, timeout or bad cwd
	"""
	logger.debug(f"Executing: {command} (cwd={cwd})")
	code, stdout, stderr = await _run_shell(command, cwd, timeout)
	if code != 0:
		detail = stderr.strip() or stdout.strip()
		raise CommandExecutionError(f'Error executing command "{command}": exit {code}: {detail[:1000]}')
	if stderr:
		return f"stdout:\n{stdout}\nstderr:\n{stderr}"
	return stdout


async def list_directory(dir_path: str) -> str:
	"""List directory entries, one per line, sorted."""
	path = Path(dir_path)
	if not path.exists():
		raise ToolFileNotFoundError(dir_path)
	try:
		entries = await asyncio.to_thread(lambda: sorted(p.name for p in path.iterdir()))
	except OSError as e:
		raise ToolExecutionError(f"Error listing directory: {e}") from e
	return "\n".join(entries)


async def run_tests(command: str = "pytest", cwd: Optional[str] = None, timeout: float = 1800) -> str:
	"""
	Run a test command.

	A failing test run is a result, not an error: its output is returned.
	"""
	code, stdout, stderr = await _run_shell(command, cwd, timeout)
	output = stdout or stderr
	if code == 0:
		return f"Tests passed successfully:\n{output}"
	return f"Tests failed. Output:\n{output}"


def _structure(root: Path, depth: int, max_depth: int) -> list[str]:
	lines = []
	for entry in sorted(root.iterdir(), key=lambda p: p.name):
		if entry.name in STRUCTURE_IGNORE:
			continue
		lines.append(f"{'  ' * depth}- {entry.name}")
		if entry.is_dir() and depth + 1 < max_depth:
			lines.extend(_structure(entry, depth + 1, max_depth))
	return lines


async def get_project_structure(root: str = ".", max_depth: int = 3) -> str:
	"""Indented tree of a project directory, skipping VCS and dependency folders."""
	path = Path(root)
	if not path.is_dir():
		raise ToolFileNotFoundError(root)
	try:
		lines = await asyncio.to_thread(_structure, path, 0, max_depth)
	except OSError as e:
		raise ToolExecutionError(f"Error reading project structure: {e}") from e
	return "\n".join(lines)
