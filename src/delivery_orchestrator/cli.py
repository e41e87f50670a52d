"""CLI for delivery-orchestrator: serve, status, and doctor commands."""

import argparse
import asyncio
import platform
import sys
from pathlib import Path

from importlib.metadata import version as pkg_version

from .config import FAILED_DEPENDENCY_POLICIES, Config, load_config

CORE_DEPS = ["mcp", "aiosqlite", "platformdirs", "pydantic", "rich"]


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server (stdio transport)."""
	from .server import mcp
	mcp.run()


async def _load_status(config: Config, project_id: int | None):
	"""Load one project with its ledger, or all projects."""
	from .plans.store import ProjectStore

	store = ProjectStore(str(config.db_path))
	await store.init()
	try:
		if project_id is None:
			return await store.list_projects(), None
		project = await store.get_project(project_id)
		records = await store.list_agent_tasks(project_id) if project else []
		return project, records
	finally:
		await store.close()


def cmd_status(args: argparse.Namespace) -> None:
	"""Show a project's plan progress, or list projects."""
	from .visualizer.project_status import render_project_list, render_project_status, render_project_summary

	config = load_config()
	project_id = getattr(args, "project_id", None)

	if project_id is None:
		projects, _ = asyncio.run(_load_status(config, None))
		render_project_list(projects)
		return

	project, records = asyncio.run(_load_status(config, project_id))
	if project is None:
		print(f"No project {project_id} found.")
		sys.exit(1)

	if getattr(args, "summary", False):
		render_project_summary(project, records)
	else:
		render_project_status(project, records)


def _check_config_toml(config_dir: Path) -> tuple[str, str | None]:
	"""Validate config.toml. Returns (status, issue_or_none)."""
	import tomllib

	toml_path = config_dir / "config.toml"
	if not toml_path.exists():
		return "not found (optional)", None
	try:
		with open(toml_path, "rb") as f:
			tomllib.load(f)
		return "valid", None
	except tomllib.TOMLDecodeError as e:
		msg = f"config.toml parse error: {e}"
		return f"INVALID ({e})", msg


def _check_oracle(command: str) -> tuple[str, str | None]:
	"""Check the oracle CLI is on PATH. Returns (status, issue_or_none)."""
	import shutil

	path = shutil.which(command)
	if path:
		return f"found ({path})", None
	return "NOT FOUND", f"oracle command '{command}' not on PATH"


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("delivery-orchestrator doctor")
	print(f"{'=' * 40}")

	issues: list[str] = []
	try:
		config = load_config()
	except ValueError as e:
		print(f"  Config:       INVALID ({e})")
		sys.exit(1)

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			dep_ver = pkg_version(dep)
			print(f"    {dep:22s} {dep_ver}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Config:")
	toml_status, toml_issue = _check_config_toml(config.config_dir)
	print(f"    config.toml:         {toml_status}")
	if toml_issue:
		issues.append(toml_issue)
	print(f"    database:            {config.db_path}")
	print(f"    dependency policy:   {config.failed_dependency_policy} (one of {', '.join(FAILED_DEPENDENCY_POLICIES)})")
	print(f"    retry:               {config.retry_attempts} attempt(s), {config.retry_delay_ms}ms delay")
	print()

	print("  Oracle:")
	oracle_status, oracle_issue = _check_oracle(config.oracle_command)
	print(f"    {config.oracle_command}: {oracle_status}")
	if oracle_issue:
		issues.append(oracle_issue)

	print()
	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


def main() -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="delivery-orchestrator",
		description="Multi-agent project delivery: discovery, planning, and dependency-aware dispatch",
	)
	subparsers = parser.add_subparsers(dest="command")

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	# status
	status_parser = subparsers.add_parser("status", help="Show project progress")
	status_parser.add_argument("project_id", nargs="?", type=int, default=None, help="Project ID (default: list projects)")
	status_parser.add_argument("--summary", action="store_true", help="Show summary panel instead of tree")
	status_parser.set_defaults(func=cmd_status)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)
