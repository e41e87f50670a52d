"""Rich views for project plan and ledger progress."""

from typing import Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..plans.models import AgentTaskRecord, Project, ProjectStatus, TaskStatus

STATUS_ICONS = {
	TaskStatus.PENDING: "[dim][ ][/dim]",
	TaskStatus.QUEUED: "[cyan][>][/cyan]",
	TaskStatus.IN_PROGRESS: "[yellow][~][/yellow]",
	TaskStatus.COMPLETED: "[green]\\[x][/green]",
	TaskStatus.FAILED: "[red][!][/red]",
}

PROJECT_STYLES = {
	ProjectStatus.DISCOVERY: "magenta",
	ProjectStatus.PENDING: "dim",
	ProjectStatus.IN_PROGRESS: "yellow",
	ProjectStatus.COMPLETED: "green",
	ProjectStatus.FAILED: "red",
}


def render_project_status(
	project: Project,
	records: Iterable[AgentTaskRecord] = (),
	console: Optional[Console] = None,
) -> None:
	"""Render a project's plan as a Rich Tree, with statuses taken from the ledger."""
	console = console or Console()
	records = list(records)

	if project.plan is None:
		console.print(f"[bold]{project.name}[/bold] [dim]({project.status.value}, no plan yet)[/dim]")
		return

	statuses = {r.task_id_ref: r.status for r in records}
	progress = project.plan.get_progress(records)
	pct = progress["percent_complete"]

	tree = Tree(
		f"[bold]{project.name}[/bold]  "
		f"[dim]({progress['completed_tasks']}/{progress['total_tasks']} tasks, {pct:.0f}%)[/dim]"
	)

	for phase in project.plan.phases:
		phase_branch = tree.add(f"[bold]{phase.name}[/bold]")
		for task in phase.tasks:
			icon = STATUS_ICONS.get(statuses.get(task.task_id, task.status), "[ ]")
			deps = f" [dim](after {', '.join(task.dependencies)})[/dim]" if task.dependencies else ""
			phase_branch.add(f"{icon} [cyan]{task.task_id}[/cyan] [dim]{task.agent.value}[/dim] {task.description}{deps}")

	console.print(tree)


def render_project_summary(
	project: Project,
	records: Iterable[AgentTaskRecord] = (),
	console: Optional[Console] = None,
) -> None:
	"""Render a summary panel for a project."""
	console = console or Console()
	records = list(records)

	style = PROJECT_STYLES.get(project.status, "white")
	lines = [
		f"[bold]Status:[/bold] [{style}]{project.status.value}[/{style}]",
		f"[bold]Type:[/bold] {project.project_type}",
		f"[bold]Technical level:[/bold] {project.technical_level.value}",
		f"[bold]Mode:[/bold] {project.mode}",
	]
	if project.codebase_path:
		lines.append(f"[bold]Codebase:[/bold] {project.codebase_path}")

	if project.plan:
		progress = project.plan.get_progress(records)
		lines.append("")
		lines.append(
			f"[bold]Progress:[/bold] {progress['completed_tasks']}/{progress['total_tasks']} tasks "
			f"({progress['percent_complete']:.0f}%)"
		)
		lines.append(
			f"[bold]Active:[/bold] {progress['active_tasks']}  "
			f"[bold]Pending:[/bold] {progress['pending_tasks']}  "
			f"[bold]Failed:[/bold] {progress['failed_tasks']}"
		)

	failed = [r for r in records if r.status == TaskStatus.FAILED]
	if failed:
		lines.append("")
		lines.append("[bold red]Failed tasks:[/bold red]")
		for r in failed[:5]:
			lines.append(f"  - {r.task_id_ref} ({r.agent_type})")

	console.print(Panel("\n".join(lines), title=f"Project {project.id}: {project.name}", border_style="cyan"))


def render_project_list(projects: Iterable[Project], console: Optional[Console] = None) -> None:
	"""Render a table of projects."""
	console = console or Console()

	table = Table(title="Projects")
	table.add_column("ID", justify="right")
	table.add_column("Name")
	table.add_column("Type")
	table.add_column("Status")
	table.add_column("Created", style="dim")

	count = 0
	for project in projects:
		style = PROJECT_STYLES.get(project.status, "white")
		table.add_row(
			str(project.id),
			project.name,
			project.project_type,
			f"[{style}]{project.status.value}[/{style}]",
			project.created_at[:19],
		)
		count += 1

	if count == 0:
		console.print("[dim]No projects yet.[/dim]")
		return
	console.print(table)
