"""Visualizer package - Rich terminal views of project progress."""

from .project_status import render_project_list, render_project_status, render_project_summary

__all__ = [
	"render_project_list",
	"render_project_status",
	"render_project_summary",
]
