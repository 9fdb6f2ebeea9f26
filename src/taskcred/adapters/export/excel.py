"""Excel export of task lists using openpyxl."""

from __future__ import annotations

import io
from collections.abc import Iterable, Mapping
from datetime import UTC

from openpyxl import Workbook
from openpyxl.styles import Font

from taskcred.core.domain_types import Task

HEADERS = ("Task Name", "Description", "Status", "Assignee", "Due Date")
COLUMN_WIDTHS = (30, 50, 16, 24, 18)
DUE_DATE_FORMAT = "%Y-%m-%d %H:%M"


def assignee_label(task: Task, owner_names: Mapping[str, str]) -> str:
    """Display name of the task owner for the export."""
    if not task.owner_id:
        return "Unassigned"
    return owner_names.get(task.owner_id, f"User ID: {task.owner_id}")


def due_date_label(task: Task) -> str:
    if task.due_date is None:
        return "No due date"
    return task.due_date.astimezone(UTC).strftime(DUE_DATE_FORMAT)


def tasks_to_xlsx(tasks: Iterable[Task], owner_names: Mapping[str, str]) -> bytes:
    """Build an .xlsx workbook with one row per task.

    Args:
        tasks: Tasks to export, in display order.
        owner_names: Account id to display name, for owners that resolve.

    Returns:
        The workbook as bytes.
    """
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Tasks"

    sheet.append(HEADERS)
    for cell in sheet[1]:
        cell.font = Font(bold=True)

    for column, width in zip("ABCDE", COLUMN_WIDTHS, strict=True):
        sheet.column_dimensions[column].width = width

    for task in tasks:
        sheet.append(
            (
                task.title,
                task.description,
                task.status.value,
                assignee_label(task, owner_names),
                due_date_label(task),
            )
        )
        # Keep formula-like user text literal.
        for cell in sheet[sheet.max_row]:
            if isinstance(cell.value, str):
                cell.data_type = "s"

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
