"""Spreadsheet export adapters."""

from taskcred.adapters.export.excel import tasks_to_xlsx

__all__ = ["tasks_to_xlsx"]
