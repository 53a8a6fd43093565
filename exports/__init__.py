"""Spreadsheet exports (ledger import templates and sales summary)."""

from exports.excel import SpreadsheetExporter

__all__ = ["SpreadsheetExporter"]
