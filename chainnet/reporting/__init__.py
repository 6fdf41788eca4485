"""Reporting utilities for chainnet."""

from .metrics import CsvSink, JsonlSink
from .summary import summarise_history, write_summary

__all__ = ["CsvSink", "JsonlSink", "summarise_history", "write_summary"]
