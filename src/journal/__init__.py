"""Append-only run journal and result export."""

from journal.writer import JournalWriter, export_result, result_to_dict

__all__ = ["JournalWriter", "export_result", "result_to_dict"]
