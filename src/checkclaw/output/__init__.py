"""Terminal and file output."""

from checkclaw.output.exporter import CSV_COLUMNS, EXPORT_FORMATS, TransactionExporter
from checkclaw.output.tables import TableRenderer

__all__ = ["CSV_COLUMNS", "EXPORT_FORMATS", "TableRenderer", "TransactionExporter"]
