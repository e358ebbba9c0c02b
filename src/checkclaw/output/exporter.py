"""CSV and JSON export of transactions."""

import csv
import io
import json
from pathlib import Path

from checkclaw.config import Config
from checkclaw.models.transaction import Transaction
from checkclaw.utils.logging_config import get_logger
from checkclaw.utils.sanitize import guard_text_cell

logger = get_logger(__name__)

CSV_COLUMNS = ["date", "merchant", "amount", "category", "account_id"]
EXPORT_FORMATS = ("csv", "json")


class TransactionExporter:
    """Serializes transactions for spreadsheets and scripts.

    CSV has one row per transaction with the columns in CSV_COLUMNS; the
    category path is joined with " > ". JSON reproduces the API objects as
    received.
    """

    def __init__(self, config: Config):
        """Initialize the exporter.

        Args:
            config: Application configuration.
        """
        self.output_config = config.output

    def to_csv(self, transactions: list[Transaction]) -> str:
        """Render transactions as CSV text with a header row."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        places = self.output_config.decimal_places
        for t in transactions:
            writer.writerow([
                t.date,
                guard_text_cell(t.merchant),
                f"{t.amount:.{places}f}",
                guard_text_cell(t.category_display),
                guard_text_cell(t.account_id),
            ])
        return buffer.getvalue()

    def to_json(self, transactions: list[Transaction]) -> str:
        """Render transactions as a pretty-printed JSON array."""
        return json.dumps([t.raw for t in transactions], indent=2, default=str)

    def render(self, transactions: list[Transaction], export_format: str) -> str:
        """Render in export_format ("csv" or "json").

        Raises:
            ValueError: For an unknown format.
        """
        export_format = export_format.lower()
        if export_format == "csv":
            return self.to_csv(transactions)
        if export_format == "json":
            return self.to_json(transactions)
        raise ValueError(f"Unknown export format '{export_format}'. Use csv or json.")

    def write(self, path: Path, transactions: list[Transaction], export_format: str) -> Path:
        """Render and write to path, creating parent directories.

        Returns:
            The path written.
        """
        content = self.render(transactions, export_format)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="", encoding="utf-8") as f:
            f.write(content)
        logger.info(f"Exported {len(transactions)} transactions to {path}")
        return path
