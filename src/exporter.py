"""Export utilities for reconciliation results."""

import csv
import io
import os
from typing import Dict, Iterable, List, Optional

from models import FieldMapping, ReconOutcome, ReconResult, Row

ALL = "ALL"

EXPORT_COLUMNS = [
    "status",
    "reason",
    "key",
    "a_rowId",
    "b_rowId",
    "a_transaction_id",
    "b_transaction_id",
    "a_date",
    "b_date",
    "a_amount",
    "b_amount",
]


def filter_results(results: Iterable[ReconResult], status_filter: Optional[str] = ALL) -> List[ReconResult]:
    """Keep results whose status equals the filter exactly; 'ALL' keeps everything."""
    if not status_filter or status_filter == ALL:
        return list(results)
    return [r for r in results if r.status.value == status_filter]


def _value(row: Optional[Row], column: Optional[str]) -> str:
    if row is None:
        return ""
    return row.get(column) or ""


def flatten_result(result: ReconResult, mapping: FieldMapping) -> Dict[str, str]:
    """Flat export record; id, date and amount come from the mapped columns."""
    return {
        "status": result.status.value,
        "reason": result.reason,
        "key": result.key or "",
        "a_rowId": str(result.a.row_id) if result.a is not None else "",
        "b_rowId": str(result.b.row_id) if result.b is not None else "",
        "a_transaction_id": _value(result.a, mapping.id.a),
        "b_transaction_id": _value(result.b, mapping.id.b),
        "a_date": _value(result.a, mapping.date.a),
        "b_date": _value(result.b, mapping.date.b),
        "a_amount": _value(result.a, mapping.amount.a),
        "b_amount": _value(result.b, mapping.amount.b),
    }


def export_filename(session_id: str, status_filter: Optional[str] = ALL) -> str:
    return f"recon_{session_id}_{status_filter or ALL}.csv"


class Exporter:
    """Serializes a reconciliation outcome to CSV."""

    def __init__(self, outcome: ReconOutcome):
        """
        Initialize exporter with a reconciliation outcome.

        Args:
            outcome: ReconOutcome whose results are exported
        """
        self.outcome = outcome

    def rows(self, status_filter: Optional[str] = ALL) -> List[Dict[str, str]]:
        selected = filter_results(self.outcome.results, status_filter)
        return [flatten_result(result, self.outcome.mapping) for result in selected]

    def to_csv(self, status_filter: Optional[str] = ALL) -> str:
        """
        Render the (optionally filtered) results as CSV text.

        Args:
            status_filter: 'ALL' or one exact status value

        Returns:
            CSV text with a header row
        """
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, lineterminator="\n")
        writer.writeheader()
        writer.writerows(self.rows(status_filter))
        return buffer.getvalue()

    def write_csv(self, output_path: str, status_filter: Optional[str] = ALL) -> str:
        """
        Write the CSV export to a file, creating its directory if needed.

        Returns:
            Path to the exported file
        """
        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_path, "w", encoding="utf-8", newline="") as handle:
            handle.write(self.to_csv(status_filter))
        return output_path
