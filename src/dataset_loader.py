"""DuckDB-based CSV loading and column profiling."""

import os
from typing import Dict, List, Optional, Tuple

import duckdb

from errors import CsvParseError
from logging_setup import get_logger
from models import Dataset, DatasetProfile, Row
from normalizers import normalize_date

logger = get_logger("recon.dataset_loader")

ID_CANDIDATES = ["transaction_id", "transactionid", "txn_id", "txnid", "id", "reference", "ref", "trans_id"]
AMOUNT_CANDIDATES = ["amount", "amt", "total", "total_amount", "value"]
DATE_CANDIDATES = ["date", "txn_date", "transaction_date", "posted_date", "booking_date"]

SAMPLE_SIZE = 5


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class DatasetLoader:
    """Loads CSV files into DuckDB tables and hands them back as rows."""

    def __init__(self):
        """Initialize with in-memory DuckDB connection."""
        self.conn = duckdb.connect(":memory:", config={"preserve_insertion_order": True})
        # table -> {trimmed header: header as stored by DuckDB}
        self._columns: Dict[str, Dict[str, str]] = {}

    def __enter__(self) -> "DatasetLoader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.conn.close()

    def load_csv(self, path: str, table_name: str) -> List[str]:
        """
        Load a CSV file into a DuckDB table with every column as text.

        Args:
            path: Path to the CSV file
            table_name: Name for the table in DuckDB

        Returns:
            List of column names from the CSV, trimmed

        Raises:
            CsvParseError: If the file is empty or cannot be parsed
        """
        if not os.path.exists(path) or os.path.getsize(path) == 0:
            raise CsvParseError(f"CSV is empty: {os.path.basename(path)}")

        try:
            self.conn.execute(f"""
                CREATE OR REPLACE TABLE {_quote_ident(table_name)} AS
                SELECT * FROM read_csv({_quote_literal(path)}, header = true, all_varchar = true)
            """)
            described = self.conn.execute(f"DESCRIBE {_quote_ident(table_name)}").fetchall()
        except duckdb.Error as e:
            raise CsvParseError(f"Could not parse {os.path.basename(path)}: {e}") from e

        columns: Dict[str, str] = {}
        for row in described:
            trimmed = str(row[0]).strip()
            if trimmed:
                columns.setdefault(trimmed, row[0])
        self._columns[table_name] = columns
        return list(columns)

    def get_columns(self, table_name: str) -> List[str]:
        """Get column names for a loaded table."""
        return list(self._columns.get(table_name, {}))

    def get_row_count(self, table_name: str) -> int:
        """Get row count for a table."""
        result = self.conn.execute(f"SELECT COUNT(*) FROM {_quote_ident(table_name)}").fetchone()
        return result[0] if result else 0

    def fetch_rows(self, table_name: str) -> List[Row]:
        """
        Read a loaded table back as rows in file order.

        Row ids are 1-based positions; NULL cells become empty strings.
        """
        columns = self._columns[table_name]
        select_list = ", ".join(_quote_ident(raw) for raw in columns.values())
        records = self.conn.execute(f"SELECT {select_list} FROM {_quote_ident(table_name)}").fetchall()
        names = list(columns)
        return [
            Row(row_id=index, values={name: ("" if value is None else value) for name, value in zip(names, record)})
            for index, record in enumerate(records, start=1)
        ]

    def load_dataset(self, path: str, name: str) -> Dataset:
        """Load a CSV file and return it as a Dataset named after its table."""
        columns = self.load_csv(path, name)
        rows = self.fetch_rows(name)
        logger.info("loaded %s rows=%d columns=%d", name, len(rows), len(columns))
        return Dataset(name=name, columns=columns, rows=rows)

    def detect_column(self, table_name: str, candidates: List[str]) -> Optional[str]:
        """
        Find the first candidate that names a column (case-insensitive).

        Args:
            table_name: Name of the table to search
            candidates: Column names in priority order

        Returns:
            Column name as it appears in the header, or None
        """
        columns = self.get_columns(table_name)
        lowered = [col.lower() for col in columns]
        for candidate in candidates:
            if candidate in lowered:
                return columns[lowered.index(candidate)]
        return None

    def count_duplicates(self, table_name: str, column_name: str) -> int:
        """Count non-empty values that already appeared earlier in the column."""
        col = _quote_ident(self._columns[table_name][column_name])
        result = self.conn.execute(f"""
            SELECT COUNT(*) - COUNT(DISTINCT TRIM({col}))
            FROM {_quote_ident(table_name)}
            WHERE {col} IS NOT NULL AND TRIM({col}) <> ''
        """).fetchone()
        return int(result[0]) if result and result[0] is not None else 0

    def get_column_sum(self, table_name: str, column_name: str) -> Optional[float]:
        """
        Sum the parseable numbers of a text column.

        Thousands separators are stripped before casting; values that do not
        cast are skipped.

        Returns:
            Sum of the column, or None if no value parses
        """
        col = _quote_ident(self._columns[table_name][column_name])
        result = self.conn.execute(f"""
            SELECT SUM(v), COUNT(v) FROM (
                SELECT TRY_CAST(REPLACE(TRIM({col}), ',', '') AS DOUBLE) AS v
                FROM {_quote_ident(table_name)}
            ) WHERE v IS NOT NULL AND isfinite(v)
        """).fetchone()
        if not result or not result[1]:
            return None
        return float(result[0])

    def profile(self, table_name: str, dataset: Dataset) -> DatasetProfile:
        """
        Best-effort profile of a loaded table.

        Args:
            table_name: Table the dataset was loaded into
            dataset: The rows fetched from that table

        Returns:
            DatasetProfile with detected columns, duplicates, sum and date range
        """
        detected = {
            "id": self.detect_column(table_name, ID_CANDIDATES),
            "amount": self.detect_column(table_name, AMOUNT_CANDIDATES),
            "date": self.detect_column(table_name, DATE_CANDIDATES),
        }

        duplicates = self.count_duplicates(table_name, detected["id"]) if detected["id"] else 0
        amount_sum = self.get_column_sum(table_name, detected["amount"]) if detected["amount"] else None

        date_range = None
        if detected["date"]:
            dates = sorted(filter(None, (normalize_date(row.get(detected["date"])) for row in dataset.rows)))
            if dates:
                date_range = {"min": dates[0], "max": dates[-1]}

        return DatasetProfile(
            row_count=self.get_row_count(table_name),
            fields=list(dataset.columns),
            detected=detected,
            duplicates=duplicates,
            amount_sum=amount_sum,
            date_range=date_range,
            sample_rows=dataset.rows[:SAMPLE_SIZE],
        )


def parse_upload(path_a: str, path_b: str) -> Tuple[Dataset, Dataset, Dict[str, DatasetProfile]]:
    """
    Parse and profile both sides of a reconciliation.

    Returns:
        (dataset A, dataset B, {"a": profile A, "b": profile B})
    """
    with DatasetLoader() as loader:
        dataset_a = loader.load_dataset(path_a, "source_a")
        dataset_b = loader.load_dataset(path_b, "source_b")
        meta = {
            "a": loader.profile("source_a", dataset_a),
            "b": loader.profile("source_b", dataset_b),
        }
    return dataset_a, dataset_b, meta
