"""Data models for the reconciliation app."""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


class MatchStatus(Enum):
    """Status of a reconciliation result."""
    MATCHED = "MATCHED"
    MISMATCH = "MISMATCH"
    MISSING_IN_A = "MISSING_IN_A"
    MISSING_IN_B = "MISSING_IN_B"


class ReconMode(Enum):
    """How rows from the two sides are joined."""
    AUTO = "auto"
    CUSTOM = "custom"


class FieldType(Enum):
    """Normalization applied to a column when building a composite key."""
    NUMBER = "number"
    DATE = "date"
    STRING = "string"


@dataclass(frozen=True)
class Row:
    """One parsed CSV record with its positional identifier."""
    row_id: int
    values: Dict[str, str] = field(default_factory=dict)

    def get(self, column: Optional[str]) -> Optional[str]:
        """Raw value for a column, None when the column is unknown."""
        if not column:
            return None
        return self.values.get(column)

    def to_dict(self) -> Dict[str, Any]:
        return {"__rowId": self.row_id, **self.values}


@dataclass
class Dataset:
    """Ordered rows sharing one header."""
    name: str
    columns: List[str]
    rows: List[Row] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class ColumnPair:
    """Physical column names for one logical field on each side."""
    a: Optional[str]
    b: Optional[str]

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"a": self.a, "b": self.b}


DEFAULT_COLUMNS = {
    "id": ColumnPair("transaction_id", "transaction_id"),
    "amount": ColumnPair("amount", "amount"),
    "date": ColumnPair("date", "date"),
    "description": ColumnPair("description", "description"),
}


@dataclass(frozen=True)
class FieldMapping:
    """Resolved column pairs for the four logical fields."""
    id: ColumnPair = DEFAULT_COLUMNS["id"]
    amount: ColumnPair = DEFAULT_COLUMNS["amount"]
    date: ColumnPair = DEFAULT_COLUMNS["date"]
    description: ColumnPair = DEFAULT_COLUMNS["description"]

    def to_dict(self) -> Dict[str, Dict[str, Optional[str]]]:
        return {
            "id": self.id.to_dict(),
            "amount": self.amount.to_dict(),
            "date": self.date.to_dict(),
            "description": self.description.to_dict(),
        }


def _tolerance(value: Any) -> float:
    # Anything that is not a finite, non-negative number means "exact match".
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _column_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


def _field_types(value: Any) -> Dict[str, FieldType]:
    if not isinstance(value, dict):
        return {}
    types = {}
    for column, raw_type in value.items():
        try:
            types[str(column)] = FieldType(str(raw_type).strip().lower())
        except ValueError:
            types[str(column)] = FieldType.STRING
    return types


@dataclass
class ReconRules:
    """Tolerances and composite key configuration for custom mode."""
    amount_tolerance: float = 0.0
    date_tolerance_days: float = 0.0
    composite_keys_a: List[str] = field(default_factory=list)
    composite_keys_b: List[str] = field(default_factory=list)
    field_types: Dict[str, FieldType] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> "ReconRules":
        """
        Build rules from the request payload.

        Never fails: malformed tolerances become 0 (exact match), malformed
        key lists become empty and unknown field types fall back to string.

        Args:
            raw: Rules object as sent by the client (camelCase keys)

        Returns:
            ReconRules instance
        """
        if not isinstance(raw, dict):
            return cls()
        return cls(
            amount_tolerance=_tolerance(raw.get("amountTolerance")),
            date_tolerance_days=_tolerance(raw.get("dateToleranceDays")),
            composite_keys_a=_column_list(raw.get("compositeKeysA")),
            composite_keys_b=_column_list(raw.get("compositeKeysB")),
            field_types=_field_types(raw.get("fieldTypes")),
        )

    def type_of(self, column: str) -> FieldType:
        return self.field_types.get(column, FieldType.STRING)


@dataclass
class ReconResult:
    """One classified pair or unmatched row."""
    status: MatchStatus
    key: Optional[str]
    reason: str
    a: Optional[Row] = None
    b: Optional[Row] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "key": self.key,
            "reason": self.reason,
            "a": self.a.to_dict() if self.a is not None else None,
            "b": self.b.to_dict() if self.b is not None else None,
        }


@dataclass
class ReconSummary:
    """Summary counts for reconciliation results."""
    matched: int = 0
    mismatch: int = 0
    missing_in_a: int = 0
    missing_in_b: int = 0

    def add(self, status: MatchStatus) -> None:
        if status is MatchStatus.MATCHED:
            self.matched += 1
        elif status is MatchStatus.MISMATCH:
            self.mismatch += 1
        elif status is MatchStatus.MISSING_IN_A:
            self.missing_in_a += 1
        else:
            self.missing_in_b += 1

    @property
    def total(self) -> int:
        return self.matched + self.mismatch + self.missing_in_a + self.missing_in_b

    def to_dict(self) -> Dict[str, int]:
        return {
            MatchStatus.MATCHED.value: self.matched,
            MatchStatus.MISMATCH.value: self.mismatch,
            MatchStatus.MISSING_IN_A.value: self.missing_in_a,
            MatchStatus.MISSING_IN_B.value: self.missing_in_b,
            "total": self.total,
        }


@dataclass
class ReconOutcome:
    """Container for all reconciliation outputs."""
    summary: ReconSummary
    results: List[ReconResult]
    mapping: FieldMapping = field(default_factory=FieldMapping)
    mode: ReconMode = ReconMode.AUTO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "results": [result.to_dict() for result in self.results],
        }


@dataclass
class DatasetProfile:
    """Best-effort description of an uploaded file."""
    row_count: int
    fields: List[str]
    detected: Dict[str, Optional[str]]
    duplicates: int = 0
    amount_sum: Optional[float] = None
    date_range: Optional[Dict[str, str]] = None
    sample_rows: List[Row] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rowCount": self.row_count,
            "fields": list(self.fields),
            "detected": dict(self.detected),
            "duplicates": self.duplicates,
            "amountSum": self.amount_sum,
            "dateRange": self.date_range,
            "sampleRows": [row.to_dict() for row in self.sample_rows],
        }
