"""Row-level reconciliation engine.

Joins dataset A against dataset B either on an identifier column (auto mode)
or on a composite key of normalized column values (custom mode), then
classifies every row as MATCHED, MISMATCH, MISSING_IN_A or MISSING_IN_B.

The engine is a pure function of its inputs: it keeps no state between runs
and never mutates the rows it is given.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from errors import InvalidRequestError
from logging_setup import get_logger
from models import (
    DEFAULT_COLUMNS,
    ColumnPair,
    FieldMapping,
    FieldType,
    MatchStatus,
    ReconMode,
    ReconOutcome,
    ReconResult,
    ReconRules,
    ReconSummary,
    Row,
)
from normalizers import days_between, format_number, normalize_date, stringify, to_number

logger = get_logger("recon.recon_engine")

KEY_SEPARATOR = "||"
REASON_SEPARATOR = " | "

AMOUNT_MISSING = "AMOUNT_MISSING"
AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
DATE_MISSING = "DATE_MISSING"
DATE_MISMATCH = "DATE_MISMATCH"


@dataclass(frozen=True)
class Comparison:
    """Verdict of a field comparator."""
    ok: bool
    reason: Optional[str] = None
    left: Optional[str] = None
    right: Optional[str] = None
    diff: Optional[float] = None


# =========================================================================
# Field mapping
# =========================================================================

def pick_field(mapping: Any, name: str, fallback: ColumnPair) -> ColumnPair:
    """
    Resolve the column pair for one logical field.

    Args:
        mapping: Caller mapping, e.g. {"id": {"a": "txn_id", "b": "ref"}}
        name: Logical field name ('id', 'amount', 'date', 'description')
        fallback: Pair used for any side the caller did not supply

    Returns:
        ColumnPair preferring caller-supplied names over the fallback
    """
    entry = mapping.get(name) if isinstance(mapping, dict) else None
    if not isinstance(entry, dict):
        return fallback

    def _side(side: str, default: Optional[str]) -> Optional[str]:
        value = entry.get(side)
        if isinstance(value, str) and value:
            return value
        return default

    return ColumnPair(a=_side("a", fallback.a), b=_side("b", fallback.b))


def resolve_mapping(mapping: Any) -> FieldMapping:
    """Resolve all four logical fields with the fixed default columns."""
    if isinstance(mapping, FieldMapping):
        return mapping
    return FieldMapping(
        id=pick_field(mapping, "id", DEFAULT_COLUMNS["id"]),
        amount=pick_field(mapping, "amount", DEFAULT_COLUMNS["amount"]),
        date=pick_field(mapping, "date", DEFAULT_COLUMNS["date"]),
        description=pick_field(mapping, "description", DEFAULT_COLUMNS["description"]),
    )


# =========================================================================
# Key building
# =========================================================================

def _normalize_part(value: Any, field_type: FieldType) -> str:
    if field_type is FieldType.NUMBER:
        number = to_number(value)
        return format_number(number) if number is not None else ""
    if field_type is FieldType.DATE:
        return normalize_date(value) or ""
    return stringify(value).lower()


def build_key(row: Row, columns: Sequence[str], rules: Optional[ReconRules] = None) -> str:
    """
    Build a composite join key from normalized column values.

    Args:
        row: Row to read values from
        columns: Ordered column names making up the key
        rules: Rules carrying the field-type table (string when undeclared)

    Returns:
        Normalized parts joined with '||'
    """
    rules = rules or ReconRules()
    parts = [_normalize_part(row.get(column), rules.type_of(column)) for column in columns]
    return KEY_SEPARATOR.join(parts)


def auto_key(row: Row, column: Optional[str]) -> str:
    """Exact-ID key: the trimmed identifier value."""
    return stringify(row.get(column))


# =========================================================================
# Comparators
# =========================================================================

def compare_amounts(a: Any, b: Any, tolerance: float = 0.0) -> Comparison:
    left, right = to_number(a), to_number(b)
    if left is None or right is None:
        return Comparison(ok=False, reason=AMOUNT_MISSING, left=stringify(a), right=stringify(b))
    diff = abs(left - right)
    ok = diff <= tolerance
    return Comparison(
        ok=ok,
        reason=None if ok else AMOUNT_MISMATCH,
        left=format_number(left),
        right=format_number(right),
        diff=diff,
    )


def compare_dates(a: Any, b: Any, tolerance_days: float = 0.0) -> Comparison:
    left, right = normalize_date(a), normalize_date(b)
    if left is None or right is None:
        return Comparison(ok=False, reason=DATE_MISSING, left=stringify(a), right=stringify(b))
    diff = days_between(left, right)
    ok = diff <= tolerance_days
    return Comparison(ok=ok, reason=None if ok else DATE_MISMATCH, left=left, right=right, diff=diff)


_REASON_LABELS = {
    AMOUNT_MISMATCH: "Amount differs",
    AMOUNT_MISSING: "Amount missing",
    DATE_MISMATCH: "Date differs",
    DATE_MISSING: "Date missing",
}


def build_mismatch_reason(comparisons: Sequence[Comparison]) -> str:
    """Human-readable reason naming only the dimensions that failed."""
    reasons = []
    for cmp in comparisons:
        if cmp.ok:
            continue
        label = _REASON_LABELS.get(cmp.reason or "", cmp.reason or "Mismatch")
        reasons.append(f"{label} ({cmp.left} vs {cmp.right})")
    return REASON_SEPARATOR.join(reasons)


# =========================================================================
# Reconciliation
# =========================================================================

def _coerce_mode(mode: Union[ReconMode, str]) -> ReconMode:
    if isinstance(mode, ReconMode):
        return mode
    try:
        return ReconMode(str(mode).strip().lower())
    except ValueError:
        raise InvalidRequestError(f"Unknown reconciliation mode: {mode!r}") from None


def _coerce_rules(rules: Union[ReconRules, Dict[str, Any], None]) -> ReconRules:
    if isinstance(rules, ReconRules):
        return rules
    return ReconRules.from_dict(rules)


def reconcile(
    rows_a: Sequence[Row],
    rows_b: Sequence[Row],
    mapping: Any = None,
    mode: Union[ReconMode, str] = ReconMode.AUTO,
    rules: Union[ReconRules, Dict[str, Any], None] = None,
) -> ReconOutcome:
    """
    Reconcile two row sets.

    Args:
        rows_a: Rows of dataset A, in file order
        rows_b: Rows of dataset B, in file order
        mapping: Raw mapping dict or a resolved FieldMapping
        mode: 'auto' joins on the id column, 'custom' on composite keys
        rules: Tolerances and composite keys; ignored in auto mode

    Returns:
        ReconOutcome with one result per pair or unmatched row

    Raises:
        InvalidRequestError: If the mode is not recognised
    """
    recon_mode = _coerce_mode(mode)
    fields = resolve_mapping(mapping)
    active_rules = _coerce_rules(rules) if recon_mode is ReconMode.CUSTOM else ReconRules()

    if recon_mode is ReconMode.AUTO:
        def key_a(row: Row) -> str:
            return auto_key(row, fields.id.a)

        def key_b(row: Row) -> str:
            return auto_key(row, fields.id.b)
    else:
        def key_a(row: Row) -> str:
            return build_key(row, active_rules.composite_keys_a, active_rules)

        def key_b(row: Row) -> str:
            return build_key(row, active_rules.composite_keys_b, active_rules)

    # 1. Index B, first occurrence of a key wins
    b_index: Dict[str, Row] = {}
    for row in rows_b:
        key = key_b(row)
        if recon_mode is ReconMode.AUTO and not key:
            continue
        if key not in b_index:
            b_index[key] = row

    results: List[ReconResult] = []
    summary = ReconSummary()
    used_b = set()

    def emit(result: ReconResult) -> None:
        summary.add(result.status)
        results.append(result)

    # 2. Look up each A row
    for row_a in rows_a:
        key = key_a(row_a)
        row_b = b_index.get(key) if key else None
        if row_b is None:
            emit(ReconResult(MatchStatus.MISSING_IN_B, key, MatchStatus.MISSING_IN_B.value, a=row_a))
            continue

        used_b.add(row_b.row_id)
        comparisons = [
            compare_amounts(
                row_a.get(fields.amount.a), row_b.get(fields.amount.b), active_rules.amount_tolerance
            ),
            compare_dates(
                row_a.get(fields.date.a), row_b.get(fields.date.b), active_rules.date_tolerance_days
            ),
        ]
        if all(cmp.ok for cmp in comparisons):
            emit(ReconResult(MatchStatus.MATCHED, key, MatchStatus.MATCHED.value, a=row_a, b=row_b))
        else:
            emit(ReconResult(MatchStatus.MISMATCH, key, build_mismatch_reason(comparisons), a=row_a, b=row_b))

    # 3. Sweep B for rows nothing matched
    for row_b in rows_b:
        if row_b.row_id in used_b:
            continue
        key = auto_key(row_b, fields.id.b) if recon_mode is ReconMode.AUTO else None
        emit(ReconResult(MatchStatus.MISSING_IN_A, key, MatchStatus.MISSING_IN_A.value, b=row_b))

    logger.info(
        "reconciled mode=%s a=%d b=%d matched=%d mismatch=%d missing_in_a=%d missing_in_b=%d",
        recon_mode.value,
        len(rows_a),
        len(rows_b),
        summary.matched,
        summary.mismatch,
        summary.missing_in_a,
        summary.missing_in_b,
    )
    return ReconOutcome(summary=summary, results=results, mapping=fields, mode=recon_mode)
