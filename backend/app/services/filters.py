"""Filter criteria for transaction queries.

Raw request parameters are parsed leniently: a malformed date or amount bound
is dropped (treated as absent) rather than rejected, the same way at every
entry point. Amounts are carried in minor units (cents) from here on.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from app.logging_setup import get_logger

logger = get_logger(__name__)

ALL_MERCHANTS = "all"

# amount_cents is a 32-bit INTEGER column
MIN_AMOUNT_CENTS = -(2**31)
MAX_AMOUNT_CENTS = 2**31 - 1


@dataclass(frozen=True)
class FilterCriteria:
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    merchant: Optional[str] = None
    min_amount_cents: Optional[int] = None
    max_amount_cents: Optional[int] = None

    def date_scope(self) -> "FilterCriteria":
        """Copy keeping only the date bounds."""
        return FilterCriteria(date_from=self.date_from, date_to=self.date_to)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into naive UTC.

    Raises ``ValueError`` for malformed input.
    """
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def major_units_to_cents(value: Union[Decimal, str, int, float]) -> int:
    """Convert a major-unit amount (dollars) to integer cents, rounding half up."""
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Amount is not a number: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Amount is not a finite number: {value!r}")
    return _to_cents(amount * 100)


def _to_cents(value: Decimal) -> int:
    try:
        return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation as exc:
        raise ValueError(f"Amount out of range: {value}") from exc


def _parse_date_bound(name: str, raw: Optional[str]) -> Optional[datetime]:
    if raw is None or not raw.strip():
        return None
    try:
        return parse_timestamp(raw)
    except ValueError:
        logger.debug("Ignoring malformed %s bound %r", name, raw)
        return None


def _parse_amount_bound(name: str, raw: Optional[str], *, major_units: bool) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        amount = Decimal(raw.strip())
    except InvalidOperation:
        logger.debug("Ignoring malformed %s bound %r", name, raw)
        return None
    if not amount.is_finite():
        logger.debug("Ignoring non-finite %s bound %r", name, raw)
        return None
    try:
        cents = major_units_to_cents(amount) if major_units else _to_cents(amount)
    except ValueError:
        logger.debug("Ignoring unrepresentable %s bound %r", name, raw)
        return None
    if not MIN_AMOUNT_CENTS <= cents <= MAX_AMOUNT_CENTS:
        logger.debug("Ignoring out-of-range %s bound %r", name, raw)
        return None
    return cents


def normalize_merchant(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    merchant = raw.strip()
    if not merchant or merchant.casefold() == ALL_MERCHANTS:
        return None
    return merchant


def parse_filter_criteria(
    *,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    merchant: Optional[str] = None,
    min_amount: Optional[str] = None,
    max_amount: Optional[str] = None,
    amounts_in_major_units: bool = False,
) -> FilterCriteria:
    """Build ``FilterCriteria`` from raw string parameters.

    Amount bounds are read as minor units unless ``amounts_in_major_units`` is
    set, in which case they are converted with ``major_units_to_cents``.
    """
    return FilterCriteria(
        date_from=_parse_date_bound("from", date_from),
        date_to=_parse_date_bound("to", date_to),
        merchant=normalize_merchant(merchant),
        min_amount_cents=_parse_amount_bound(
            "minAmount", min_amount, major_units=amounts_in_major_units
        ),
        max_amount_cents=_parse_amount_bound(
            "maxAmount", max_amount, major_units=amounts_in_major_units
        ),
    )
