"""Display helpers for amounts and dates."""
import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from schemas import parse_amount

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

CURRENCY_SYMBOL = "₹"


def group_indian(digits: str) -> str:
    """Group a digit string the Indian way: 1234567 -> 12,34,567."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(amount) -> str:
    """Whole-rupee display, e.g. 123456 -> '₹1,23,456' and -500 -> '-₹500'."""
    value = Decimal(str(parse_amount(amount)))
    rounded = abs(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    # no "-₹0" for tiny negatives
    sign = "-" if value < 0 and rounded else ""
    return f"{sign}{CURRENCY_SYMBOL}{group_indian(str(int(rounded)))}"


def format_date(value: Union[str, dt.date, dt.datetime]) -> str:
    """Format as DD-Mon-YY, e.g. 05-Nov-24."""
    if isinstance(value, str):
        value = dt.date.fromisoformat(value[:10])
    return f"{value.day:02d}-{MONTHS[value.month - 1]}-{value.year % 100:02d}"
