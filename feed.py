"""
Statement feeds: bills and payments merged into one date-ordered list.

Sorting is stable, so records sharing a date keep the order they arrived in
(bills ahead of payments when both are included).
"""
from operator import attrgetter
from typing import Dict, Iterable, List, Mapping, Optional

from formatting import format_currency, format_date
from ledger import is_approved, is_pending, net_amount
from schemas import FeedItem, FeedSection, PendingBills, Summary, parse_amount

FILTERS = ("all", "bill", "payment")
ORDERS = ("asc", "desc")
PLACEHOLDER = "—"

PURCHASE = "Purchase"
SALES = "Sales"


def _check(value, allowed, name):
    if value not in allowed:
        raise ValueError(f"Unknown {name} {value!r}, expected one of {allowed}")


def sort_by_date(records: Iterable, order: str = "desc", key=attrgetter("date")) -> list:
    _check(order, ORDERS, "order")
    return sorted(records, key=key, reverse=order == "desc")


def method_lookup(methods: Iterable) -> Dict[str, str]:
    return {m.id: m.name for m in methods}


def bill_item(bill) -> FeedItem:
    return FeedItem(kind="bill", date=bill.date, amount=net_amount(bill), bill=bill)


def payment_item(payment, method_names: Optional[Mapping[str, str]] = None) -> FeedItem:
    method_name = None
    if method_names is not None:
        method_name = method_names.get(payment.payment_method_id) or PLACEHOLDER
    return FeedItem(
        kind="payment",
        date=payment.date,
        amount=parse_amount(payment.amount),
        payment=payment,
        method_name=method_name,
    )


def build_feed(bills: Iterable, payments: Iterable, filter_by: str = "all",
               order: str = "desc",
               method_names: Optional[Mapping[str, str]] = None) -> List[FeedItem]:
    """
    Statement feed for one counterparty.

    Only approved or payment-processed bills appear. Payments carry the name
    of their payment method, or a dash when the method is unknown.
    """
    _check(filter_by, FILTERS, "filter")
    items = []
    if filter_by in ("all", "bill"):
        items.extend(bill_item(b) for b in bills if is_approved(b))
    if filter_by in ("all", "payment"):
        items.extend(payment_item(p, method_names or {}) for p in payments)
    return sort_by_date(items, order)


def build_project_feed(purchase_bills: Iterable, purchase_payments: Iterable,
                       sales_bills: Iterable, sales_payments: Iterable,
                       filter_by: str = "all", order: str = "desc",
                       method_names: Optional[Mapping[str, str]] = None) -> List[FeedSection]:
    """Project-wide statement, split into Purchase and Sales sections."""
    return [
        FeedSection(label=PURCHASE, items=build_feed(
            purchase_bills, purchase_payments, filter_by, order, method_names)),
        FeedSection(label=SALES, items=build_feed(
            sales_bills, sales_payments, filter_by, order, method_names)),
    ]


def build_cash_feed(purchase_bills: Iterable, sales_payments: Iterable,
                    order: str = "desc") -> List[FeedItem]:
    """Project detail list: every purchase bill as an expense, sales payments as receipts."""
    items = [bill_item(b) for b in purchase_bills]
    items.extend(payment_item(p) for p in sales_payments)
    return sort_by_date(items, order)


def pending_bills(bills: Iterable, entity_id: Optional[str] = None,
                  order: str = "desc") -> PendingBills:
    """Bills still awaiting approval, with their net total."""
    pending = [b for b in bills if is_pending(b)
               and (entity_id is None or b.counterparty_id == entity_id)]
    return PendingBills(
        bills=sort_by_date(pending, order),
        total=sum(net_amount(b) for b in pending),
    )


def render_statement(title: str, summary: Summary, items: Iterable[FeedItem]) -> str:
    """Plain-text statement for download."""
    lines = [
        title,
        f"Paid: {format_currency(summary.paid)}",
        f"Outstanding: {format_currency(summary.outstanding)}",
        f"Pending approval: {format_currency(summary.pending_approval)}",
        "",
    ]
    for item in items:
        if item.kind == "bill":
            detail = f"Bill #{item.bill.bill_number or PLACEHOLDER}"
            if item.bill.category:
                detail += f" · {item.bill.category}"
            if item.bill.subcategory:
                detail += f" · {item.bill.subcategory}"
            amount = format_currency(item.amount)
        else:
            detail = "Payment"
            if item.method_name:
                detail += f" · {item.method_name}"
            amount = "-" + format_currency(item.amount)
        lines.append(f"{format_date(item.date)}  {detail}  {amount}")
    return "\n".join(lines) + "\n"
