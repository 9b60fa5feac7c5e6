"""
Ledger aggregation.

Every function here works on bills and payments already fetched from the
store and returns fresh values; nothing is cached and nothing is written.
Outstanding is a running balance per counterparty (or per project): approved
bills minus payments, never below zero. Payments are not matched to bills.
"""
from typing import Iterable, List, Optional

from schemas import APPROVED_STATUSES, CashPosition, Summary, parse_amount


def net_amount(bill) -> float:
    """amount - discount; a single bill may go negative if over-discounted."""
    return parse_amount(bill.amount) - parse_amount(bill.discount)


def is_approved(bill) -> bool:
    return bill.status in APPROVED_STATUSES


def is_pending(bill) -> bool:
    return bill.status == "submitted"


def summarize(bills: Iterable, payments: Iterable) -> Summary:
    """Summary over whatever records are passed in, without filtering."""
    bills = list(bills)
    paid = sum(parse_amount(p.amount) for p in payments)
    approved_total = sum(net_amount(b) for b in bills if is_approved(b))
    pending_approval = sum(net_amount(b) for b in bills if is_pending(b))
    return Summary(
        paid=paid,
        outstanding=max(0.0, approved_total - paid),
        pending_approval=pending_approval,
    )


def compute_summary(bills: Iterable, payments: Iterable, entity_id: str) -> Summary:
    """
    Paid, outstanding and pending-approval amounts for one vendor or customer.

    The collections may hold records for other counterparties; only those whose
    counterparty_id matches entity_id are counted.
    """
    return summarize(
        (b for b in bills if b.counterparty_id == entity_id),
        (p for p in payments if p.counterparty_id == entity_id),
    )


def project_summary(bills: Iterable, payments: Iterable,
                    project_id: Optional[str] = None) -> Summary:
    """Same figures across every counterparty of a project."""
    if project_id is None:
        return summarize(bills, payments)
    return summarize(
        (b for b in bills if b.project_id == project_id),
        (p for p in payments if p.project_id == project_id),
    )


def project_outstanding(bills: Iterable, payments: Iterable,
                        project_id: Optional[str] = None) -> float:
    return project_summary(bills, payments, project_id).outstanding


def cash_position(purchase_bills: Iterable, sales_payments: Iterable,
                  project_id: Optional[str] = None) -> CashPosition:
    """
    Net cash for a project: sales payments received minus purchase expenses.

    Expenses count every purchase bill regardless of status.
    """
    if project_id is not None:
        purchase_bills = (b for b in purchase_bills if b.project_id == project_id)
        sales_payments = (p for p in sales_payments if p.project_id == project_id)
    expenses = sum(net_amount(b) for b in purchase_bills)
    received = sum(parse_amount(p.amount) for p in sales_payments)
    return CashPosition(expenses=expenses, received=received, balance=received - expenses)


def counterparty_ids(bills: Iterable, payments: Iterable) -> List[str]:
    """Ids of every vendor/customer seen in the records, first-seen order."""
    seen = dict.fromkeys(b.counterparty_id for b in bills)
    seen.update(dict.fromkeys(p.counterparty_id for p in payments))
    return list(seen)
