"""
Ordering of vendors, customers and projects for list screens.

Inputs are never modified; each function returns a new list. Python's sort is
stable, so ties keep the order the entities were passed in.
"""
from typing import Dict, Iterable, List, Mapping

from ledger import cash_position, compute_summary, project_summary
from schemas import (CashPosition, CombinedOutstanding, CombinedTotals,
                     RankedBalance, RankedEntity, Summary)


def summarize_counterparties(entities: Iterable, bills: Iterable,
                             payments: Iterable) -> Dict[str, Summary]:
    bills, payments = list(bills), list(payments)
    return {e.id: compute_summary(bills, payments, e.id) for e in entities}


def rank_by_outstanding(entities: Iterable,
                        summaries: Mapping[str, Summary]) -> List[RankedEntity]:
    """Entities with their summaries, largest outstanding first."""
    ranked = [RankedEntity(entity=e, summary=summaries.get(e.id) or Summary())
              for e in entities]
    ranked.sort(key=lambda r: r.summary.outstanding, reverse=True)
    return ranked


def rank_projects(projects: Iterable, bills: Iterable,
                  payments: Iterable) -> List[RankedEntity]:
    projects, bills, payments = list(projects), list(bills), list(payments)
    summaries = {p.id: project_summary(bills, payments, p.id) for p in projects}
    return rank_by_outstanding(projects, summaries)


def rank_projects_combined(projects: Iterable,
                           purchase_bills: Iterable, purchase_payments: Iterable,
                           sales_bills: Iterable,
                           sales_payments: Iterable) -> List[CombinedOutstanding]:
    """
    Purchase outstanding against sales outstanding per project.

    combined = purchase - sales; a positive figure means the project owes
    more to vendors than customers owe it. Sorted by combined, descending.
    """
    purchase_bills, purchase_payments = list(purchase_bills), list(purchase_payments)
    sales_bills, sales_payments = list(sales_bills), list(sales_payments)
    rows = []
    for project in projects:
        purchase = project_summary(purchase_bills, purchase_payments, project.id).outstanding
        sales = project_summary(sales_bills, sales_payments, project.id).outstanding
        rows.append(CombinedOutstanding(
            project=project,
            purchase_outstanding=purchase,
            sales_outstanding=sales,
            combined_outstanding=purchase - sales,
        ))
    rows.sort(key=lambda r: r.combined_outstanding, reverse=True)
    return rows


def project_positions(projects: Iterable, purchase_bills: Iterable,
                      sales_payments: Iterable) -> Dict[str, CashPosition]:
    purchase_bills, sales_payments = list(purchase_bills), list(sales_payments)
    return {p.id: cash_position(purchase_bills, sales_payments, p.id) for p in projects}


def rank_by_balance(entities: Iterable,
                    positions: Mapping[str, CashPosition]) -> List[RankedBalance]:
    """Lowest balance (received - expenses) first."""
    ranked = [RankedBalance(entity=e, position=positions.get(e.id) or CashPosition())
              for e in entities]
    ranked.sort(key=lambda r: r.position.balance)
    return ranked


def summary_totals(ranked: Iterable[RankedEntity]) -> Summary:
    totals = Summary()
    for row in ranked:
        totals.paid += row.summary.paid
        totals.outstanding += row.summary.outstanding
        totals.pending_approval += row.summary.pending_approval
    return totals


def combined_totals(rows: Iterable[CombinedOutstanding]) -> CombinedTotals:
    rows = list(rows)
    purchase = sum(r.purchase_outstanding for r in rows)
    sales = sum(r.sales_outstanding for r in rows)
    return CombinedTotals(purchase=purchase, sales=sales, combined=purchase - sales)
