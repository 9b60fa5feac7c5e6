from ranking import (combined_totals, project_positions, rank_by_balance,
                     rank_by_outstanding, rank_projects, rank_projects_combined,
                     summarize_counterparties, summary_totals)
from schemas import CashPosition, Summary
from tests.factories import (make_bill, make_payment, make_project,
                             make_sales_bill, make_sales_payment, make_vendor)


def entity_ids(rows):
    return [r.entity.id for r in rows]


class TestRankByOutstanding:
    def test_descending_with_stable_ties(self):
        vendors = [make_vendor("a"), make_vendor("b"), make_vendor("c"), make_vendor("d")]
        summaries = {
            "a": Summary(outstanding=100),
            "b": Summary(outstanding=300),
            "c": Summary(outstanding=100),
            "d": Summary(outstanding=0),
        }
        assert entity_ids(rank_by_outstanding(vendors, summaries)) == ["b", "a", "c", "d"]

    def test_inputs_untouched(self):
        vendors = [make_vendor("a"), make_vendor("b")]
        summaries = {"b": Summary(outstanding=5)}
        ranked = rank_by_outstanding(vendors, summaries)
        assert [v.id for v in vendors] == ["a", "b"]
        assert summaries == {"b": Summary(outstanding=5)}
        assert ranked[1].summary == Summary()

    def test_from_records(self):
        vendors = [make_vendor("v1"), make_vendor("v2")]
        bills = [make_bill(amount=100, vendor_id="v1"), make_bill(amount=900, vendor_id="v2")]
        payments = [make_payment(amount=50, vendor_id="v1")]
        ranked = rank_by_outstanding(vendors, summarize_counterparties(vendors, bills, payments))
        assert entity_ids(ranked) == ["v2", "v1"]
        assert ranked[1].summary == Summary(paid=50, outstanding=50, pending_approval=0)


def test_summary_totals():
    vendors = [make_vendor("v1"), make_vendor("v2")]
    summaries = {"v1": Summary(paid=10, outstanding=20, pending_approval=30),
                 "v2": Summary(paid=1, outstanding=2, pending_approval=3)}
    totals = summary_totals(rank_by_outstanding(vendors, summaries))
    assert totals == Summary(paid=11, outstanding=22, pending_approval=33)
    assert summary_totals([]) == Summary()


def test_rank_projects():
    projects = [make_project("p1"), make_project("p2")]
    bills = [make_bill(amount=100, project_id="p1"), make_bill(amount=500, project_id="p2")]
    payments = [make_payment(amount=500, project_id="p2")]
    ranked = rank_projects(projects, bills, payments)
    assert entity_ids(ranked) == ["p1", "p2"]
    assert ranked[0].summary.outstanding == 100


def test_rank_projects_combined():
    projects = [make_project("p1"), make_project("p2"), make_project("p3")]
    rows = rank_projects_combined(
        projects,
        [make_bill(amount=1000, project_id="p1"), make_bill(amount=200, project_id="p2")],
        [make_payment(amount=400, project_id="p1")],
        [make_sales_bill(amount=900, project_id="p3"), make_sales_bill(amount=100, project_id="p1")],
        [],
    )
    assert [r.project.id for r in rows] == ["p1", "p2", "p3"]
    assert rows[0].purchase_outstanding == 600
    assert rows[0].sales_outstanding == 100
    assert rows[0].combined_outstanding == 500
    assert rows[2].combined_outstanding == -900

    totals = combined_totals(rows)
    assert (totals.purchase, totals.sales, totals.combined) == (800, 1000, -200)


def test_rank_by_balance_ascending():
    projects = [make_project("p1"), make_project("p2"), make_project("p3")]
    positions = project_positions(
        projects,
        [make_bill(amount=1000, project_id="p1"), make_bill(amount=50, project_id="p2")],
        [make_sales_payment(amount=200, project_id="p1"), make_sales_payment(amount=100, project_id="p2")],
    )
    ranked = rank_by_balance(projects, positions)
    assert entity_ids(ranked) == ["p1", "p3", "p2"]
    assert ranked[0].position == CashPosition(expenses=1000, received=200, balance=-800)
    assert ranked[1].position.balance == 0
