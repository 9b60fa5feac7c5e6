import datetime as dt

import pytest

from schemas import Actor, BillIn, PaymentIn, SalesBillIn
from tests.factories import make_bill
from workflow import (PermissionDenied, ValidationFailed, allowed_statuses,
                      check_bill_save, clean_bill, clean_payment, require_admin,
                      stamp)

ADMIN = Actor(id="u-admin", role="admin")
USER = Actor(id="u-site", role="user")


def bill_form(**overrides):
    data = dict(project_id="p1", vendor_id="v1", bill_number=" INV-1 ", date="2024-11-05",
                amount=1000, discount=100, category="Civil", gst=18, description="  ")
    data.update(overrides)
    return BillIn(**data)


class TestStatusRules:
    def test_admin_may_set_any_status(self):
        processed = make_bill(status="payment_processed")
        assert allowed_statuses(ADMIN, processed) == ["submitted", "approved", "payment_processed"]
        check_bill_save(ADMIN, "submitted", processed)

    def test_user_creates_submitted_only(self):
        assert allowed_statuses(USER) == ["submitted"]
        check_bill_save(USER, "submitted")
        with pytest.raises(PermissionDenied):
            check_bill_save(USER, "approved")

    def test_user_cannot_touch_approved_bill(self):
        approved = make_bill(status="approved")
        assert allowed_statuses(USER, approved) == []
        with pytest.raises(PermissionDenied):
            check_bill_save(USER, "submitted", approved)

    def test_user_edits_submitted_bill(self):
        check_bill_save(USER, "submitted", make_bill(status="submitted"))

    def test_require_admin(self):
        require_admin(ADMIN, "delete bills")
        with pytest.raises(PermissionDenied, match="delete bills"):
            require_admin(USER, "delete bills")


class TestCleanBill:
    def test_fields(self):
        data = clean_bill(bill_form(), "vendor_id", "vendor")
        assert data["bill_number"] == "INV-1"
        assert data["date"] == "2024-11-05"
        assert data["description"] is None
        assert data["subcategory"] is None
        assert data["vendor_id"] == "v1"
        assert data["status"] == "submitted"

    @pytest.mark.parametrize("overrides, message", [
        ({"vendor_id": ""}, "Please select a vendor"),
        ({"bill_number": "   "}, "Bill number is required"),
        ({"amount": 0}, "Bill amount must be greater than 0"),
        ({"category": ""}, "Please select a category"),
    ])
    def test_rejects_incomplete_form(self, overrides, message):
        with pytest.raises(ValidationFailed, match=message):
            clean_bill(bill_form(**overrides), "vendor_id", "vendor")

    def test_sales_bill_needs_customer(self):
        form = SalesBillIn(project_id="p1", bill_number="S-1", date="2024-11-05",
                           amount=10, category="Flats")
        with pytest.raises(ValidationFailed, match="Please select a customer"):
            clean_bill(form, "customer_id", "customer")


class TestCleanPayment:
    def test_fields(self):
        form = PaymentIn(project_id="p1", vendor_id="v1", date="2024-11-06", amount=500,
                         payment_method_id="m1", description=" advance ")
        data = clean_payment(form, "vendor_id", "vendor")
        assert data == {"project_id": "p1", "vendor_id": "v1", "date": "2024-11-06",
                        "amount": 500, "payment_method_id": "m1", "description": "advance"}

    @pytest.mark.parametrize("overrides, message", [
        ({"amount": -5}, "Amount must be greater than 0"),
        ({"payment_method_id": ""}, "Please select a payment method"),
    ])
    def test_rejects_incomplete_form(self, overrides, message):
        data = dict(project_id="p1", vendor_id="v1", date="2024-11-06", amount=500,
                    payment_method_id="m1")
        data.update(overrides)
        with pytest.raises(ValidationFailed, match=message):
            clean_payment(PaymentIn(**data), "vendor_id", "vendor")


def test_stamp():
    now = dt.datetime(2024, 11, 5, 12, 0, tzinfo=dt.timezone.utc)
    created = stamp({"amount": 1}, USER, created=True, now=now)
    assert created == {"amount": 1, "modified_by": "u-site", "modified_date": now.isoformat(),
                       "created_by": "u-site", "created_date": now.isoformat()}
    updated = stamp({"amount": 1}, ADMIN, now=now)
    assert "created_by" not in updated
    assert updated["modified_by"] == "u-admin"
