"""
Project Ledger Schemas

Each record model below mirrors a collection in MongoDB. Collection names
follow the mobile app's tables, e.g.:
- Bill -> "bills"
- SalesPayment -> "payments_sales"

Record models are lenient: numbers arriving from the store may be strings or
missing altogether, so amounts go through parse_amount() before anything adds
them up. Dates may be full timestamps and bill numbers plain numbers; both
are narrowed on the way in. Request payloads (the *In models) are what the API
accepts on writes.
"""
import datetime as dt
import math
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

BillStatus = Literal["submitted", "approved", "payment_processed"]
Role = Literal["admin", "user"]

BILL_STATUSES = ("submitted", "approved", "payment_processed")
APPROVED_STATUSES = ("approved", "payment_processed")


def parse_amount(value: Any) -> float:
    """Parse a stored numeric field, treating anything unparseable as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def parse_record_date(value: Any) -> Any:
    """Stored dates may be full timestamps; keep the calendar date only."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str):
        return value.strip()[:10]
    return value


# ---------------------------------------------------------------------
# Core & Master Data
# ---------------------------------------------------------------------

class Record(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str


class Audited(Record):
    created_by: Optional[str] = None
    created_date: Optional[dt.datetime] = None
    modified_by: Optional[str] = None
    modified_date: Optional[dt.datetime] = None


class User(Record):
    auth_id: str
    name: str = ""
    username: str = ""
    role: Role = "user"


class Actor(BaseModel):
    """Who is making the request; passed explicitly into the workflow rules."""
    id: str
    role: Role = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Project(Record):
    project_name: str
    status: Literal["active", "inactive"] = "active"
    group: Optional[str] = None
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    company_gst: Optional[str] = None
    order_number: Optional[int] = None


class Vendor(Record):
    vendor_name: str


class Customer(Record):
    customer_name: str


class PaymentMethod(Record):
    name: str
    opening_balance: float = 0

    @field_validator("opening_balance", mode="before")
    @classmethod
    def _parse_balance(cls, value):
        return parse_amount(value)


class PurchaseCategory(Record):
    category: str
    subcategories: str = Field("", description="Comma-separated subcategory names")

    def subcategory_options(self) -> List[str]:
        return [s.strip() for s in (self.subcategories or "").split(",") if s.strip()]


# ---------------------------------------------------------------------
# Bills & Payments
# ---------------------------------------------------------------------

class BillRecord(Audited):
    project_id: str
    bill_number: Optional[str] = None
    date: dt.date
    amount: float = 0
    discount: float = 0
    category: Optional[str] = None
    subcategory: Optional[str] = None
    gst: int = Field(0, description="GST percentage, stored but not applied to totals")
    description: Optional[str] = None
    status: BillStatus = "submitted"

    @field_validator("amount", "discount", mode="before")
    @classmethod
    def _parse_amount(cls, value):
        return parse_amount(value)

    @field_validator("gst", mode="before")
    @classmethod
    def _parse_gst(cls, value):
        return int(parse_amount(value))

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value):
        return parse_record_date(value)

    @field_validator("bill_number", mode="before")
    @classmethod
    def _parse_bill_number(cls, value):
        return None if value is None else str(value)

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return value or "submitted"


class Bill(BillRecord):
    """Purchase bill raised by a vendor against a project."""
    vendor_id: str

    @property
    def counterparty_id(self) -> str:
        return self.vendor_id


class SalesBill(BillRecord):
    """Sales bill raised to a customer for a project."""
    customer_id: str

    @property
    def counterparty_id(self) -> str:
        return self.customer_id


class PaymentRecord(Audited):
    project_id: str
    date: dt.date
    amount: float = 0
    payment_method_id: Optional[str] = None
    description: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value):
        return parse_amount(value)

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value):
        return parse_record_date(value)


class Payment(PaymentRecord):
    vendor_id: str

    @property
    def counterparty_id(self) -> str:
        return self.vendor_id


class SalesPayment(PaymentRecord):
    customer_id: str

    @property
    def counterparty_id(self) -> str:
        return self.customer_id


AnyBill = Union[Bill, SalesBill]
AnyPayment = Union[Payment, SalesPayment]

# ---------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------

class ProjectIn(BaseModel):
    project_name: str
    status: Literal["active", "inactive"] = "active"
    group: Optional[str] = None
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    company_gst: Optional[str] = None
    order_number: Optional[int] = None


class VendorIn(BaseModel):
    vendor_name: str


class CustomerIn(BaseModel):
    customer_name: str


class PaymentMethodIn(BaseModel):
    name: str
    opening_balance: float = 0


class BillPayload(BaseModel):
    project_id: str
    bill_number: str = ""
    date: dt.date
    amount: float
    discount: float = Field(0, ge=0)
    category: str = ""
    subcategory: Optional[str] = None
    gst: Literal[0, 5, 18] = 0
    description: Optional[str] = None
    status: BillStatus = "submitted"


class BillIn(BillPayload):
    vendor_id: str = ""


class SalesBillIn(BillPayload):
    customer_id: str = ""


class PaymentPayload(BaseModel):
    project_id: str
    date: dt.date
    amount: float
    payment_method_id: str = ""
    description: Optional[str] = None


class PaymentIn(PaymentPayload):
    vendor_id: str = ""


class SalesPaymentIn(PaymentPayload):
    customer_id: str = ""


# ---------------------------------------------------------------------
# Computed views
# ---------------------------------------------------------------------

class Summary(BaseModel):
    paid: float = 0
    outstanding: float = 0
    pending_approval: float = 0


class CashPosition(BaseModel):
    expenses: float = 0
    received: float = 0
    balance: float = 0


class FeedItem(BaseModel):
    kind: Literal["bill", "payment"]
    date: dt.date
    amount: float = Field(..., description="Net amount for bills, paid amount for payments")
    bill: Optional[AnyBill] = None
    payment: Optional[AnyPayment] = None
    method_name: Optional[str] = None


class FeedSection(BaseModel):
    label: str
    items: List[FeedItem] = []


class PendingBills(BaseModel):
    bills: List[AnyBill] = []
    total: float = 0


class RankedEntity(BaseModel):
    entity: Any
    summary: Summary


class RankedBalance(BaseModel):
    entity: Any
    position: CashPosition


class CombinedOutstanding(BaseModel):
    project: Project
    purchase_outstanding: float = 0
    sales_outstanding: float = 0
    combined_outstanding: float = 0


class CombinedTotals(BaseModel):
    purchase: float = 0
    sales: float = 0
    combined: float = 0


# ---------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------

class RankedList(BaseModel):
    items: List[RankedEntity]
    totals: Summary


class Statement(BaseModel):
    summary: Summary
    items: List[FeedItem]


class ProjectStatement(BaseModel):
    project: Project
    sections: List[FeedSection]


class ProjectDetail(BaseModel):
    project: Project
    position: CashPosition
    items: List[FeedItem]


class CombinedList(BaseModel):
    items: List[CombinedOutstanding]
    totals: CombinedTotals


class BillView(BaseModel):
    bill: AnyBill
    allowed_statuses: List[BillStatus]
    read_only: bool


class CategoryOut(BaseModel):
    id: str
    category: str
    subcategories: List[str]
