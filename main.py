import logging
import os
from typing import Any, Dict, List, Literal, NamedTuple, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError
from pymongo.errors import PyMongoError

import feed
import ledger
import ranking
import schemas as ledger_schemas
from database import DATABASE_NAME, Repository, db
from schemas import (Actor, Bill, BillIn, BillView, CategoryOut, CombinedList,
                     Customer, CustomerIn, PaymentIn, PaymentMethod,
                     PaymentMethodIn, PendingBills, Payment, Project, ProjectDetail,
                     ProjectIn, ProjectStatement, PurchaseCategory, RankedBalance,
                     RankedList, SalesBill, SalesBillIn, SalesPayment,
                     SalesPaymentIn, Statement, User, Vendor, VendorIn)
from workflow import (NotFound, PermissionDenied, ValidationFailed,
                      allowed_statuses, check_bill_save, clean_bill,
                      clean_payment, require_admin, stamp)

logger = logging.getLogger(__name__)

app = FastAPI(title="Project Ledger Backend", version="0.1.0")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

FilterParam = Literal["all", "bill", "payment"]
OrderParam = Literal["asc", "desc"]


class LedgerSide(NamedTuple):
    """Where one side of the books lives and how its counterparty is keyed."""
    label: str
    party_field: str
    name_field: str
    parties: str
    bills: str
    payments: str
    party_model: type
    bill_model: type
    payment_model: type


PURCHASE = LedgerSide("vendor", "vendor_id", "vendor_name", "vendors",
                      "bills", "payments", Vendor, Bill, Payment)
SALES = LedgerSide("customer", "customer_id", "customer_name", "customers",
                   "bills_sales", "payments_sales", Customer, SalesBill, SalesPayment)


# -------------------------------------------------------------
# Dependencies & error mapping
# -------------------------------------------------------------

def get_repository() -> Repository:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return Repository(db)


def get_actor(
    x_auth_id: Optional[str] = Header(None),
    repo: Repository = Depends(get_repository),
) -> Actor:
    """Resolve the identity provider's user id into a ledger actor."""
    if not x_auth_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    users = repo.find("users", auth_id=x_auth_id)
    if not users:
        raise HTTPException(status_code=401, detail="Unknown user")
    user = User.model_validate(users[0])
    return Actor(id=user.id, role=user.role)


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(ValidationFailed)
async def validation_failed_handler(request: Request, exc: ValidationFailed):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Database unavailable. Pull down to retry."},
    )


@app.exception_handler(ValidationError)
async def stored_record_error_handler(request: Request, exc: ValidationError):
    # request bodies are checked by FastAPI itself; this is a row read from the store
    logger.error("Unreadable %s record on %s %s: %s", exc.title, request.method,
                 request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "A stored record could not be read. Pull down to retry."},
    )


# -------------------------------------------------------------
# Utilities
# -------------------------------------------------------------

def load(repo: Repository, model, collection: str, **filters) -> list:
    return [model.model_validate(d) for d in repo.find(collection, **filters)]


def fetch(repo: Repository, model, collection: str, record_id: str):
    doc = repo.get(collection, record_id)
    if doc is None:
        raise NotFound(f"{model.__name__} {record_id} not found")
    return model.model_validate(doc)


def method_names(repo: Repository) -> Dict[str, str]:
    return feed.method_lookup(load(repo, PaymentMethod, "payment_methods"))


def active_projects(repo: Repository) -> List[Project]:
    return load(repo, Project, "projects", status="active")


@app.get("/")
def read_root():
    return {"message": "Project Ledger Backend Running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if db is not None:
        response["database"] = "✅ Available"
        response["database_name"] = DATABASE_NAME
        response["connection_status"] = "Connected"
        try:
            response["collections"] = Repository(db).collection_names()[:20]
            response["database"] = "✅ Connected & Working"
        except PyMongoError as e:
            response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return response


@app.get("/schema")
def get_schema_definitions():
    def model_to_dict(model_cls) -> Dict[str, Any]:
        fields = {}
        for name, field_info in model_cls.model_fields.items():
            fields[name] = {
                "type": str(field_info.annotation),
                "required": field_info.is_required(),
                "default": None if field_info.is_required() else repr(field_info.default),
                "description": getattr(field_info, "description", None),
            }
        return {"fields": fields, "doc": (model_cls.__doc__ or "").strip()}

    models = {}
    for attr in dir(ledger_schemas):
        obj = getattr(ledger_schemas, attr)
        if isinstance(obj, type) and issubclass(obj, BaseModel) and obj is not BaseModel:
            models[attr] = model_to_dict(obj)
    return models


# -------------------------------------------------------------
# Master Data Endpoints
# -------------------------------------------------------------

@app.get("/projects/combined", response_model=CombinedList)
def list_projects_combined(repo: Repository = Depends(get_repository),
                           actor: Actor = Depends(get_actor)):
    rows = ranking.rank_projects_combined(
        active_projects(repo),
        load(repo, Bill, PURCHASE.bills),
        load(repo, Payment, PURCHASE.payments),
        load(repo, SalesBill, SALES.bills),
        load(repo, SalesPayment, SALES.payments),
    )
    return CombinedList(items=rows, totals=ranking.combined_totals(rows))


@app.get("/projects/balances", response_model=List[RankedBalance])
def list_project_balances(repo: Repository = Depends(get_repository),
                          actor: Actor = Depends(get_actor)):
    projects = active_projects(repo)
    positions = ranking.project_positions(
        projects, load(repo, Bill, PURCHASE.bills), load(repo, SalesPayment, SALES.payments))
    return ranking.rank_by_balance(projects, positions)


@app.get("/projects", response_model=List[Project])
def list_projects(status: Optional[Literal["active", "inactive"]] = None,
                  repo: Repository = Depends(get_repository),
                  actor: Actor = Depends(get_actor)):
    filters = {"status": status} if status else {}
    return load(repo, Project, "projects", **filters)


@app.post("/projects", response_model=Project)
def create_project(payload: ProjectIn, repo: Repository = Depends(get_repository),
                   actor: Actor = Depends(get_actor)):
    require_admin(actor, "create projects")
    new_id = repo.insert("projects", payload)
    return Project(id=new_id, **payload.model_dump())


@app.get("/projects/{project_id}", response_model=Project)
def get_project(project_id: str, repo: Repository = Depends(get_repository),
                actor: Actor = Depends(get_actor)):
    return fetch(repo, Project, "projects", project_id)


@app.get("/vendors", response_model=List[Vendor])
def list_vendors(repo: Repository = Depends(get_repository),
                 actor: Actor = Depends(get_actor)):
    return sorted(load(repo, Vendor, "vendors"), key=lambda v: v.vendor_name)


@app.post("/vendors", response_model=Vendor)
def create_vendor(payload: VendorIn, repo: Repository = Depends(get_repository),
                  actor: Actor = Depends(get_actor)):
    require_admin(actor, "create vendors")
    if repo.find("vendors", vendor_name=payload.vendor_name):
        raise HTTPException(status_code=400, detail="Vendor already exists")
    new_id = repo.insert("vendors", payload)
    return Vendor(id=new_id, **payload.model_dump())


@app.get("/customers", response_model=List[Customer])
def list_customers(repo: Repository = Depends(get_repository),
                   actor: Actor = Depends(get_actor)):
    return sorted(load(repo, Customer, "customers"), key=lambda c: c.customer_name)


@app.post("/customers", response_model=Customer)
def create_customer(payload: CustomerIn, repo: Repository = Depends(get_repository),
                    actor: Actor = Depends(get_actor)):
    require_admin(actor, "create customers")
    if repo.find("customers", customer_name=payload.customer_name):
        raise HTTPException(status_code=400, detail="Customer already exists")
    new_id = repo.insert("customers", payload)
    return Customer(id=new_id, **payload.model_dump())


@app.get("/payment-methods", response_model=List[PaymentMethod])
def list_payment_methods(repo: Repository = Depends(get_repository),
                         actor: Actor = Depends(get_actor)):
    return sorted(load(repo, PaymentMethod, "payment_methods"), key=lambda m: m.name)


@app.post("/payment-methods", response_model=PaymentMethod)
def create_payment_method(payload: PaymentMethodIn,
                          repo: Repository = Depends(get_repository),
                          actor: Actor = Depends(get_actor)):
    require_admin(actor, "create payment methods")
    if repo.find("payment_methods", name=payload.name):
        raise HTTPException(status_code=400, detail="Payment method already exists")
    new_id = repo.insert("payment_methods", payload)
    return PaymentMethod(id=new_id, **payload.model_dump())


@app.get("/purchase-categories", response_model=List[CategoryOut])
def list_purchase_categories(repo: Repository = Depends(get_repository),
                             actor: Actor = Depends(get_actor)):
    categories = sorted(load(repo, PurchaseCategory, "purchase_categories"),
                        key=lambda c: c.category)
    return [CategoryOut(id=c.id, category=c.category, subcategories=c.subcategory_options())
            for c in categories]


# -------------------------------------------------------------
# Ledger views (shared by purchase and sales)
# -------------------------------------------------------------

def ranked_projects(side: LedgerSide, repo: Repository) -> RankedList:
    ranked = ranking.rank_projects(
        active_projects(repo),
        load(repo, side.bill_model, side.bills),
        load(repo, side.payment_model, side.payments),
    )
    return RankedList(items=ranked, totals=ranking.summary_totals(ranked))


def ranked_counterparties(side: LedgerSide, project_id: str, repo: Repository) -> RankedList:
    bills = load(repo, side.bill_model, side.bills, project_id=project_id)
    payments = load(repo, side.payment_model, side.payments, project_id=project_id)
    ids = ledger.counterparty_ids(bills, payments)
    parties = load(repo, side.party_model, side.parties, id=ids) if ids else []
    summaries = ranking.summarize_counterparties(parties, bills, payments)
    ranked = ranking.rank_by_outstanding(parties, summaries)
    return RankedList(items=ranked, totals=ranking.summary_totals(ranked))


def counterparty_statement(side: LedgerSide, project_id: str, party_id: str,
                           filter_by: str, order: str, repo: Repository) -> Statement:
    filters = {"project_id": project_id, side.party_field: party_id}
    bills = load(repo, side.bill_model, side.bills, **filters)
    payments = load(repo, side.payment_model, side.payments, **filters)
    return Statement(
        summary=ledger.compute_summary(bills, payments, party_id),
        items=feed.build_feed(bills, payments, filter_by, order, method_names(repo)),
    )


def statement_export(side: LedgerSide, project_id: str, party_id: str,
                     filter_by: str, order: str, repo: Repository) -> PlainTextResponse:
    project = fetch(repo, Project, "projects", project_id)
    party = fetch(repo, side.party_model, side.parties, party_id)
    statement = counterparty_statement(side, project_id, party_id, filter_by, order, repo)
    title = f"{project.project_name} · {getattr(party, side.name_field)}"
    return PlainTextResponse(feed.render_statement(title, statement.summary, statement.items))


def counterparty_pending(side: LedgerSide, project_id: str, party_id: str,
                         order: str, repo: Repository) -> PendingBills:
    bills = load(repo, side.bill_model, side.bills, project_id=project_id,
                 status="submitted", **{side.party_field: party_id})
    return feed.pending_bills(bills, party_id, order)


def view_bill(side: LedgerSide, bill_id: str, actor: Actor, repo: Repository) -> BillView:
    bill = fetch(repo, side.bill_model, side.bills, bill_id)
    statuses = allowed_statuses(actor, bill)
    return BillView(bill=bill, allowed_statuses=statuses, read_only=not statuses)


def save_bill(side: LedgerSide, payload, actor: Actor, repo: Repository,
              bill_id: Optional[str] = None):
    existing = fetch(repo, side.bill_model, side.bills, bill_id) if bill_id else None
    check_bill_save(actor, payload.status, existing)
    data = stamp(clean_bill(payload, side.party_field, side.label), actor,
                 created=existing is None)
    if existing is None:
        bill_id = repo.insert(side.bills, data)
    else:
        data = dict(existing.model_dump(mode="json", include={"created_by", "created_date"}), **data)
        repo.update(side.bills, bill_id, data)
    return side.bill_model.model_validate({"id": bill_id, **data})


def save_payment(side: LedgerSide, payload, actor: Actor, repo: Repository,
                 payment_id: Optional[str] = None):
    require_admin(actor, "add or edit payments")
    existing = fetch(repo, side.payment_model, side.payments, payment_id) if payment_id else None
    data = stamp(clean_payment(payload, side.party_field, side.label), actor,
                 created=existing is None)
    if existing is None:
        payment_id = repo.insert(side.payments, data)
    else:
        data = dict(existing.model_dump(mode="json", include={"created_by", "created_date"}), **data)
        repo.update(side.payments, payment_id, data)
    return side.payment_model.model_validate({"id": payment_id, **data})


def delete_record(collection: str, record_id: str, what: str,
                  actor: Actor, repo: Repository) -> Dict[str, str]:
    require_admin(actor, f"delete {what}s")
    if not repo.delete(collection, record_id):
        raise NotFound(f"{what.capitalize()} {record_id} not found")
    return {"deleted": record_id}


# -------------------------------------------------------------
# Purchase: vendors, bills, payments
# -------------------------------------------------------------

@app.get("/purchase/projects", response_model=RankedList)
def list_purchase_projects(repo: Repository = Depends(get_repository),
                           actor: Actor = Depends(get_actor)):
    return ranked_projects(PURCHASE, repo)


@app.get("/projects/{project_id}/vendors", response_model=RankedList)
def list_project_vendors(project_id: str, repo: Repository = Depends(get_repository),
                         actor: Actor = Depends(get_actor)):
    return ranked_counterparties(PURCHASE, project_id, repo)


@app.get("/projects/{project_id}/vendors/{vendor_id}/statement", response_model=Statement)
def vendor_statement(project_id: str, vendor_id: str,
                     filter_by: FilterParam = Query("all", alias="filter"),
                     order: OrderParam = "desc",
                     repo: Repository = Depends(get_repository),
                     actor: Actor = Depends(get_actor)):
    return counterparty_statement(PURCHASE, project_id, vendor_id, filter_by, order, repo)


@app.get("/projects/{project_id}/vendors/{vendor_id}/statement.txt")
def vendor_statement_export(project_id: str, vendor_id: str,
                            filter_by: FilterParam = Query("all", alias="filter"),
                            order: OrderParam = "desc",
                            repo: Repository = Depends(get_repository),
                            actor: Actor = Depends(get_actor)):
    return statement_export(PURCHASE, project_id, vendor_id, filter_by, order, repo)


@app.get("/projects/{project_id}/vendors/{vendor_id}/pending", response_model=PendingBills)
def vendor_pending(project_id: str, vendor_id: str, order: OrderParam = "desc",
                   repo: Repository = Depends(get_repository),
                   actor: Actor = Depends(get_actor)):
    return counterparty_pending(PURCHASE, project_id, vendor_id, order, repo)


@app.get("/bills/{bill_id}", response_model=BillView)
def get_bill(bill_id: str, repo: Repository = Depends(get_repository),
             actor: Actor = Depends(get_actor)):
    return view_bill(PURCHASE, bill_id, actor, repo)


@app.post("/bills", response_model=Bill)
def create_bill(payload: BillIn, repo: Repository = Depends(get_repository),
                actor: Actor = Depends(get_actor)):
    return save_bill(PURCHASE, payload, actor, repo)


@app.put("/bills/{bill_id}", response_model=Bill)
def update_bill(bill_id: str, payload: BillIn, repo: Repository = Depends(get_repository),
                actor: Actor = Depends(get_actor)):
    return save_bill(PURCHASE, payload, actor, repo, bill_id)


@app.delete("/bills/{bill_id}")
def delete_bill(bill_id: str, repo: Repository = Depends(get_repository),
                actor: Actor = Depends(get_actor)):
    return delete_record(PURCHASE.bills, bill_id, "bill", actor, repo)


@app.post("/payments", response_model=Payment)
def create_payment(payload: PaymentIn, repo: Repository = Depends(get_repository),
                   actor: Actor = Depends(get_actor)):
    return save_payment(PURCHASE, payload, actor, repo)


@app.put("/payments/{payment_id}", response_model=Payment)
def update_payment(payment_id: str, payload: PaymentIn,
                   repo: Repository = Depends(get_repository),
                   actor: Actor = Depends(get_actor)):
    return save_payment(PURCHASE, payload, actor, repo, payment_id)


@app.delete("/payments/{payment_id}")
def delete_payment(payment_id: str, repo: Repository = Depends(get_repository),
                   actor: Actor = Depends(get_actor)):
    return delete_record(PURCHASE.payments, payment_id, "payment", actor, repo)


# -------------------------------------------------------------
# Sales: customers, bills, payments
# -------------------------------------------------------------

@app.get("/sales/projects", response_model=RankedList)
def list_sales_projects(repo: Repository = Depends(get_repository),
                        actor: Actor = Depends(get_actor)):
    return ranked_projects(SALES, repo)


@app.get("/projects/{project_id}/customers", response_model=RankedList)
def list_project_customers(project_id: str, repo: Repository = Depends(get_repository),
                           actor: Actor = Depends(get_actor)):
    return ranked_counterparties(SALES, project_id, repo)


@app.get("/projects/{project_id}/customers/{customer_id}/statement", response_model=Statement)
def customer_statement(project_id: str, customer_id: str,
                       filter_by: FilterParam = Query("all", alias="filter"),
                       order: OrderParam = "desc",
                       repo: Repository = Depends(get_repository),
                       actor: Actor = Depends(get_actor)):
    return counterparty_statement(SALES, project_id, customer_id, filter_by, order, repo)


@app.get("/projects/{project_id}/customers/{customer_id}/statement.txt")
def customer_statement_export(project_id: str, customer_id: str,
                              filter_by: FilterParam = Query("all", alias="filter"),
                              order: OrderParam = "desc",
                              repo: Repository = Depends(get_repository),
                              actor: Actor = Depends(get_actor)):
    return statement_export(SALES, project_id, customer_id, filter_by, order, repo)


@app.get("/projects/{project_id}/customers/{customer_id}/pending", response_model=PendingBills)
def customer_pending(project_id: str, customer_id: str, order: OrderParam = "desc",
                     repo: Repository = Depends(get_repository),
                     actor: Actor = Depends(get_actor)):
    return counterparty_pending(SALES, project_id, customer_id, order, repo)


@app.get("/sales/bills/{bill_id}", response_model=BillView)
def get_sales_bill(bill_id: str, repo: Repository = Depends(get_repository),
                   actor: Actor = Depends(get_actor)):
    return view_bill(SALES, bill_id, actor, repo)


@app.post("/sales/bills", response_model=SalesBill)
def create_sales_bill(payload: SalesBillIn, repo: Repository = Depends(get_repository),
                      actor: Actor = Depends(get_actor)):
    return save_bill(SALES, payload, actor, repo)


@app.put("/sales/bills/{bill_id}", response_model=SalesBill)
def update_sales_bill(bill_id: str, payload: SalesBillIn,
                      repo: Repository = Depends(get_repository),
                      actor: Actor = Depends(get_actor)):
    return save_bill(SALES, payload, actor, repo, bill_id)


@app.delete("/sales/bills/{bill_id}")
def delete_sales_bill(bill_id: str, repo: Repository = Depends(get_repository),
                      actor: Actor = Depends(get_actor)):
    return delete_record(SALES.bills, bill_id, "bill", actor, repo)


@app.post("/sales/payments", response_model=SalesPayment)
def create_sales_payment(payload: SalesPaymentIn, repo: Repository = Depends(get_repository),
                         actor: Actor = Depends(get_actor)):
    return save_payment(SALES, payload, actor, repo)


@app.put("/sales/payments/{payment_id}", response_model=SalesPayment)
def update_sales_payment(payment_id: str, payload: SalesPaymentIn,
                         repo: Repository = Depends(get_repository),
                         actor: Actor = Depends(get_actor)):
    return save_payment(SALES, payload, actor, repo, payment_id)


@app.delete("/sales/payments/{payment_id}")
def delete_sales_payment(payment_id: str, repo: Repository = Depends(get_repository),
                         actor: Actor = Depends(get_actor)):
    return delete_record(SALES.payments, payment_id, "payment", actor, repo)


# -------------------------------------------------------------
# Project statements
# -------------------------------------------------------------

@app.get("/projects/{project_id}/detail", response_model=ProjectDetail)
def project_detail(project_id: str, order: OrderParam = "desc",
                   repo: Repository = Depends(get_repository),
                   actor: Actor = Depends(get_actor)):
    project = fetch(repo, Project, "projects", project_id)
    purchase_bills = load(repo, Bill, PURCHASE.bills, project_id=project_id)
    sales_payments = load(repo, SalesPayment, SALES.payments, project_id=project_id)
    return ProjectDetail(
        project=project,
        position=ledger.cash_position(purchase_bills, sales_payments),
        items=feed.build_cash_feed(purchase_bills, sales_payments, order),
    )


@app.get("/projects/{project_id}/statement", response_model=ProjectStatement)
def project_statement(project_id: str,
                      filter_by: FilterParam = Query("all", alias="filter"),
                      order: OrderParam = "desc",
                      repo: Repository = Depends(get_repository),
                      actor: Actor = Depends(get_actor)):
    project = fetch(repo, Project, "projects", project_id)
    sections = feed.build_project_feed(
        load(repo, Bill, PURCHASE.bills, project_id=project_id),
        load(repo, Payment, PURCHASE.payments, project_id=project_id),
        load(repo, SalesBill, SALES.bills, project_id=project_id),
        load(repo, SalesPayment, SALES.payments, project_id=project_id),
        filter_by, order, method_names(repo),
    )
    return ProjectStatement(project=project, sections=sections)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
