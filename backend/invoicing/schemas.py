from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from invoicing.models import (
    ExpenseCategory, ExpenseStatus, InvoiceStatus, PaymentMethod, ProjectStatus, UserRole,
)

# ---- Tenants ----
class TenantCreate(BaseModel):
    subdomain: str = Field(min_length=1, max_length=63, pattern=r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    emoji: Optional[str] = None

class TenantOut(BaseModel):
    id: int
    subdomain: str
    name: str
    description: Optional[str] = None
    emoji: Optional[str] = None
    active: bool

# ---- Auth ----
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    name: str = Field(min_length=1, max_length=200)
    role: UserRole = UserRole.USER

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class MeOut(BaseModel):
    id: int
    email: EmailStr
    name: str
    role: str
    tenant_id: int

# ---- Companies ----
class CompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    tax_id: Optional[str] = None
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100, decimal_places=2)

class CompanyOut(CompanyCreate):
    id: int
    email: str

# ---- Clients ----
class ClientBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    tax_id: Optional[str] = None
    active: bool = True
    notes: Optional[str] = None

class ClientCreate(ClientBase):
    company_id: int

class ClientUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    tax_id: Optional[str] = None
    active: Optional[bool] = None
    notes: Optional[str] = None

class ClientOut(ClientBase):
    id: int
    company_id: int
    email: str

class ClientStats(BaseModel):
    total_invoiced_cents: int
    total_paid_cents: int
    invoice_count: int

# ---- Projects ----
class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    company_id: int
    client_id: int
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    budget_cents: Optional[int] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

class ProjectOut(ProjectCreate):
    id: int
    status: str

# ---- Invoices ----
class InvoiceLineCreate(BaseModel):
    description: str = Field(min_length=1, max_length=300)
    quantity: Decimal = Field(default=Decimal("1"), gt=0, decimal_places=2)
    # negative unit prices are ad hoc discounts
    unit_price_cents: int
    category: Optional[str] = None

class InvoiceLineOut(BaseModel):
    id: int
    invoice_id: int
    description: str
    quantity: Decimal
    unit_price_cents: int
    amount_cents: int
    category: Optional[str] = None
    position: int

class InvoiceCreate(BaseModel):
    company_id: int
    client_id: int
    project_id: Optional[int] = None
    number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    status: InvoiceStatus = InvoiceStatus.DRAFT
    issue_date: Optional[date] = None
    due_date: date
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100, decimal_places=2)
    discount_cents: int = Field(default=0, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    notes: Optional[str] = None
    terms: Optional[str] = None
    line_items: List[InvoiceLineCreate] = Field(min_length=1)

class InvoiceUpdate(BaseModel):
    status: Optional[InvoiceStatus] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None

class InvoiceOut(BaseModel):
    id: int
    number: str
    company_id: int
    client_id: int
    project_id: Optional[int] = None
    user_id: int
    status: str
    currency: str
    issue_date: date
    due_date: date
    paid_date: Optional[datetime] = None
    subtotal_cents: int
    tax_rate: Decimal
    tax_cents: int
    discount_cents: int
    total_cents: int
    amount_paid_cents: int
    notes: Optional[str] = None
    terms: Optional[str] = None

class InvoiceListOut(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    limit: int
    offset: int

# ---- Payments ----
class PaymentCreate(BaseModel):
    amount_cents: int = Field(gt=0)
    payment_date: Optional[date] = None
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: Optional[str] = None
    notes: Optional[str] = None

class PaymentOut(BaseModel):
    id: int
    invoice_id: int
    amount_cents: int
    payment_date: date
    method: str
    reference: Optional[str] = None
    notes: Optional[str] = None

class PaymentResult(BaseModel):
    payment: PaymentOut
    invoice: InvoiceOut

class InvoiceDetailOut(InvoiceOut):
    line_items: List[InvoiceLineOut]
    payments: List[PaymentOut]

class ClientDetailOut(ClientOut):
    stats: ClientStats
    recent_invoices: List[InvoiceOut]

# ---- Expenses ----
class ExpenseCreate(BaseModel):
    company_id: int
    project_id: Optional[int] = None
    description: str = Field(min_length=1, max_length=300)
    amount_cents: int = Field(gt=0)
    category: ExpenseCategory
    expense_date: Optional[date] = None
    receipt: Optional[str] = None
    status: ExpenseStatus = ExpenseStatus.PENDING
    notes: Optional[str] = None

class ExpenseOut(ExpenseCreate):
    id: int
    user_id: int
    category: str
    status: str
    expense_date: date
