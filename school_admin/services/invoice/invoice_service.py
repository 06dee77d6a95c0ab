"""
Invoice service.

Invoices group polymorphic line items. Totals and status are derived:

    total   = sum(item.amount - item.discount_amount)
    balance = total - paid - invoice discount

and the status follows the balance once the invoice has been issued.
Items built from student fee rows settle those rows: the paid amount
and invoice discount are spread over the items in order, and each
billed row takes the status its settled amount gives it.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from school_admin.config.settings import settings
from school_admin.core.exceptions import BadRequestError, BusinessRuleError
from school_admin.core.pagination import build_page_meta, normalize_pagination
from school_admin.core.utils import ZERO, CurrencyUtils
from school_admin.models.enums import InvoiceSourceType, InvoiceStatus, InvoiceType, StudentFeeStatus
from school_admin.models.fee import StudentFeeStructure
from school_admin.models.invoice import FeeInvoice, FeeInvoiceItem
from school_admin.repositories.fee.fee_repository import (
    FeeStructureRepository,
    StudentFeeStructureRepository,
)
from school_admin.repositories.invoice.invoice_repository import FeeInvoiceRepository, billed_fee_row_id
from school_admin.repositories.payment.payment_repository import PaymentRepository
from school_admin.repositories.school.school_repository import AcademicYearRepository
from school_admin.repositories.student.student_repository import StudentRepository
from school_admin.repositories.transport.route_price_repository import RoutePriceRepository
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult

TRANSPORT_DESCRIPTION = "Transport fee"

EDITABLE_FIELDS = ("issue_date", "due_date", "discount_amount", "notes")

# Invoices in these states settle nothing
UNSETTLED_INVOICE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED)


def derive_invoice_status(invoice: FeeInvoice, today: Optional[date] = None) -> InvoiceStatus:
    """Status of an issued invoice from its amounts; draft and cancelled are kept."""
    if invoice.status in (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED):
        return invoice.status
    if invoice.balance_amount <= ZERO:
        return InvoiceStatus.PAID
    if invoice.paid_amount > ZERO:
        return InvoiceStatus.PARTIALLY_PAID
    if invoice.due_date < (today or date.today()):
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.ISSUED


def derive_fee_row_status(row: StudentFeeStructure, paid: Decimal, today: Optional[date] = None) -> StudentFeeStatus:
    if paid >= CurrencyUtils.to_decimal(row.amount):
        return StudentFeeStatus.PAID
    if row.due_date < (today or date.today()):
        return StudentFeeStatus.OVERDUE
    return StudentFeeStatus.PENDING


def item_settlements(invoice: FeeInvoice) -> List[Tuple[FeeInvoiceItem, Decimal]]:
    """
    Settled amount of every item of an invoice.

    Item discounts settle their own line; the paid amount and the
    invoice-level discount are spread over the lines in order.
    """
    items = list(invoice.items)
    nets = [
        CurrencyUtils.to_decimal(item.amount) - CurrencyUtils.to_decimal(item.discount_amount)
        for item in items
    ]
    settled = CurrencyUtils.to_decimal(invoice.paid_amount) + CurrencyUtils.to_decimal(invoice.discount_amount)
    return [
        (item, share + CurrencyUtils.to_decimal(item.discount_amount))
        for item, share in zip(items, CurrencyUtils.allocate_fifo(settled, nets))
    ]


class InvoiceService(BaseService[FeeInvoice, FeeInvoiceRepository]):
    resource_name = "Invoice"

    def __init__(self, db_session: Session):
        super().__init__(FeeInvoiceRepository(db_session), db_session)
        self.payment_repository = PaymentRepository(db_session)
        self.student_repository = StudentRepository(db_session)
        self.year_repository = AcademicYearRepository(db_session)
        self.fee_structure_repository = FeeStructureRepository(db_session)
        self.student_fee_repository = StudentFeeStructureRepository(db_session)
        self.route_price_repository = RoutePriceRepository(db_session)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_all(
        self,
        school_id: int,
        student_id: Optional[int] = None,
        academic_year_id: Optional[int] = None,
        status: Optional[InvoiceStatus] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ServiceResult[List[FeeInvoice]]:
        try:
            params = normalize_pagination(page, limit)
            rows, total = self.repository.search(
                school_id,
                student_id=student_id,
                academic_year_id=academic_year_id,
                status=status,
                offset=params.offset,
                limit=params.limit,
            )
            return ServiceResult.success(rows, metadata=build_page_meta(total, params))
        except Exception as e:
            return self._handle_exception(e, "list invoices")

    def find_one(self, school_id: int, invoice_id: int) -> ServiceResult[FeeInvoice]:
        invoice = self.repository.get_with_items(school_id, invoice_id)
        if invoice is None:
            return ServiceResult.not_found("Invoice", invoice_id)
        return ServiceResult.success(invoice)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_invoice(self, school_id: int, data: Dict[str, Any]) -> ServiceResult[FeeInvoice]:
        try:
            with self.transaction():
                invoice = self.build_invoice(school_id, data)
            self._log_operation("created invoice", invoice.id, {"invoice_number": invoice.invoice_number})
            return ServiceResult.success(invoice, message="Invoice created successfully")
        except Exception as e:
            return self._handle_exception(e, "create invoice")

    def build_invoice(self, school_id: int, data: Dict[str, Any]) -> FeeInvoice:
        """
        Validate and add a draft invoice with its items to the session.

        Does not commit; callers own the transaction.
        """
        items = data.pop("items", None) or []
        student = self.student_repository.find_in_school(school_id, data["student_id"])
        if student is None:
            raise BadRequestError("Student not found in this school", details={"student_id": data["student_id"]})
        if self.year_repository.find_in_school(school_id, data["academic_year_id"]) is None:
            raise BadRequestError(
                "Academic year not found in this school",
                details={"academic_year_id": data["academic_year_id"]},
            )

        data.setdefault("discount_amount", ZERO)
        line_items = [self._build_item(school_id, item) for item in items]
        invoice = FeeInvoice(
            school_id=school_id,
            invoice_number=self._next_invoice_number(school_id, data["issue_date"]),
            status=InvoiceStatus.DRAFT,
            total_amount=ZERO,
            paid_amount=ZERO,
            balance_amount=ZERO,
            **data,
        )
        invoice.items = line_items
        self.repository.create(invoice)
        self.recalculate(invoice)
        return invoice

    def update_invoice(self, school_id: int, invoice_id: int, data: Dict[str, Any]) -> ServiceResult[FeeInvoice]:
        """Edit a draft invoice, or cancel one that has no payments."""
        try:
            invoice = self.repository.get_with_items(school_id, invoice_id)
            if invoice is None:
                return ServiceResult.not_found("Invoice", invoice_id)

            status = data.pop("status", None)
            if status is not None and status != InvoiceStatus.CANCELLED:
                return ServiceResult.validation_failure(
                    "Only cancellation can be set directly; other statuses are derived", field="status"
                )
            if status is None and invoice.status != InvoiceStatus.DRAFT:
                return ServiceResult.invalid_state("Only draft invoices can be edited")
            if status == InvoiceStatus.CANCELLED and invoice.payments:
                return ServiceResult.invalid_state("Cannot cancel an invoice that has payments")

            changes = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
            issue_date = changes.get("issue_date", invoice.issue_date)
            due_date = changes.get("due_date", invoice.due_date)
            if due_date < issue_date:
                return ServiceResult.validation_failure("due_date cannot be before issue_date", field="due_date")

            with self.transaction():
                self.repository.update(invoice, changes)
                if status is not None:
                    invoice.status = status
                self.recalculate(invoice)

            self._log_operation("updated invoice", invoice_id, {"fields": sorted(changes), "status": status})
            return ServiceResult.success(invoice, message="Invoice updated successfully")
        except Exception as e:
            return self._handle_exception(e, "update invoice", invoice_id)

    def remove(self, school_id: int, invoice_id: int) -> ServiceResult[bool]:
        try:
            invoice = self.repository.get_with_items(school_id, invoice_id)
            if invoice is None:
                return ServiceResult.not_found("Invoice", invoice_id)
            if invoice.payments:
                return ServiceResult.invalid_state("Cannot delete an invoice that has payments")

            rows = self._billed_rows(invoice)
            with self.transaction():
                self.repository.delete(invoice)
                for row in rows:
                    self.refresh_fee_row(row)

            self._log_operation("deleted invoice", invoice_id)
            return ServiceResult.success(True, message="Invoice deleted successfully")
        except Exception as e:
            return self._handle_exception(e, "delete invoice", invoice_id)

    def finalize(self, school_id: int, invoice_id: int) -> ServiceResult[FeeInvoice]:
        try:
            invoice = self.repository.get_with_items(school_id, invoice_id)
            if invoice is None:
                return ServiceResult.not_found("Invoice", invoice_id)

            with self.transaction():
                self.issue(invoice)

            self._log_operation("finalized invoice", invoice_id, {"total_amount": str(invoice.total_amount)})
            return ServiceResult.success(invoice, message="Invoice finalized successfully")
        except Exception as e:
            return self._handle_exception(e, "finalize invoice", invoice_id)

    def issue(self, invoice: FeeInvoice) -> FeeInvoice:
        """Move a draft invoice to issued. Does not commit."""
        if invoice.status != InvoiceStatus.DRAFT:
            raise BusinessRuleError(
                f"Only draft invoices can be finalized (current status: {invoice.status.value})"
            )
        if not invoice.items:
            raise BusinessRuleError("Cannot finalize an invoice without items")
        invoice.status = InvoiceStatus.ISSUED
        self.recalculate(invoice)
        if invoice.balance_amount < ZERO:
            raise BusinessRuleError("Invoice discount cannot exceed the invoice total")
        return invoice

    def add_item(self, school_id: int, invoice_id: int, data: Dict[str, Any]) -> ServiceResult[FeeInvoice]:
        try:
            invoice = self.repository.get_with_items(school_id, invoice_id)
            if invoice is None:
                return ServiceResult.not_found("Invoice", invoice_id)
            if invoice.status != InvoiceStatus.DRAFT:
                return ServiceResult.invalid_state("Items can only be added to draft invoices")

            with self.transaction():
                invoice.items.append(self._build_item(school_id, data))
                self.repository.flush()
                self.recalculate(invoice)

            self._log_operation("added invoice item", invoice_id, {"source_type": data.get("source_type")})
            return ServiceResult.success(invoice, message="Invoice item added successfully")
        except Exception as e:
            return self._handle_exception(e, "add invoice item", invoice_id)

    def generate_from_fee_structures(self, school_id: int, data: Dict[str, Any]) -> ServiceResult[FeeInvoice]:
        """
        Draft invoice billing a student's pending fee rows, one FEE item per row.

        Paid rows and rows already billed on an invoice that is not
        cancelled are left out.
        """
        try:
            student_id = data["student_id"]
            academic_year_id = data["academic_year_id"]
            if self.student_repository.find_in_school(school_id, student_id) is None:
                return ServiceResult.not_found("Student", student_id)

            billed = self.billed_fee_row_ids(student_id)
            rows = [
                row
                for row in self.student_fee_repository.find_for_student(student_id, academic_year_id)
                if row.status != StudentFeeStatus.PAID and row.id not in billed
            ]
            wanted = data.get("student_fee_structure_ids")
            if wanted:
                rows = [row for row in rows if row.id in set(wanted)]
            if not rows:
                return ServiceResult.validation_failure("No pending fees found to invoice")

            issue_date = data.get("issue_date") or date.today()
            due_date = data.get("due_date") or max(row.due_date for row in rows)
            items = [
                {
                    "source_type": InvoiceSourceType.FEE,
                    "source_id": row.fee_structure_id,
                    "source_metadata": {
                        "student_fee_structure_id": row.id,
                        "installment_number": row.installment_number,
                    },
                    "description": self._fee_row_description(row),
                    "amount": row.amount,
                    "due_date": row.due_date,
                }
                for row in rows
            ]

            with self.transaction():
                invoice = self.build_invoice(
                    school_id,
                    {
                        "student_id": student_id,
                        "academic_year_id": academic_year_id,
                        "issue_date": issue_date,
                        "due_date": max(due_date, issue_date),
                        "type": InvoiceType.ONE_TIME,
                        "notes": data.get("notes"),
                        "items": items,
                    },
                )

            self._log_operation("generated invoice from fee structures", invoice.id, {"rows": len(rows)})
            return ServiceResult.success(invoice, message="Invoice generated successfully")
        except Exception as e:
            return self._handle_exception(e, "generate invoice from fee structures")

    # ------------------------------------------------------------------
    # Derived amounts
    # ------------------------------------------------------------------

    def recalculate(self, invoice: FeeInvoice, today: Optional[date] = None) -> FeeInvoice:
        """
        Refresh total, paid, balance and status from items and payments,
        then the status of every fee row the invoice bills.
        """
        total = sum(
            (CurrencyUtils.to_decimal(item.amount) - CurrencyUtils.to_decimal(item.discount_amount)
             for item in invoice.items),
            ZERO,
        )
        paid = self.payment_repository.total_for_invoice(invoice.id) if invoice.id else ZERO
        invoice.total_amount = CurrencyUtils.to_decimal(total)
        invoice.paid_amount = CurrencyUtils.to_decimal(paid)
        invoice.balance_amount = (
            invoice.total_amount - invoice.paid_amount - CurrencyUtils.to_decimal(invoice.discount_amount)
        )
        invoice.status = derive_invoice_status(invoice, today)
        self.repository.flush()

        for row in self._billed_rows(invoice):
            self.refresh_fee_row(row, today)
        return invoice

    def billed_fee_row_ids(self, student_id: int) -> Set[int]:
        """Fee rows of a student billed on an invoice that is not cancelled."""
        return {billed_fee_row_id(item) for item in self.repository.find_fee_row_items(student_id)}

    def invoiced_settlement(self, row: StudentFeeStructure) -> Decimal:
        """Amount of a fee row settled through issued invoices."""
        settled = ZERO
        invoices = {
            item.invoice.id: item.invoice
            for item in self.repository.find_fee_row_items(row.student_id)
            if billed_fee_row_id(item) == row.id
        }
        for invoice in invoices.values():
            if invoice.status in UNSETTLED_INVOICE_STATUSES:
                continue
            for item, amount in item_settlements(invoice):
                if billed_fee_row_id(item) == row.id:
                    settled += amount
        return settled

    def refresh_fee_row(self, row: StudentFeeStructure, today: Optional[date] = None) -> StudentFeeStructure:
        """Fee row status from its direct payments plus what its invoices settle."""
        paid = self.payment_repository.total_for_fee_row(row.id) + self.invoiced_settlement(row)
        row.status = derive_fee_row_status(row, paid, today)
        self.repository.flush()
        return row

    def _billed_rows(self, invoice: FeeInvoice) -> List[StudentFeeStructure]:
        row_ids = [
            billed_fee_row_id(item)
            for item in invoice.items
            if item.source_type == InvoiceSourceType.FEE and billed_fee_row_id(item) is not None
        ]
        rows = [self.student_fee_repository.find_by_id(row_id) for row_id in dict.fromkeys(row_ids)]
        return [row for row in rows if row is not None]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _next_invoice_number(self, school_id: int, issue_date: date) -> str:
        prefix = f"{settings.INVOICE_PREFIX}-{issue_date.year}-"
        return self.repository.next_invoice_number(school_id, prefix)

    def _build_item(self, school_id: int, data: Dict[str, Any]) -> FeeInvoiceItem:
        """Validate one line and fill amount and description from its source."""
        source_type = data.get("source_type")
        source_id = data.get("source_id")
        if (source_type is None) != (source_id is None):
            raise BadRequestError("source_type and source_id must be provided together")

        amount = data.get("amount")
        description = data.get("description")
        metadata = dict(data.get("source_metadata") or {})

        if source_type == InvoiceSourceType.FEE:
            fee_structure = self.fee_structure_repository.find_in_school(school_id, source_id)
            if fee_structure is None:
                raise BadRequestError("Fee structure not found for invoice item", details={"source_id": source_id})
            amount = fee_structure.amount if amount is None else amount
            description = description or fee_structure.name
            metadata.setdefault("fee_structure_name", fee_structure.name)
        elif source_type == InvoiceSourceType.TRANSPORT:
            route_price = self.route_price_repository.find_in_school(school_id, source_id)
            if route_price is None:
                raise BadRequestError("Route price not found for invoice item", details={"source_id": source_id})
            amount = route_price.amount if amount is None else amount
            description = description or TRANSPORT_DESCRIPTION
            metadata.setdefault("route_id", route_price.route_id)
            metadata.setdefault("class_id", route_price.class_id)
            metadata.setdefault("category_head_id", route_price.category_head_id)

        if amount is None:
            raise BadRequestError("Invoice item amount is required")
        if not description:
            raise BadRequestError("Invoice item description is required")

        amount = CurrencyUtils.to_decimal(amount)
        discount = CurrencyUtils.to_decimal(data.get("discount_amount"))
        if discount > amount:
            raise BadRequestError("Item discount cannot exceed the item amount")

        return FeeInvoiceItem(
            source_type=source_type,
            source_id=source_id,
            source_metadata=metadata or None,
            description=description,
            amount=amount,
            discount_amount=discount,
            due_date=data.get("due_date"),
            notes=data.get("notes"),
        )

    @staticmethod
    def _fee_row_description(row) -> str:
        name = row.fee_structure.name if row.fee_structure else f"Fee #{row.fee_structure_id}"
        if row.installment_number and row.installment_count and row.installment_count > 1:
            return f"{name} (Installment {row.installment_number}/{row.installment_count})"
        return name
