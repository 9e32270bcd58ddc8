from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.models.invoice import Invoice, InvoiceItem, InvoiceStatus


class InvoiceRepository:
    """Invoices and their items.

    Writes only flush; the calling service owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _generate_invoice_number(self) -> str:
        """Generate a unique invoice number."""
        today = datetime.now().strftime("%Y%m%d")
        prefix = f"INV-{today}-"

        # Get the highest invoice number for today
        result = (
            self.db.query(Invoice.invoice_number)
            .filter(Invoice.invoice_number.like(f"{prefix}%"))
            .order_by(Invoice.invoice_number.desc())
            .first()
        )

        if result:
            # Extract number from INV-YYYYMMDD-XXXX format
            try:
                last_num = int(result[0].split("-")[-1])
                new_num = last_num + 1
            except (ValueError, IndexError):
                new_num = 1
        else:
            new_num = 1

        return f"{prefix}{new_num:04d}"

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        status: InvoiceStatus | None = None,
        customer_id: str | None = None,
        quote_id: str | None = None,
        agent_id: str | None = None,
    ) -> list[Invoice]:
        query = self.db.query(Invoice)

        if status:
            query = query.filter(Invoice.status == status.value)
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)
        if quote_id:
            query = query.filter(Invoice.quote_id == quote_id)
        if agent_id:
            query = query.filter(Invoice.agent_id == agent_id)

        return query.order_by(Invoice.created_at.desc()).offset(skip).limit(limit).all()

    def snapshot(self) -> list[Invoice]:
        """Every invoice, for read-side folds."""
        return self.db.query(Invoice).order_by(Invoice.issue_date.asc()).all()

    def get_unsettled_due_before(self, day: date) -> list[Invoice]:
        return (
            self.db.query(Invoice)
            .filter(
                Invoice.due_date < day,
                Invoice.status.notin_([InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value]),
            )
            .all()
        )

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def get_for_update(self, invoice_id: UUID) -> Invoice | None:
        """Load an invoice with a row lock (``SELECT ... FOR UPDATE``)."""
        return (
            self.db.query(Invoice)
            .filter(Invoice.id == invoice_id)
            .with_for_update()
            .first()
        )

    def get_by_quote_id(self, quote_id: str) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.quote_id == quote_id).first()

    def create(self, **fields: Any) -> Invoice:
        invoice = Invoice(invoice_number=self._generate_invoice_number(), **fields)
        self.db.add(invoice)
        self.db.flush()
        return invoice

    def add_item(self, invoice_id: UUID, position: int, **fields: Any) -> InvoiceItem:
        item = InvoiceItem(invoice_id=invoice_id, position=position, **fields)
        self.db.add(item)
        self.db.flush()
        return item

    def get_items(self, invoice_id: UUID) -> list[InvoiceItem]:
        return (
            self.db.query(InvoiceItem)
            .filter(InvoiceItem.invoice_id == invoice_id)
            .order_by(InvoiceItem.position.asc())
            .all()
        )

    def get_item(self, item_id: UUID) -> InvoiceItem | None:
        return self.db.query(InvoiceItem).filter(InvoiceItem.id == item_id).first()

    def get_item_by_quote_item_id(self, quote_item_id: str) -> InvoiceItem | None:
        return (
            self.db.query(InvoiceItem)
            .filter(InvoiceItem.quote_item_id == quote_item_id)
            .order_by(InvoiceItem.created_at.desc())
            .first()
        )

    def save(self, invoice: Invoice) -> Invoice:
        self.db.add(invoice)
        self.db.flush()
        return invoice
