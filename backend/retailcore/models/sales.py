from __future__ import annotations

from enum import Enum

from ..extensions import db
from ..time_utils import to_utc_z


class TransactionStatus(str, Enum):
    """
    Lifecycle status of a sale transaction.

    Aggregate contribution per status:
    - SOLD: counted in the daily, staff and product aggregates.
    - RETURNED_PRE_BILLING: never counted. A SOLD transaction that is
      returned has its contribution reversed at the moment the status
      changes, and a returned transaction is deleted without any reversal.

    The only permitted transition is SOLD -> RETURNED_PRE_BILLING, and it
    happens in exactly one place (sales_service.mark_returned).
    """
    SOLD = "SOLD"
    RETURNED_PRE_BILLING = "RETURNED_PRE_BILLING"

    @property
    def counts_in_aggregates(self) -> bool:
        return self is TransactionStatus.SOLD

    def can_transition_to(self, new_status: "TransactionStatus") -> bool:
        return self is TransactionStatus.SOLD and new_status is TransactionStatus.RETURNED_PRE_BILLING


# Composite index that backs the paginated day scan of the reconciler.
# Operational dependency: the reconciler refuses to run without it.
SALE_TX_RANGE_INDEX = "ix_sale_tx_status_date_id"


class SaleTransaction(db.Model):
    """
    One sale (or pre-billing return) event of a weighed item.

    IMMUTABLE: apart from the single status transition and deletion by a
    manager, a transaction never changes after creation.

    sale_date is the business-calendar day derived from occurred_at at
    creation time and is never recomputed, even if the business timezone
    setting changes later.

    line_value_cents = round_half_up(weight_grams * selling_rate_per_kg_cents / 1000)

    Imported or legacy rows may lack staff/product/value; the reconciler
    skips such rows and the deletion compensator refuses to reverse them.
    """
    __tablename__ = "sale_transactions"
    __table_args__ = (
        db.Index(SALE_TX_RANGE_INDEX, "status", "sale_date", "id"),
        db.Index("ix_sale_tx_staff_date", "staff_id", "sale_date"),
        db.Index("ix_sale_tx_product_date", "product_code", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_code = db.Column(db.String(64), nullable=True)
    barcode_scanned = db.Column(db.String(128), nullable=True)
    weight_grams = db.Column(db.Integer, nullable=True)
    line_value_cents = db.Column(db.Integer, nullable=True)
    staff_id = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(32), nullable=False, default=TransactionStatus.SOLD.value)

    # Business time of the sale (UTC-naive) and its business-local day
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sale_date = db.Column(db.String(10), nullable=False)

    # Product attributes denormalized at time of sale
    product_name = db.Column(db.String(255), nullable=True)
    selling_rate_per_kg_cents = db.Column(db.Integer, nullable=True)
    purchase_price_per_kg_cents = db.Column(db.Integer, nullable=True)

    status_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status_enum(self) -> TransactionStatus:
        return TransactionStatus(self.status)

    def __repr__(self) -> str:
        return f"<SaleTransaction id={self.id} product={self.product_code!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_code": self.product_code,
            "barcode_scanned": self.barcode_scanned,
            "weight_grams": self.weight_grams,
            "line_value_cents": self.line_value_cents,
            "staff_id": self.staff_id,
            "status": self.status,
            "occurred_at": to_utc_z(self.occurred_at),
            "sale_date": self.sale_date,
            "product_name": self.product_name,
            "selling_rate_per_kg_cents": self.selling_rate_per_kg_cents,
            "purchase_price_per_kg_cents": self.purchase_price_per_kg_cents,
            "status_updated_at": to_utc_z(self.status_updated_at) if self.status_updated_at else None,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
