from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


def ledger_key(product_code: str, month: str) -> str:
    return f"{product_code}_{month}"


def grams_to_kg(grams: int | None) -> float:
    return (grams or 0) / 1000


class MonthlyStockLedger(db.Model):
    """
    Stock accounting for one product in one calendar month.

    Quantities are stored in whole grams and exposed in kg.

    INVARIANTS:
    - closing stock = opening + restocked - sold, always derived from the
      three inputs (no stored closing column to drift out of sync).
    - opening stock is fixed when the row is created (carried forward from
      the previous month's closing stock, or 0) and only changes through an
      explicit manager correction.
    - restock entries are append-only; each has a unique timestamp-derived key.
    - total sold is replaced by a sales sync, never accumulated per sale.
    """
    __tablename__ = "monthly_stock_ledgers"
    __table_args__ = (
        db.Index("ix_monthly_ledgers_month_product", "month", "product_code"),
    )

    key = db.Column(db.String(96), primary_key=True)
    product_code = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)
    month = db.Column(db.String(7), nullable=False)
    year = db.Column(db.String(4), nullable=False)

    opening_stock_grams = db.Column(db.Integer, nullable=False, default=0)
    total_restocked_grams = db.Column(db.Integer, nullable=False, default=0)
    # {"2024-04-03T10:15:02.123456Z": {"date": "2024-04-03", "quantity_grams": 5000, "notes": ""}}
    restock_entries = db.Column(db.JSON, nullable=False, default=dict)
    total_sold_grams = db.Column(db.Integer, nullable=False, default=0)

    last_sales_sync_date = db.Column(db.String(10), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def closing_stock_grams(self) -> int:
        return (
            (self.opening_stock_grams or 0)
            + (self.total_restocked_grams or 0)
            - (self.total_sold_grams or 0)
        )

    def __repr__(self) -> str:
        return f"<MonthlyStockLedger key={self.key} closing_g={self.closing_stock_grams}>"

    def to_dict(self) -> dict:
        entries = self.restock_entries or {}
        return {
            "key": self.key,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "month": self.month,
            "year": self.year,
            "opening_stock_kg": grams_to_kg(self.opening_stock_grams),
            "total_restocked_kg": grams_to_kg(self.total_restocked_grams),
            "restock_entries": {
                entry_key: {
                    "date": entries[entry_key].get("date"),
                    "quantity_kg": grams_to_kg(entries[entry_key].get("quantity_grams")),
                    "notes": entries[entry_key].get("notes") or "",
                }
                for entry_key in sorted(entries)
            },
            "total_sold_kg": grams_to_kg(self.total_sold_grams),
            "closing_stock_kg": grams_to_kg(self.closing_stock_grams),
            "last_sales_sync_date": self.last_sales_sync_date,
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "version_id": self.version_id,
        }
