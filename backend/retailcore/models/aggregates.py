from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

"""
Aggregate families (denormalized views over SOLD transactions)

- daily_sales_summaries: one row per business day, with an hourly map.
- daily_staff_sales: one row per business day, with a per-staff map.
- daily_product_sales: one row per (business day, product).

Keys are composite strings so point lookups never need a secondary index.
The two per-day rows hold whole maps and are updated read-modify-write
under optimistic locking (version_id). Product rows hold plain counters and
are updated with SQL increments, so they carry no version column.
"""


def product_day_key(sale_date: str, product_code: str) -> str:
    return f"{sale_date}_{product_code}"


class DailySalesSummary(db.Model):
    """
    Totals for one business day.

    INVARIANT: total_value_cents == sum(hourly_breakdown[h]["value_cents"])
    and total_count == sum(hourly_breakdown[h]["count"]).
    """
    __tablename__ = "daily_sales_summaries"

    date = db.Column(db.String(10), primary_key=True)
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)
    total_count = db.Column(db.Integer, nullable=False, default=0)
    # {"14": {"value_cents": 12000, "count": 3}, ...}; hours are zero-padded
    hourly_breakdown = db.Column(db.JSON, nullable=False, default=dict)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<DailySalesSummary date={self.date} total={self.total_value_cents} count={self.total_count}>"

    def to_dict(self) -> dict:
        hourly = self.hourly_breakdown or {}
        return {
            "date": self.date,
            "total_value_cents": self.total_value_cents or 0,
            "total_count": self.total_count or 0,
            "hourly_breakdown": {hour: dict(hourly[hour]) for hour in sorted(hourly)},
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class DailyStaffSales(db.Model):
    """Per-staff totals for one business day."""
    __tablename__ = "daily_staff_sales"

    date = db.Column(db.String(10), primary_key=True)
    # {"S1": {"name": "Asha", "total_value_cents": 12000, "total_count": 3}, ...}
    staff_stats = db.Column(db.JSON, nullable=False, default=dict)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<DailyStaffSales date={self.date} staff={len(self.staff_stats or {})}>"

    def to_dict(self) -> dict:
        stats = self.staff_stats or {}
        return {
            "date": self.date,
            "staff_stats": {staff_id: dict(stats[staff_id]) for staff_id in sorted(stats)},
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class DailyProductSales(db.Model):
    """Per-product totals for one business day (key: "<date>_<product_code>")."""
    __tablename__ = "daily_product_sales"
    __table_args__ = (
        db.Index("ix_daily_product_sales_date_product", "date", "product_code"),
        db.Index("ix_daily_product_sales_product_date", "product_code", "date"),
    )

    key = db.Column(db.String(96), primary_key=True)
    date = db.Column(db.String(10), nullable=False)
    product_code = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)

    total_weight_grams = db.Column(db.Integer, nullable=False, default=0)
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)
    total_count = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<DailyProductSales key={self.key} total={self.total_value_cents}>"

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "date": self.date,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "total_weight_grams": self.total_weight_grams or 0,
            "total_value_cents": self.total_value_cents or 0,
            "total_count": self.total_count or 0,
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
