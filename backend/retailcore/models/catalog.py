from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data, as far as the sales engine needs it.

    The product directory itself is maintained elsewhere; the engine only
    reads the selling rate (for line values), the display name (denormalized
    onto transactions and aggregates) and the product code, which is the key
    used by daily product rows and monthly ledgers.

    Money is stored in cents per kilogram.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_code", "is_active", "product_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Article number; canonical key for aggregates and ledgers
    product_code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    pos_description = db.Column(db.String(255), nullable=True)

    selling_rate_per_kg_cents = db.Column(db.Integer, nullable=False)
    purchase_price_per_kg_cents = db.Column(db.Integer, nullable=True)

    hsn_code = db.Column(db.String(32), nullable=True)
    tax_percentage = db.Column(db.Float, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product code={self.product_code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_code": self.product_code,
            "name": self.name,
            "pos_description": self.pos_description,
            "selling_rate_per_kg_cents": self.selling_rate_per_kg_cents,
            "purchase_price_per_kg_cents": self.purchase_price_per_kg_cents,
            "hsn_code": self.hsn_code,
            "tax_percentage": self.tax_percentage,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Staff(db.Model):
    """Sales staff directory entry; only the display name is used by aggregates."""
    __tablename__ = "staff"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Staff staff_id={self.staff_id!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
