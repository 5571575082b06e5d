from __future__ import annotations

from ..extensions import db
from mobilepos.time_utils import to_utc_z


CATEGORY_MOBILE_PHONES = "Mobile Phones"
CATEGORY_TABLETS = "Tablets"

PRODUCT_CATEGORIES = (
    CATEGORY_MOBILE_PHONES,
    CATEGORY_TABLETS,
    "Chargers",
    "Earphones",
    "Cables",
    "Power Banks",
    "Screen Guards",
    "Back Covers",
    "Accessories",
    "Smart Watches",
    "Bluetooth Speakers",
    "Memory Cards",
    "Wireless Earbuds",
    "Car Accessories",
    "Others",
)

# Categories whose units carry serials by default
IMEI_TRACKED_CATEGORIES = (CATEGORY_MOBILE_PHONES, CATEGORY_TABLETS)

SIM_NONE = "None"
SIM_SINGLE = "Single SIM"
SIM_DUAL = "Dual SIM"
SIM_TYPES = (SIM_NONE, SIM_SINGLE, SIM_DUAL)


class Product(db.Model):
    """
    Catalog entry with per-unit serial tracking.

    When track_imei is set, every physical unit on hand has its serial(s)
    in product_imeis; a Dual SIM handset consumes two serial slots.

    stock_quantity is only ever decremented through a conditional UPDATE
    (see inventory_service.consume_stock) so concurrent invoices cannot
    oversell.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        db.Index("ix_products_brand_name", "brand", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(128), nullable=False)
    category = db.Column(db.String(64), nullable=False, default=CATEGORY_MOBILE_PHONES)

    # Whole currency units
    purchase_price = db.Column(db.Integer, nullable=False, default=0)
    selling_price = db.Column(db.Integer, nullable=False)
    gst_percent = db.Column(db.Numeric(5, 2), nullable=False, default=18)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=2)

    track_imei = db.Column(db.Boolean, nullable=False, default=True)
    sim_type = db.Column(db.String(16), nullable=False, default=SIM_NONE)

    warranty_period = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    imeis = db.relationship(
        "ProductImei",
        backref="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductImei.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    @property
    def slots_per_unit(self) -> int:
        return 2 if self.sim_type == SIM_DUAL else 1

    @property
    def imei_set(self) -> set[str]:
        return {row.imei for row in self.imeis}

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.low_stock_threshold or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "purchase_price": self.purchase_price,
            "selling_price": self.selling_price,
            "gst_percent": float(self.gst_percent) if self.gst_percent is not None else None,
            "stock_quantity": self.stock_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "track_imei": self.track_imei,
            "sim_type": self.sim_type,
            "imei": [row.imei for row in self.imeis],
            "warranty_period": self.warranty_period,
            "description": self.description,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductImei(db.Model):
    """Serial of a unit currently on hand. Deleted when the unit is sold."""
    __tablename__ = "product_imeis"
    __table_args__ = (
        db.UniqueConstraint("imei", name="uq_product_imeis_imei"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    imei = db.Column(db.String(32), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


OFFER_PRODUCT = "Product"
OFFER_CATEGORY = "Category"
OFFER_ALL = "All"
OFFER_TYPES = (OFFER_PRODUCT, OFFER_CATEGORY, OFFER_ALL)
OFFER_TARGET_ALL = "ALL"

DISCOUNT_PERCENTAGE = "Percentage"
DISCOUNT_FIXED = "Fixed"
DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)


class Offer(db.Model):
    """
    Promotional pricing rule.

    target_id holds a product id (as text), a category name, or "ALL".
    Read-only to invoicing.
    """
    __tablename__ = "offers"
    __table_args__ = (
        db.Index("ix_offers_scope", "offer_type", "target_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    offer_type = db.Column(db.String(16), nullable=False, default=OFFER_PRODUCT)
    target_id = db.Column(db.String(64), nullable=False)

    discount_type = db.Column(db.String(16), nullable=False, default=DISCOUNT_PERCENTAGE)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False)  # percent or whole units
    min_quantity = db.Column(db.Integer, nullable=False, default=1)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "offer_type": self.offer_type,
            "target_id": self.target_id,
            "discount_type": self.discount_type,
            "discount_value": float(self.discount_value) if self.discount_value is not None else None,
            "min_quantity": self.min_quantity,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
