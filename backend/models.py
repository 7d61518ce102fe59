from sqlalchemy import (
    Boolean,
    String,
    Text,
    DateTime,
    CheckConstraint,
    UniqueConstraint,
    Index,
    JSON,
    Uuid,
    text,
    ForeignKey,
    Float,
    Integer
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship, declarative_base
from typing import Optional, List
from datetime import datetime, timezone
import uuid

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


USER_ROLES = ("vendor", "supplier")
NOTIFICATION_TYPES = ("order", "delivery", "promotion", "emergency")


class UserProfile(Base):
    """
    Marketplace identity shared by vendors and suppliers.
    Phone number is the login handle; users are never hard-deleted.
    """
    __tablename__ = "user_profiles"
    __table_args__ = (
        UniqueConstraint("phone", name="user_profiles_phone_key"),
        CheckConstraint("role IN ('vendor', 'supplier')", name="user_role_check"),
        CheckConstraint("latitude IS NULL OR (latitude >= -90 AND latitude <= 90)", name="user_latitude_range_check"),
        CheckConstraint("longitude IS NULL OR (longitude >= -180 AND longitude <= 180)", name="user_longitude_range_check"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    # Location Information
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    address: Mapped[Optional[str]] = mapped_column(Text)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Rating System
    rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utcnow,
        nullable=False
    )

    vendor_profile: Mapped[Optional["VendorProfile"]] = relationship(
        "VendorProfile",
        back_populates="user_profile",
        uselist=False,
        cascade="all, delete-orphan"
    )
    supplier_profile: Mapped[Optional["SupplierProfile"]] = relationship(
        "SupplierProfile",
        back_populates="user_profile",
        uselist=False,
        cascade="all, delete-orphan"
    )
    notifications: Mapped[List["Notification"]] = relationship(
        "Notification",
        back_populates="user_profile",
        cascade="all, delete-orphan"
    )


class SupplierProfile(Base):
    """
    Raw-material supplier. Location is read from the owning user profile.
    """
    __tablename__ = "supplier_profiles"
    __table_args__ = (
        CheckConstraint("delivery_radius_km >= 0", name="delivery_radius_non_negative_check"),
        CheckConstraint("min_order_amount >= 0", name="min_order_amount_non_negative_check"),
        Index("supplier_profiles_is_online_idx", "is_online"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    # Business Information
    business_name: Mapped[str] = mapped_column(String(200), nullable=False)
    business_type: Mapped[Optional[str]] = mapped_column(String(100))

    # Delivery Settings
    delivery_radius_km: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    min_order_amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    avg_delivery_time_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)

    # Availability, toggled by the supplier
    is_online: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utcnow,
        nullable=False
    )

    user_profile: Mapped["UserProfile"] = relationship("UserProfile", back_populates="supplier_profile")
    products: Mapped[List["Product"]] = relationship(
        "Product",
        back_populates="supplier_profile",
        cascade="all, delete-orphan"
    )
    orders: Mapped[List["Order"]] = relationship("Order", back_populates="supplier_profile")


class VendorProfile(Base):
    """
    Street-food stall operator buying raw materials
    """
    __tablename__ = "vendor_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    stall_name: Mapped[str] = mapped_column(String(200), nullable=False)
    food_type: Mapped[Optional[str]] = mapped_column(String(100))
    daily_budget: Mapped[Optional[float]] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utcnow,
        nullable=False
    )

    user_profile: Mapped["UserProfile"] = relationship("UserProfile", back_populates="vendor_profile")
    orders: Mapped[List["Order"]] = relationship("Order", back_populates="vendor_profile")


class Product(Base):
    """
    Products listed by suppliers
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price_per_unit > 0", name="price_positive_check"),
        CheckConstraint("minimum_order_quantity > 0", name="minimum_order_quantity_positive_check"),
        CheckConstraint("stock_quantity >= 0", name="stock_non_negative_check"),
        Index("products_category_idx", "category"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("supplier_profiles.id", ondelete="CASCADE"),
        nullable=False
    )

    # Basic Product Information
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)  # kg, piece, liter, etc.
    price_per_unit: Mapped[float] = mapped_column(Float, nullable=False)

    # Inventory
    minimum_order_quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Quality
    quality_grade: Mapped[Optional[str]] = mapped_column(String(20))
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(True))
    image_url: Mapped[Optional[str]] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utcnow,
        nullable=False
    )

    supplier_profile: Mapped["SupplierProfile"] = relationship(
        "SupplierProfile",
        back_populates="products"
    )


class Order(Base):
    """
    Orders placed by vendors to suppliers.
    Line items are a denormalized JSON snapshot taken at order time.
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("order_number", name="orders_order_number_key"),
        CheckConstraint("total_amount > 0", name="total_amount_positive_check"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'preparing', 'out_for_delivery', 'delivered', 'cancelled')",
            name="order_status_check",
        ),
        Index("orders_emergency_status_idx", "is_emergency", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Order participants
    vendor_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("vendor_profiles.id", ondelete="RESTRICT"),
        nullable=False
    )
    supplier_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("supplier_profiles.id", ondelete="RESTRICT"),
        nullable=False
    )

    order_number: Mapped[str] = mapped_column(String(40), nullable=False)

    # [{product_id, product_name, unit, quantity, price_per_unit, line_total}]
    items: Mapped[list] = mapped_column(JSONType, nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[str] = mapped_column(String(30), default="pending", nullable=False)
    is_emergency: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Delivery details
    delivery_address: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_latitude: Mapped[Optional[float]] = mapped_column(Float)
    delivery_longitude: Mapped[Optional[float]] = mapped_column(Float)
    estimated_delivery_time: Mapped[Optional[datetime]] = mapped_column(DateTime(True))
    actual_delivery_time: Mapped[Optional[datetime]] = mapped_column(DateTime(True))

    # Notes
    voice_notes: Mapped[Optional[list]] = mapped_column(JSONType)  # Array of voice note URLs
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    # Relationships
    vendor_profile: Mapped["VendorProfile"] = relationship("VendorProfile", back_populates="orders")
    supplier_profile: Mapped["SupplierProfile"] = relationship("SupplierProfile", back_populates="orders")
    reviews: Mapped[List["Review"]] = relationship("Review", back_populates="order")


class Review(Base):
    """
    Review left by one party of a delivered order for the other party
    """
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("order_id", "reviewer_user_id", name="unique_review_per_order_reviewer"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="rating_range_check"),
        CheckConstraint("quality_rating IS NULL OR (quality_rating >= 1 AND quality_rating <= 5)", name="quality_rating_range_check"),
        CheckConstraint("delivery_rating IS NULL OR (delivery_rating >= 1 AND delivery_rating <= 5)", name="delivery_rating_range_check"),
        CheckConstraint("reviewer_user_id != reviewed_user_id", name="no_self_review_check"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False
    )

    # Reviewer (who is giving the review)
    reviewer_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False
    )

    # Reviewed (who is receiving the review)
    reviewed_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False
    )

    # Review Content
    rating: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-5 stars
    comment: Mapped[Optional[str]] = mapped_column(Text)
    quality_rating: Mapped[Optional[int]] = mapped_column(Integer)
    delivery_rating: Mapped[Optional[int]] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="reviews")
    reviewer_user_profile: Mapped["UserProfile"] = relationship(
        "UserProfile",
        foreign_keys=[reviewer_user_id]
    )
    reviewed_user_profile: Mapped["UserProfile"] = relationship(
        "UserProfile",
        foreign_keys=[reviewed_user_id]
    )


class Notification(Base):
    """
    In-app notification addressed to one user
    """
    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint(
            "type IN ('order', 'delivery', 'promotion', 'emergency')",
            name="notification_type_check",
        ),
        Index("notifications_user_profile_id_idx", "user_profile_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    data: Mapped[Optional[dict]] = mapped_column(JSONType)  # Additional notification payload

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    user_profile: Mapped["UserProfile"] = relationship("UserProfile", back_populates="notifications")
