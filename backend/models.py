from sqlalchemy import (
    Boolean,
    String,
    Text,
    DateTime,
    BigInteger,
    CheckConstraint,
    UniqueConstraint,
    text,
    ForeignKey,
    Float,
    Integer,
    JSON,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm import declarative_base
from typing import Optional, List
from datetime import datetime
import uuid

Base = declarative_base()

# JSONB on postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Role(Base):
    """
    Account roles. Rows are created lazily the first time a role is used.
    """
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    role_name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)  # "farmer", "buyer"

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    users: Mapped[List["User"]] = relationship("User", back_populates="role")


class User(Base):
    """
    Marketplace account. Farmers list products, buyers place orders.
    OAuth-created accounts have no password.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    role_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("roles.id", ondelete="SET NULL")
    )

    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    phone_num: Mapped[Optional[str]] = mapped_column(String(30))
    country: Mapped[Optional[str]] = mapped_column(String(100))
    address: Mapped[Optional[str]] = mapped_column(String(255))
    image_url: Mapped[Optional[str]] = mapped_column(String(500))

    # List of {id, title, address, default}
    ship_address: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    password: Mapped[Optional[str]] = mapped_column(String(255))
    google_id: Mapped[Optional[str]] = mapped_column(String(255))
    facebook_id: Mapped[Optional[str]] = mapped_column(String(255))
    expo_push_token: Mapped[Optional[str]] = mapped_column(String(255))

    vip: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_user: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    role: Mapped[Optional["Role"]] = relationship("Role", back_populates="users")
    products: Mapped[List["Product"]] = relationship(
        "Product",
        back_populates="user",
        cascade="all, delete-orphan"
    )
    notifications: Mapped[List["Notification"]] = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan"
    )


class Product(Base):
    """
    Products listed by farmers
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    product_name: Mapped[Optional[str]] = mapped_column(String(200))
    product_cat: Mapped[Optional[str]] = mapped_column(String(100))
    price_type: Mapped[Optional[str]] = mapped_column(String(50))  # e.g. "per kg"
    price: Mapped[Optional[float]] = mapped_column(Float)
    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    description: Mapped[Optional[str]] = mapped_column(Text)
    whole_sale: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="products")
    reviews: Mapped[List["BuyerReview"]] = relationship(
        "BuyerReview",
        back_populates="product",
        cascade="all, delete-orphan"
    )


class Order(Base):
    """
    Orders placed by buyers against a farmer's product.
    Status moves pending -> processing -> dispatched -> delivered,
    see routers/orders/state.py for the guarded transitions.
    """
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    prod_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("products.id", ondelete="SET NULL")
    )

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    ship_address: Mapped[str] = mapped_column(String(500), nullable=False)
    weight: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)  # "pending", "processing", "dispatched", "delivered"
    review: Mapped[Optional[dict]] = mapped_column(JSONType)  # {rating, comment} snapshot

    # Dispatch details
    dispatched: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    dispatch_details: Mapped[Optional[dict]] = mapped_column(JSONType)  # {dispatchedAt, method, imageUrl?}
    delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    buyer: Mapped["User"] = relationship("User", foreign_keys=[buyer_id])
    seller: Mapped["User"] = relationship("User", foreign_keys=[seller_id])
    product: Mapped[Optional["Product"]] = relationship("Product")
    transaction: Mapped[Optional["Transaction"]] = relationship(
        "Transaction",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan"
    )


class Transaction(Base):
    """
    Payment record for an order, created together with the order (1:1)
    """
    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)  # "pending", "completed", "rejected"
    tx_type: Mapped[str] = mapped_column(String(20), default="Payment", nullable=False)  # "Payment", "Refund"
    tx_method: Mapped[Optional[str]] = mapped_column(String(20))  # "MOBILE-MONEY", "ORANGE-MONEY", "VISA", "MASTERCARD"
    tx_details: Mapped[Optional[dict]] = mapped_column(JSONType)  # raw provider response
    currency: Mapped[Optional[str]] = mapped_column(String(10))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="transaction")


class BuyerReview(Base):
    """
    One review per delivered order
    """
    __tablename__ = "buyer_reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="rating_range_check"),
        UniqueConstraint("order_id", name="unique_review_per_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    prod_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False
    )

    comment: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-5 stars

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    user: Mapped["User"] = relationship("User")
    product: Mapped["Product"] = relationship("Product", back_populates="reviews")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="notifications")


class UserOTPCode(Base):
    """
    Kept for schema compatibility. OTP login is disabled; nothing writes here.
    """
    __tablename__ = "user_otp_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    otp: Mapped[str] = mapped_column(String(10), nullable=False)
    expired_at: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch millis

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
