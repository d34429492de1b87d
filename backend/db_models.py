"""
SQLAlchemy ORM models for the Storefront order API.

Tables:
    users        — admins and customers
    products     — catalog entries with optional stock tracking
    orders       — customer orders; `status` holds a canonical OrderStatus token
    order_items  — line items with name/price snapshots taken at checkout
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, Index,
)
from sqlalchemy.orm import relationship

from database import Base
from domain.enums import OrderStatus, UserRole


class User(Base):
    """Accounts for admins and customers."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(191), unique=True, nullable=False, index=True)
    name = Column(String(191), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.CUSTOMER.value)  # "admin" | "customer"
    created_at = Column(DateTime, default=datetime.utcnow)

    orders = relationship(
        "Order", back_populates="user", lazy="select", foreign_keys="Order.user_id"
    )


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False, default=0.0)
    stock_quantity = Column(Integer, nullable=True)  # null => unlimited
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_name = Column(String(191), nullable=True)
    customer_email = Column(String(191), nullable=True)
    # pending | processing | shipped | delivered | cancelled
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    total_price = Column(Float, nullable=False, default=0.0)
    tracking_number = Column(String(191), nullable=True)
    admin_note = Column(Text, nullable=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    cancel_reason = Column(Text, nullable=True)
    status_changed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="orders", foreign_keys=[user_id])
    items = relationship(
        "OrderItem", back_populates="order", lazy="selectin", order_by="OrderItem.id"
    )

    __table_args__ = (
        # Customer order history: filter by user_id, order by created_at DESC
        Index("ix_orders_user_created", "user_id", "created_at"),
        # Admin listing and statistics: filter/group by status
        Index("ix_orders_status_created", "status", "created_at"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)  # snapshot at checkout
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=False, default=0.0)  # snapshot at checkout

    order = relationship("Order", back_populates="items")
