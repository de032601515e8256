from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, Numeric, Integer, DateTime, ForeignKey, Uuid, CheckConstraint, Index, text
from datetime import datetime, timezone
from typing import Optional, List
import uuid
from productservice.db.session import Base


def now_utc() -> datetime: return datetime.now(timezone.utc)


class Category(Base):
    __tablename__ = 'categories'
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
    products: Mapped[List['Product']] = relationship(back_populates='category')


class Product(Base):
    __tablename__ = 'products'
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    search_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    category_id: Mapped[uuid.UUID] = mapped_column(ForeignKey('categories.id'), nullable=False, index=True)
    average_rating: Mapped[float] = mapped_column(Numeric(3, 2, asdecimal=False), nullable=False, default=0)
    total_ratings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    category: Mapped[Optional[Category]] = relationship(back_populates='products', lazy='joined')


class ProductRelation(Base):
    __tablename__ = 'product_related'
    __table_args__ = (CheckConstraint("relation_type IN ('related', 'similar')", name='ck_product_related_type'),)
    product_id: Mapped[uuid.UUID] = mapped_column(ForeignKey('products.id', ondelete='CASCADE'), primary_key=True)
    related_id: Mapped[uuid.UUID] = mapped_column(ForeignKey('products.id', ondelete='CASCADE'), primary_key=True)
    relation_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)


class Rating(Base):
    __tablename__ = 'ratings'
    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='ck_ratings_range'),
        # one live rating per user and product; soft-deleted rows do not count
        Index('uq_ratings_user_product_active', 'user_id', 'product_id', unique=True,
              postgresql_where=text('deleted_at IS NULL'), sqlite_where=text('deleted_at IS NULL')),
    )
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(ForeignKey('products.id'), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    product: Mapped[Product] = relationship()
