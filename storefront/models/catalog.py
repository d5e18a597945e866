
from sqlalchemy import Column, Integer, String, Boolean, JSON, ForeignKey, Index
from storefront.database import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(String, nullable=True)
    price = Column(Integer, nullable=False)
    discount_price = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    image_urls = Column(JSON, default=list, nullable=False)

    __table_args__ = (
        Index("ix_products_store_active", "store_id", "is_active"),
    )

    @property
    def effective_price(self) -> int:
        if self.discount_price is not None and self.discount_price < self.price:
            return self.discount_price
        return self.price
