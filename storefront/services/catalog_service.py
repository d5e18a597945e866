
from collections import OrderedDict
from sqlalchemy.orm import Session
from typing import Dict, List, Optional, Sequence

from storefront.core.exceptions import AppException, ErrorCode
from storefront.models.catalog import Category, Product
from storefront.schemas.cart import CartItem, CartLine
from storefront.schemas.catalog import CategoryCreate, ProductCreate, ProductUpdate


class CatalogService:
    """Products and categories of a store, and cart resolution against them"""

    @staticmethod
    def create_category(db: Session, store_id: int, data: CategoryCreate) -> Category:
        category = Category(store_id=store_id, **data.model_dump())
        db.add(category)
        db.commit()
        db.refresh(category)
        return category

    @staticmethod
    def get_categories(db: Session, store_id: int) -> List[Category]:
        return db.query(Category).filter(Category.store_id == store_id).order_by(Category.sort_order, Category.id).all()

    @staticmethod
    def create_product(db: Session, store_id: int, data: ProductCreate) -> Product:
        CatalogService._ensure_category(db, store_id, data.category_id)
        product = Product(store_id=store_id, **data.model_dump())
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def get_product(db: Session, store_id: int, product_id: int) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id, Product.store_id == store_id).first()

    @staticmethod
    def get_products(db: Session, store_id: int) -> List[Product]:
        return db.query(Product).filter(Product.store_id == store_id).order_by(Product.id).all()

    @staticmethod
    def update_product(db: Session, store_id: int, product_id: int, data: ProductUpdate) -> Optional[Product]:
        product = CatalogService.get_product(db, store_id, product_id)
        if not product:
            return None
        changes = data.model_dump(exclude_unset=True)
        if "category_id" in changes:
            CatalogService._ensure_category(db, store_id, changes["category_id"])
        for field, value in changes.items():
            setattr(product, field, value)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def resolve_cart(db: Session, store_id: int, items: Sequence[CartItem]) -> List[CartLine]:
        """Price cart items from the catalog; repeated products are merged."""
        quantities: Dict[int, int] = OrderedDict()
        for item in items:
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
        if not quantities:
            return []

        products = {
            p.id: p
            for p in db.query(Product).filter(
                Product.store_id == store_id,
                Product.id.in_(list(quantities)),
                Product.is_active == True,
            )
        }
        missing = [pid for pid in quantities if pid not in products]
        if missing:
            raise AppException(
                400,
                "Some products are unavailable",
                ErrorCode.PRODUCT_NOT_FOUND,
                details={"product_ids": missing},
            )

        lines = []
        for product_id, quantity in quantities.items():
            product = products[product_id]
            lines.append(CartLine(
                product_id=product.id,
                name=product.name,
                quantity=quantity,
                unit_price=product.effective_price,
                category_id=product.category_id,
                image_url=(product.image_urls or [None])[0],
            ))
        return lines

    @staticmethod
    def _ensure_category(db: Session, store_id: int, category_id: Optional[int]) -> None:
        if category_id is None:
            return
        exists = db.query(Category.id).filter(Category.id == category_id, Category.store_id == store_id).first()
        if not exists:
            raise AppException(400, "Category not found", ErrorCode.CATEGORY_NOT_FOUND)
