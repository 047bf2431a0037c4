"""Product persistence gateway."""

import logging
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.exceptions import PersistenceError
from src.models.product import Product

logger = logging.getLogger(__name__)


def escape_like(text: str) -> str:
    """Escape LIKE wildcards using backslash as the escape character."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ProductRepository:
    """CRUD operations over products, scoped by owner where required."""

    def __init__(self, db: Session):
        self.db = db

    def create_product(self, attrs: dict[str, Any], owner_id: int) -> Product:
        """Store a product owned by ``owner_id``.

        Raises:
            PersistenceError: if the write fails. The session is rolled back.
        """
        product = Product(
            user_id=owner_id,
            name=attrs["name"],
            description=attrs["description"],
            brand=attrs.get("brand"),
            category=attrs.get("category"),
            identified_text=attrs.get("identified_text"),
            image_url=attrs.get("image_url"),
            product_metadata=attrs.get("metadata") or {},
        )
        try:
            self.db.add(product)
            self.db.commit()
            self.db.refresh(product)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save product for user {owner_id}: {e}")
            raise PersistenceError(f"Failed to save product: {e}") from e
        return product

    def get_products(self, owner_id: int | None = None) -> list[Product]:
        """Get products, newest first. All products when no owner is given."""
        query = self.db.query(Product)
        if owner_id is not None:
            query = query.filter(Product.user_id == owner_id)
        return query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    def get_product(self, product_id: int, owner_id: int | None = None) -> Product | None:
        query = self.db.query(Product).filter(Product.id == product_id)
        if owner_id is not None:
            query = query.filter(Product.user_id == owner_id)
        return query.first()

    def search_products(self, text: str) -> list[Product]:
        """Case-insensitive substring search over name, description and brand.

        ``%`` and ``_`` in the text match literally.
        """
        pattern = f"%{escape_like(text.lower())}%"
        return (
            self.db.query(Product)
            .filter(
                or_(
                    func.lower(Product.name).like(pattern, escape="\\"),
                    func.lower(Product.description).like(pattern, escape="\\"),
                    func.lower(Product.brand).like(pattern, escape="\\"),
                )
            )
            .order_by(Product.id)
            .all()
        )

    def delete_product(self, product: Product) -> None:
        self.db.delete(product)
        self.db.commit()

    def count_products(self) -> int:
        return self.db.query(func.count(Product.id)).scalar() or 0

    def count_products_by_owner(self) -> dict[int, int]:
        """Map owner id to number of products."""
        rows = (
            self.db.query(Product.user_id, func.count(Product.id))
            .group_by(Product.user_id)
            .all()
        )
        return {user_id: count for user_id, count in rows}
