"""Product model."""

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSON
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class Product(Base, TimestampMixin):
    """A product identified from a scanned image."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    brand = Column(String(255), nullable=True)
    category = Column(String(255), nullable=True)
    identified_text = Column(Text, nullable=True)
    # Data URL of the scanned image
    image_url = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    product_metadata = Column("metadata", JSON, nullable=True)

    # Relationships
    owner = relationship("User", back_populates="products")
