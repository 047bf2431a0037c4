"""Product identification flow: OCR, classification with fallback, then save or discard."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from src.exceptions import (
    AuthorizationError,
    ClassificationError,
    PersistenceError,
    ValidationError,
)
from src.models.product import Product
from src.services.classifier import ClassificationResult, ProductClassifier
from src.services.fallback_classifier import fallback_classify
from src.services.identity import Authenticated, Guest, SessionIdentity
from src.services.ocr import TextExtractor, to_data_url
from src.services.storage import ProductRepository

logger = logging.getLogger(__name__)

GUEST_MESSAGE = (
    "Product identified in guest mode. Create an account to save your identified products."
)
SAVE_FAILED_MESSAGE = "Product identified, but it could not be saved. Please try again later."


@dataclass
class IdentificationResult:
    """Outcome of an identification request.

    ``product`` is set when the result was persisted. Otherwise the result is
    temporary and ``message`` explains why.
    """

    name: str
    description: str
    brand: str | None
    category: str | None
    identified_text: str
    image_url: str
    metadata: dict[str, Any] = field(default_factory=dict)
    product: Product | None = None
    temporary: bool = False
    message: str | None = None

    def to_response(self) -> dict[str, Any]:
        """Flatten into the identify endpoint's response shape."""
        data = {
            "id": None,
            "user_id": None,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "category": self.category,
            "identified_text": self.identified_text,
            "image_url": self.image_url,
            "metadata": self.metadata,
            "created_at": None,
            "temporary": self.temporary,
            "message": self.message,
        }
        if self.product is not None:
            data["id"] = self.product.id
            data["user_id"] = self.product.user_id
            data["created_at"] = self.product.created_at
            data["metadata"] = self.product.product_metadata or {}
        return data


class IdentificationService:
    """Sequence text extraction, classification and the persistence decision."""

    def __init__(
        self,
        extractor: TextExtractor,
        classifier: ProductClassifier,
        repository: ProductRepository,
    ):
        self.extractor = extractor
        self.classifier = classifier
        self.repository = repository

    async def classify(self, image: str, text: str) -> tuple[ClassificationResult, str]:
        """Classify with the vision model, degrading to the keyword heuristic.

        Returns the attributes and the name of the source that produced them.
        """
        try:
            return await self.classifier.classify(image, text), "vision"
        except ClassificationError as e:
            logger.warning(f"Classification failed, using fallback classifier: {e}")
            return fallback_classify(text), "fallback"

    async def identify(self, image: str | None, identity: SessionIdentity) -> IdentificationResult:
        """Identify the product in ``image`` on behalf of ``identity``.

        Raises:
            AuthorizationError: caller is neither authenticated nor a guest
            ValidationError: no image supplied
            ExtractionError: OCR failed
        """
        if not isinstance(identity, Authenticated | Guest):
            raise AuthorizationError("Authentication required")
        if not image:
            raise ValidationError("Image is required")

        text = await self.extractor.extract_text(image)
        attributes, source = await self.classify(image, text)

        result = IdentificationResult(
            name=attributes.name,
            description=attributes.description,
            brand=attributes.brand,
            category=attributes.category,
            identified_text=text,
            image_url=to_data_url(image),
            metadata={
                "classification_source": source,
                "identified_at": datetime.now(UTC).isoformat(),
            },
        )

        if isinstance(identity, Guest):
            result.temporary = True
            result.message = GUEST_MESSAGE
            return result

        try:
            result.product = self.repository.create_product(
                {
                    **attributes.to_dict(),
                    "identified_text": text,
                    "image_url": result.image_url,
                    "metadata": result.metadata,
                },
                identity.user_id,
            )
        except PersistenceError as e:
            logger.error(f"Returning temporary result for user {identity.user_id}: {e}")
            result.temporary = True
            result.message = SAVE_FAILED_MESSAGE
            return result

        logger.info(f"Product {result.product.id} created for user ID: {identity.user_id}")
        return result
