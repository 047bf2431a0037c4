"""Product schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class IdentifyRequest(BaseModel):
    """Identify a product from an image.

    ``image`` is a data URL or a bare base64 payload. It is optional here so a
    missing image produces a 400 from the endpoint instead of a 422.
    """

    image: str | None = None


class ProductResponse(BaseModel):
    """Persisted product response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    description: str
    brand: str | None
    category: str | None
    identified_text: str | None
    image_url: str | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="product_metadata")
    created_at: datetime


class IdentificationResponse(BaseModel):
    """Result of an identification request.

    Persisted results carry ``id``/``user_id``. Temporary results (guest or
    failed save) carry ``temporary=True`` and an explanatory ``message``.
    """

    id: int | None = None
    user_id: int | None = None
    name: str
    description: str
    brand: str | None = None
    category: str | None = None
    identified_text: str | None = None
    image_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    temporary: bool = False
    message: str | None = None
