"""Product classification using Claude Vision."""

import json
import logging
from dataclasses import asdict, dataclass

import anthropic

from src.config import get_settings
from src.exceptions import ClassificationError
from src.services.ocr import split_data_url

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a product identification expert. Analyze the image and extracted text "
    "to identify product details. Provide detailed and accurate product information."
)

CLASSIFY_PROMPT = """Please analyze this product. The OCR extracted text is:
{text}

Identify the product name, provide a detailed description, identify the brand, and
categorize the product.

Return ONLY a JSON object with the fields "name", "description", "brand" and "category".
Use null for brand or category if they cannot be determined. No other text."""


@dataclass
class ClassificationResult:
    """Structured product attributes."""

    name: str
    description: str
    brand: str | None = None
    category: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def parse_classification(response_text: str) -> ClassificationResult:
    """Parse the model's JSON answer, tolerating markdown code fences."""
    text = response_text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse classification response as JSON: {e}")
        logger.warning(f"Raw response: {response_text}")
        raise ClassificationError(f"Malformed classification response: {e}") from e

    if not isinstance(data, dict):
        raise ClassificationError("Classification response is not a JSON object")

    name = data.get("name")
    description = data.get("description")
    if not isinstance(name, str) or not name.strip():
        raise ClassificationError("Classification response is missing a product name")
    if not isinstance(description, str) or not description.strip():
        raise ClassificationError("Classification response is missing a description")

    brand = data.get("brand")
    category = data.get("category")
    return ClassificationResult(
        name=name.strip(),
        description=description.strip(),
        brand=str(brand).strip() if brand else None,
        category=str(category).strip() if category else None,
    )


class ProductClassifier:
    """Classify a product from its image and OCR text using Claude Vision."""

    def __init__(self) -> None:
        settings = get_settings()
        self.api_key = settings.anthropic_api_key
        self.model = settings.vision_model
        self.timeout = settings.classification_timeout_seconds
        self._configured = bool(self.api_key)

    @property
    def is_configured(self) -> bool:
        """Check if the Anthropic API is configured."""
        return self._configured

    async def classify(self, image: str, text: str) -> ClassificationResult:
        """Classify the product shown in an image.

        Args:
            image: Data URL or bare base64 payload
            text: OCR output, possibly empty

        Raises:
            ClassificationError: on configuration, network, API or parse failures
        """
        if not self.is_configured:
            raise ClassificationError("Anthropic API not configured")

        media_type, image_base64 = split_data_url(image)
        client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)

        try:
            message = await client.messages.create(
                model=self.model,
                max_tokens=500,
                system=SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": image_base64,
                                },
                            },
                            {
                                "type": "text",
                                "text": CLASSIFY_PROMPT.format(text=text or "(none)"),
                            },
                        ],
                    }
                ],
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error during classification: {e}")
            raise ClassificationError(f"Classification request failed: {e}") from e

        text_blocks = [block.text for block in message.content if block.type == "text"]
        if not text_blocks:
            raise ClassificationError("No response received from the vision model")

        return parse_classification(text_blocks[0])


def get_product_classifier() -> ProductClassifier:
    """Get a product classifier instance."""
    return ProductClassifier()
