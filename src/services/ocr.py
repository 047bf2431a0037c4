"""Text extraction from product images using Tesseract."""

import asyncio
import base64
import binascii
import io
import logging

import pytesseract
from PIL import Image, UnidentifiedImageError

from src.config import get_settings
from src.exceptions import ExtractionError

logger = logging.getLogger(__name__)


def to_data_url(image: str) -> str:
    """Normalize an image payload to a data URL, assuming JPEG for bare base64."""
    if image.startswith("data:"):
        return image
    return f"data:image/jpeg;base64,{image}"


def split_data_url(image: str) -> tuple[str, str]:
    """Split an image payload into (media_type, base64 data)."""
    if image.startswith("data:"):
        header, _, data = image.partition(",")
        media_type = header[len("data:") :].split(";", 1)[0] or "image/jpeg"
        return media_type, data
    return "image/jpeg", image


def decode_image(image: str) -> bytes:
    """Decode a data URL or base64 payload into raw bytes."""
    _, data = split_data_url(image)
    try:
        return base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ExtractionError(f"Invalid image encoding: {e}") from e


class TextExtractor:
    """Extract plain text from an encoded image."""

    def __init__(self) -> None:
        settings = get_settings()
        self.language = settings.ocr_language
        self.timeout = settings.ocr_timeout_seconds

    def _recognize(self, raw: bytes) -> str:
        try:
            with Image.open(io.BytesIO(raw)) as img:
                if img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                return pytesseract.image_to_string(img, lang=self.language, timeout=self.timeout)
        except UnidentifiedImageError as e:
            raise ExtractionError("Image data could not be read") from e
        except Image.DecompressionBombError as e:
            raise ExtractionError("Image is too large to process") from e
        except pytesseract.TesseractNotFoundError as e:
            raise ExtractionError("OCR engine is not installed") from e
        except OSError as e:
            # Truncated or corrupt image data surfaces while Pillow decodes it
            raise ExtractionError(f"Image data could not be decoded: {e}") from e
        except pytesseract.TesseractError as e:
            raise ExtractionError(f"OCR engine error: {e}") from e
        except RuntimeError as e:
            # pytesseract raises a bare RuntimeError when the timeout is hit
            raise ExtractionError(f"OCR timed out: {e}") from e

    async def extract_text(self, image: str) -> str:
        """Run OCR on the image and return the trimmed text.

        Raises:
            ExtractionError: if the image cannot be decoded, OCR fails, or no
                text is found.
        """
        raw = decode_image(image)
        if not raw:
            raise ExtractionError("Image payload is empty")

        logger.info("Starting OCR with Tesseract...")
        text = await asyncio.to_thread(self._recognize, raw)
        text = text.strip()
        if not text:
            raise ExtractionError("No text was extracted from the image")

        logger.info(f"OCR completed, extracted {len(text)} characters")
        return text


def get_text_extractor() -> TextExtractor:
    """Get a text extractor instance."""
    return TextExtractor()
