"""Deterministic keyword classification used when the vision model fails - no LLM calls."""

import re

from src.services.classifier import ClassificationResult

# Ordered, first match wins. Short names that often appear inside other words go last.
KNOWN_BRANDS = [
    "NVIDIA",
    "AMD",
    "Intel",
    "Apple",
    "Samsung",
    "Sony",
    "Microsoft",
    "Google",
    "Logitech",
    "Lenovo",
    "Dell",
    "ASUS",
    "Acer",
    "MSI",
    "Gigabyte",
    "Corsair",
    "Razer",
    "Philips",
    "Panasonic",
    "Canon",
    "Nikon",
    "Xiaomi",
    "Huawei",
    "Bose",
    "JBL",
    "LG",
    "HP",
]

DEFAULT_BRAND = "Unknown"
DEFAULT_CATEGORY = "Electronics"
DEFAULT_NAME = "Unidentified product"

NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 200


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def match_brand(text: str) -> str:
    """Return the first known brand contained in the text (case-insensitive)."""
    text_lower = text.lower()
    for brand in KNOWN_BRANDS:
        if brand.lower() in text_lower:
            return brand
    return DEFAULT_BRAND


def fallback_classify(text: str) -> ClassificationResult:
    """Derive best-effort product attributes from OCR text.

    Pure and total: never raises, including for an empty string.

    Examples:
    - "NVIDIA RTX 4080" -> brand "NVIDIA", category "Electronics", name "NVIDIA RTX 4080"
    - "" -> brand "Unknown", name "Unidentified product"
    """
    text = text or ""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    collapsed = re.sub(r"\s+", " ", text).strip()

    name = _truncate(lines[0], NAME_MAX_LENGTH) if lines else DEFAULT_NAME
    if collapsed:
        description = "Identified from scanned text: " + _truncate(
            collapsed, DESCRIPTION_MAX_LENGTH
        )
    else:
        description = "No readable text was found on the product."

    return ClassificationResult(
        name=name,
        description=description,
        brand=match_brand(text),
        category=DEFAULT_CATEGORY,
    )
