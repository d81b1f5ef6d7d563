"""Input sanitization for claim text sent to the decision classifier."""

import re
from typing import Any

# Maximum lengths for text fields (characters)
MAX_DESCRIPTION = 3000
MAX_PRODUCT_NAME = 128
MAX_COVERAGE_ITEM = 128
MAX_COVERAGE_ITEMS = 25
MAX_CLAIM_NUMBER = 32

# Patterns that may indicate prompt injection attempts
INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(?:all\s+)?(?:previous|above|prior)\s+instructions?", re.I),
    re.compile(r"disregard\s+(?:all\s+)?(?:previous|above|prior)", re.I),
    re.compile(r"forget\s+(?:everything|all)\s+(?:you\s+)?(?:know|learned)", re.I),
    re.compile(r"you\s+are\s+now\s+", re.I),
    re.compile(r"new\s+instructions?\s*:", re.I),
    re.compile(r"system\s*:\s*", re.I),
    re.compile(r"<\|[a-z_]+\|>", re.I),  # special tokens
]


def sanitize_text(text: str | None, max_length: int) -> str:
    """Strip control characters and truncate to max_length."""
    if text is None or not isinstance(text, str):
        return ""
    # Remove control characters (0x00-0x1F except tab/newline/carriage return)
    cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    cleaned = cleaned.strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length]
    return cleaned


def _remove_injection_patterns(text: str) -> str:
    """Remove or neutralize instruction-like patterns that could manipulate the classifier."""
    if not text:
        return text
    result = text
    for pattern in INJECTION_PATTERNS:
        result = pattern.sub("[redacted]", result)
    return result


def truncate_reason(reason: Any, max_length: int) -> str:
    """Normalize a decision reason to a single stripped string of at most max_length."""
    text = sanitize_text(reason if isinstance(reason, str) else str(reason or ""), max_length * 4)
    text = " ".join(text.split())
    if len(text) > max_length:
        text = text[: max_length - 3].rstrip() + "..." if max_length > 3 else text[:max_length]
    return text


def sanitize_classification_request(data: dict[str, Any]) -> dict[str, Any]:
    """
    Sanitize a classifier request payload.

    - Truncates text fields to safe lengths
    - Strips control characters
    - Removes instruction-like patterns from the free-text description
    - Passes evidence flags and unknown keys through unchanged

    Returns a new dict; does not mutate the input.
    """
    if not data or not isinstance(data, dict):
        return data or {}

    out: dict[str, Any] = {}
    for key, value in data.items():
        if key == "description":
            out[key] = _remove_injection_patterns(sanitize_text(value, MAX_DESCRIPTION))
        elif key == "product_name":
            out[key] = _remove_injection_patterns(sanitize_text(value, MAX_PRODUCT_NAME))
        elif key == "claim_number":
            out[key] = sanitize_text(value, MAX_CLAIM_NUMBER)
        elif key == "coverage":
            items = value if isinstance(value, (list, tuple)) else []
            out[key] = [
                _remove_injection_patterns(sanitize_text(item, MAX_COVERAGE_ITEM))
                for item in items[:MAX_COVERAGE_ITEMS]
                if isinstance(item, str)
            ]
        else:
            out[key] = value
    return out
