"""Security utilities for prompt injection detection and input validation."""
from __future__ import annotations

import re
import unicodedata
from typing import List, Optional, Tuple

MAX_TEXT_LENGTH = 4000
MAX_IDENTITY_LENGTH = 100

SUSPICIOUS_PATTERNS: List[str] = [
    r"\bignore\s+(all\s+)?previous\b",
    r"\bdisregard\s+(all|system|instructions)\b",
    r"\boverride\s+(the\s+)?(rules|instructions|system)\b",
    r"\byou\s+are\s+now\b",
    r"\bpretend\s+(you|to)\s+are\b",
    r"\breturn\s+this\s+json\b",
    r"\bfollow\s+my\s+instructions\b",
    r"\bforget\s+everything\b",
    r"\bnew\s+instructions\b",
    r"\bbreak\s+character\b",
    r"\bjailbreak\b",
    r"\btool_?call\b",
    r"\bfunction_?call\b",
    r"^\s*(system|assistant)\s*:",
]


def normalize_text(text: str) -> str:
    """
    Normalize text to detect obfuscated attacks.

    Handles:
    - Unicode homoglyphs (e.g., Cyrillic characters)
    - Leetspeak substitutions
    - Multiple whitespace normalization
    """
    normalized = unicodedata.normalize("NFKD", text)
    lowered = normalized.encode("ASCII", "ignore").decode("ASCII").lower()

    leetspeak_map = {
        "0": "o",
        "1": "i",
        "3": "e",
        "4": "a",
        "5": "s",
        "7": "t",
        "@": "a",
        "$": "s",
    }
    for num, letter in leetspeak_map.items():
        lowered = lowered.replace(num, letter)

    return re.sub(r"\s+", " ", lowered)


def detect_prompt_injection(text: str) -> bool:
    """Return True if the text tries to steer the classifier instead of describing a request."""
    lowered = text.lower()
    for candidate in (lowered, normalize_text(text)):
        for pattern in SUSPICIOUS_PATTERNS:
            if re.search(pattern, candidate, re.IGNORECASE | re.MULTILINE):
                return True
    return False


def validate_user_input(identity: str, text: str) -> Tuple[bool, Optional[str]]:
    """
    Validation of a single user turn.

    Returns: (is_valid, error_message)
    """
    if not identity or not isinstance(identity, str):
        return False, "Identity is required and must be a string"

    if len(identity) > MAX_IDENTITY_LENGTH:
        return False, f"Identity exceeds maximum length ({MAX_IDENTITY_LENGTH} characters)"

    if not text or not isinstance(text, str) or not text.strip():
        return False, "Request text cannot be empty"

    if len(text) > MAX_TEXT_LENGTH:
        return False, f"Request text exceeds maximum length ({MAX_TEXT_LENGTH} characters)"

    return True, None
