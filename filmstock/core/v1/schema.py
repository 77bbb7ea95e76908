from __future__ import annotations

from typing import Optional, Tuple

# -------------------------------
# Film formats
# -------------------------------
# Canonical codes are what the store persists. Display names are what exports
# and people use; both are accepted on input.
FORMATS = ["35", "120", "110", "127", "220", "4x5", "5x7", "8x10", "Other"]

FORMAT_DISPLAY_NAMES = {
    "35": "35mm",
    "120": "120",
    "110": "110",
    "127": "127",
    "220": "220",
    "4x5": "4x5",
    "5x7": "5x7",
    "8x10": "8x10",
    "Other": "Other",
}

# One physical roll per unit (quantity settles at 1).
ROLL_FORMATS = frozenset({"35", "120", "110", "127", "220"})
# Divisible pools; "Other" is treated as a pool because its nature is unknown.
SHEET_FORMATS = frozenset({"4x5", "5x7", "8x10", "Other"})

OTHER_FORMAT = "Other"
EXPOSURE_FORMAT = "35"

# -------------------------------
# Film types
# -------------------------------
FILM_TYPES = ["BW", "Color", "Slide", "Instant"]

FILM_TYPE_DISPLAY_NAMES = {
    "BW": "B&W",
    "Color": "Color",
    "Slide": "Slide",
    "Instant": "Instant",
}

# -------------------------------
# Finished-unit development status
# -------------------------------
STATUS_TO_DEVELOP = "toDevelop"
STATUS_IN_DEVELOPMENT = "inDevelopment"
STATUS_DEVELOPED = "developed"
FINISHED_STATUSES = [STATUS_TO_DEVELOP, STATUS_IN_DEVELOPMENT, STATUS_DEVELOPED]

# -------------------------------
# Film image source
# -------------------------------
IMAGE_SOURCES = ["none", "auto", "catalog", "custom"]


def is_roll_format(fmt: str) -> bool:
    return fmt in ROLL_FORMATS


def format_display_name(fmt: str, custom_format: Optional[str] = None) -> str:
    if fmt == OTHER_FORMAT and custom_format:
        return custom_format
    return FORMAT_DISPLAY_NAMES.get(fmt, fmt)


def quantity_unit(fmt: str) -> str:
    if fmt in ("4x5", "5x7", "8x10"):
        return "Sheets"
    return "Rolls"


def match_format(raw: Optional[str]) -> Tuple[str, Optional[str]]:
    """Map a user/export format string to (canonical code, custom label).

    Matching is case-insensitive against both the canonical code and the
    display name. Anything unrecognised becomes "Other" with the raw string
    preserved as the custom label.
    """
    s = (raw or "").strip()
    low = s.lower()
    for code in FORMATS:
        if low == code.lower() or low == FORMAT_DISPLAY_NAMES[code].lower():
            if code == OTHER_FORMAT:
                return OTHER_FORMAT, None
            return code, None
    return OTHER_FORMAT, (s or None)


def normalize_format(fmt: str) -> str:
    """Strict variant of match_format for write paths: unknown formats are rejected."""
    code, label = match_format(fmt)
    if label is not None:
        raise ValueError(f"Unknown format '{fmt}'. Use one of: {', '.join(FORMATS)}")
    return code


def match_film_type(raw: Optional[str], default: Optional[str] = "BW") -> Optional[str]:
    low = (raw or "").strip().lower()
    for t in FILM_TYPES:
        if low == t.lower() or low == FILM_TYPE_DISPLAY_NAMES[t].lower():
            return t
    return default


def normalize_film_type(raw: str) -> str:
    t = match_film_type(raw, default=None)
    if t is None:
        raise ValueError(f"Unknown film type '{raw}'. Use one of: {', '.join(FILM_TYPES)}")
    return t


def validate_status(status: str) -> str:
    if status not in FINISHED_STATUSES:
        raise ValueError(f"status must be one of: {', '.join(FINISHED_STATUSES)}")
    return status
