"""Egyptian phone number validation and formatting.

Handles:
- Mobile numbers: 01x xxxxxxxx (11 digits) -> +201xxxxxxxxx
- Cairo landlines: 02 xxxxxxxx (10 digits) -> +202xxxxxxxx
- Other landlines: 0XX xxxxxxx (10 digits) -> +20XXxxxxxxx
- Numbers already prefixed with the 20 country code or the 002 dialing prefix
"""

import logging
import re
from typing import Optional

from clinicscraper.domain.models.common import PhoneNumber

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")
_MOBILE = re.compile(r"^01[0-9]\d{8}$")
_CAIRO_LANDLINE = re.compile(r"^02\d{8}$")
_OTHER_LANDLINE = re.compile(r"^0[3-9]\d{8}$")


def format_egyptian_phone(raw: Optional[str]) -> Optional[PhoneNumber]:
    """Validates and formats an Egyptian phone number to international format.

    Args:
        raw: Raw phone string from the listing source.

    Returns:
        A number like ``+201xxxxxxxxx``, or None if the input is not a valid
        Egyptian number.
    """
    if not raw:
        return None

    digits = _NON_DIGITS.sub("", raw)

    if digits.startswith("002"):
        # International dialing prefix: 0020 1xx... -> 20 1xx...
        digits = digits[2:]
    if digits.startswith("20"):
        # Country code without the trunk zero: 201xxxxxxxxx
        digits = "0" + digits[2:]

    if not digits.startswith("0"):
        logger.warning(f"Invalid Egyptian phone (no leading 0): {raw}")
        return None

    if _MOBILE.match(digits) or _CAIRO_LANDLINE.match(digits) or _OTHER_LANDLINE.match(digits):
        return PhoneNumber(f"+2{digits}")

    logger.warning(f"Could not validate Egyptian phone number: {raw} (digits: {digits})")
    return None


def has_phone_number(raw: Optional[str]) -> bool:
    """Checks whether a raw phone string contains a potentially valid number.

    More lenient than format_egyptian_phone; used to decide if a place has
    contact info at all.
    """
    if not raw:
        return False
    return len(_NON_DIGITS.sub("", raw)) >= 8
