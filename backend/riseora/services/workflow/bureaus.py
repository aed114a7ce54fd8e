"""
Bureau Mailing Profiles

Dispute mailing addresses for the three national consumer reporting agencies.
"""
from typing import Any, Dict, Optional


# =============================================================================
# BUREAU PROFILES
# =============================================================================

BUREAU_PROFILES: Dict[str, Dict[str, Any]] = {
    "EXPERIAN": {
        "name": "Experian",
        "address": """Experian
P.O. Box 4500
Allen, TX 75013""",
    },

    "EQUIFAX": {
        "name": "Equifax",
        "address": """Equifax Information Services LLC
P.O. Box 740256
Atlanta, GA 30374""",
    },

    "TRANSUNION": {
        "name": "TransUnion",
        "address": """TransUnion LLC
Consumer Dispute Center
P.O. Box 2000
Chester, PA 19016""",
    },
}


def get_bureau_profile(bureau: str) -> Optional[Dict[str, Any]]:
    """Get profile for a bureau code (case-insensitive)."""
    if not bureau:
        return None
    return BUREAU_PROFILES.get(bureau.strip().upper())


def get_bureau_address(bureau: str) -> str:
    """
    Mailing address block for a bureau code.

    Unknown codes (including ALL) are echoed back unchanged.
    """
    profile = get_bureau_profile(bureau)
    if profile is None:
        return bureau or ""
    return profile["address"]


def get_bureau_name(bureau: str) -> str:
    profile = get_bureau_profile(bureau)
    return profile["name"] if profile else (bureau or "")
