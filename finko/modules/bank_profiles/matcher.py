import logging
from typing import Optional, Sequence

from finko.modules.bank_profiles.models import BankEmailProfile

logger = logging.getLogger(__name__)


def match_profile(
    from_header: Optional[str], profiles: Sequence[BankEmailProfile]
) -> Optional[BankEmailProfile]:
    """
    First profile with a sender pattern contained in the From header.

    Profiles are tried in the order given, so when two banks share a pattern
    the one listed first wins.
    """
    sender = (from_header or "").strip().lower()
    if not sender:
        return None

    for profile in profiles:
        for pattern in profile.sender_patterns or []:
            needle = pattern.strip().lower()
            if needle and needle in sender:
                logger.debug(f"Sender {sender} matched {profile.bank_name} on '{needle}'")
                return profile
    return None
