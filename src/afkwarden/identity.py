"""Occupant identity generation."""

from __future__ import annotations

import random
import string

IDENTITY_ALPHABET = string.ascii_letters + string.digits
SUFFIX_LENGTH = 8

_rng = random.SystemRandom()


def generate_identity(base: str, rng: random.Random | None = None) -> str:
    """Generate a fresh identity ``<base>_<8 alphanumeric chars>``.

    Args:
        base: Fixed base label from configuration
        rng: Random source (defaults to a process-wide SystemRandom)

    Returns:
        New identity string
    """
    source = rng or _rng
    suffix = "".join(source.choice(IDENTITY_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{base}_{suffix}"
