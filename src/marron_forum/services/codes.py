"""One-time passcode generation."""

from __future__ import annotations

import secrets

CODE_MIN = 100_000
CODE_MAX = 999_999
CODE_LENGTH = 6


def generate_code() -> str:
    """Return a uniformly random code from [100000, 999999] as six digits.

    Drawn from the OS CSPRNG.
    """
    value = CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1)
    return str(value)
