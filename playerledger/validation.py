"""Input checks run before any repository access."""

import math
import re
from typing import Any, Optional

from playerledger.errors import InvalidInputError

RESERVED_USERNAME_PREFIX = "Player_"
MAX_USERNAME_LENGTH = 20
MAX_LEADERBOARD_LIMIT = 100
# Largest value an SQLite INTEGER column can bind
MAX_SCORE = 2**63 - 1

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")


def is_valid_address(address: Any) -> bool:
    """Format check only: 0x followed by 40 hex characters."""
    return isinstance(address, str) and _ADDRESS_RE.fullmatch(address) is not None


def check_address(address: Any, field: str = "walletAddress") -> str:
    if not is_valid_address(address):
        raise InvalidInputError(f"Invalid {field} provided")
    return address


def check_optional_address(address: Any, field: str = "parentWalletAddress") -> Optional[str]:
    if address is None or address == "":
        return None
    return check_address(address, field)


def check_username(username: Any) -> str:
    """Return the trimmed username or raise InvalidInputError."""
    if not isinstance(username, str):
        raise InvalidInputError("Invalid username provided")
    trimmed = username.strip()
    if not 1 <= len(trimmed) <= MAX_USERNAME_LENGTH:
        raise InvalidInputError(
            f"Invalid username provided (must be 1-{MAX_USERNAME_LENGTH} chars)"
        )
    if trimmed.startswith(RESERVED_USERNAME_PREFIX):
        raise InvalidInputError(f"Username cannot start with '{RESERVED_USERNAME_PREFIX}'.")
    return trimmed


def check_user_name(user_name: Any) -> str:
    # Score snapshots only need a non-empty display name.
    if not isinstance(user_name, str) or not user_name.strip():
        raise InvalidInputError("Invalid userName provided")
    return user_name.strip()


def check_amount(amount: Any) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidInputError("Invalid amount provided (must be a positive number)")
    try:
        value = float(amount)
    except OverflowError:
        raise InvalidInputError("Invalid amount provided (out of range)") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidInputError("Invalid amount provided (must be a positive number)")
    return value


def check_score(score: Any) -> int:
    if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= MAX_SCORE:
        raise InvalidInputError(f"Invalid score provided (must be an integer 0-{MAX_SCORE})")
    return score


def check_limit(limit: Any, maximum: int = MAX_LEADERBOARD_LIMIT) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= maximum:
        raise InvalidInputError(f"Invalid limit provided (must be 1-{maximum})")
    return limit
