import hashlib
import hmac
import re

PIN_PATTERN = re.compile(r"[0-9]{4}")


def validate_pin_format(pin: str) -> bool:
    """A PIN is exactly four ASCII digits."""
    return bool(pin) and PIN_PATTERN.fullmatch(pin) is not None


def hash_pin(pin: str, secret: str) -> str:
    # One application-wide secret, no per-share salt.
    raw = f"{pin}{secret}"
    return hashlib.sha256(raw.encode()).hexdigest()


def verify_pin(pin: str, pin_hash: str, secret: str) -> bool:
    """Constant-time comparison of the supplied PIN's digest with the stored one."""
    if not pin or not pin_hash:
        return False
    return hmac.compare_digest(hash_pin(pin, secret), pin_hash)
