import hmac
import re
import secrets
from typing import Optional

import structlog

from whistlebox.core.crypto import sha256_hex

logger = structlog.get_logger()


class PinService:
    """
    Retrieval PINs for anonymous tracking.

    The plaintext PIN is handed to the reporter once; only its SHA-256 digest
    is stored.
    """

    DIGITS = 6
    LOWEST = 10 ** (DIGITS - 1)          # 100000
    SPAN = 9 * 10 ** (DIGITS - 1)        # 900000 equally likely values
    PATTERN = re.compile(r"[1-9]\d{%d}" % (DIGITS - 1))
    DIGEST_PATTERN = re.compile(r"[0-9a-f]{64}")

    @classmethod
    def generate_pin(cls) -> str:
        return str(cls.LOWEST + secrets.randbelow(cls.SPAN))

    @staticmethod
    def hash_pin(pin: str) -> str:
        return sha256_hex(pin)

    @classmethod
    def verify_pin(cls, pin: Optional[str], stored_digest: Optional[str]) -> bool:
        """
        Fails closed: anything unexpected is a plain False, never an exception.
        """
        try:
            if not isinstance(pin, str) or not isinstance(stored_digest, str):
                return False
            if not cls.PATTERN.fullmatch(pin) or not cls.DIGEST_PATTERN.fullmatch(stored_digest):
                return False
            return hmac.compare_digest(cls.hash_pin(pin), stored_digest)
        except Exception as e:
            logger.warning("pin_verify_error", error_type=type(e).__name__)
            return False
