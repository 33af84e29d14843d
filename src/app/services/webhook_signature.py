"""Webhook signature verification

Providers sign webhook deliveries either with a shared secret echoed in a header
(Flutterwave verif-hash) or with an HMAC-SHA256 digest of the raw body. Both are
compared in constant time, and always against the raw request bytes.
"""

import hashlib
import hmac
import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class SignatureMode(str, Enum):
    SECRET_HASH = "secret_hash"
    HMAC_SHA256 = "hmac_sha256"


class WebhookSignatureVerifier:
    """
    Verifies provider webhook signatures

    Usage:
        verifier = WebhookSignatureVerifier(secret="s3cret", mode=SignatureMode.HMAC_SHA256)
        verifier.verify(raw_body, request.headers.get("verif-hash"))
    """

    def __init__(self, secret: str, mode: SignatureMode = SignatureMode.SECRET_HASH):
        self.secret = secret or ""
        self.mode = SignatureMode(mode)

    def expected_signature(self, raw_body: bytes) -> str:
        if self.mode is SignatureMode.HMAC_SHA256:
            return hmac.new(self.secret.encode(), raw_body, hashlib.sha256).hexdigest()
        return self.secret

    def verify(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """
        Check a delivery's signature

        Args:
            raw_body: Unparsed request body bytes
            signature: Value of the provider signature header (may be None)

        Returns:
            True only when a secret is configured and the signature matches
        """
        if not self.secret:
            logger.error("Webhook secret is not configured, rejecting delivery")
            return False
        if not signature:
            return False

        expected = self.expected_signature(raw_body)
        if self.mode is SignatureMode.HMAC_SHA256:
            signature = signature.strip().lower()
        return hmac.compare_digest(expected.encode(), signature.encode())
