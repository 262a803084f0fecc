import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from payu_bridge.utils.canonical import forward_hash_string, reverse_hash_string
from payu_bridge.utils.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayCredentials:
    key: str
    salt: str
    payment_url: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayCredentials":
        return cls(key=settings.payu_key, salt=settings.payu_salt, payment_url=settings.payu_base_url)

    def __repr__(self) -> str:
        return f"GatewayCredentials(key={self.key!r}, payment_url={self.payment_url!r})"


def sha512_hex(value: str) -> str:
    return hashlib.sha512(value.encode("utf-8")).hexdigest()


class RequestSigner:
    def __init__(self, credentials: GatewayCredentials):
        self.credentials = credentials

    def sign(self, fields: Mapping[str, object]) -> str:
        return sha512_hex(forward_hash_string(fields, self.credentials.salt))


class CallbackVerifier:
    def __init__(self, credentials: GatewayCredentials):
        self.credentials = credentials

    def expected_hash(self, fields: Mapping[str, object]) -> str:
        return sha512_hex(reverse_hash_string(fields, self.credentials.salt, self.credentials.key))

    def verify(self, fields: Mapping[str, object]) -> bool:
        supplied = fields.get("hash")
        if not isinstance(supplied, str) or not supplied:
            return False
        claimed_key = fields.get("key")
        if claimed_key not in (None, "") and claimed_key != self.credentials.key:
            logger.warning("Callback carries a foreign merchant key. txnid=%s", fields.get("txnid"))
            return False
        try:
            expected = self.expected_hash(fields)
        except ValueError as exc:
            logger.info("Callback fields cannot be canonicalized. txnid=%s reason=%s", fields.get("txnid"), exc)
            return False
        return hmac.compare_digest(expected.encode("ascii"), supplied.strip().lower().encode("utf-8"))
