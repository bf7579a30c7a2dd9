"""
Cookie-backed authorization transactions.

Each in-flight login is stored client-side in its own cookie, named
<prefix>_<transaction_id>. The payload is JSON encrypted with Fernet, so a
cookie that was tampered with, forged or kept past its lifetime fails to
decrypt and is treated as never issued.
"""

import json
import time
import base64
import hashlib
import logging
from typing import Callable, Dict, Mapping, Optional

from aiohttp import web
from cryptography.fernet import Fernet, InvalidToken

from gravatar_mcp.auth.oauth_provider import OAuthConfig
from .errors import TransactionNotFound
from .models import AuthRequest, AuthorizationTransaction
from .utils import generate_secure_state, generate_secure_code_verifier, generate_code_challenge, generate_token

logger = logging.getLogger("oauth_proxy.transactions")

TRANSACTION_TTL_SECONDS = 3600


def derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from an arbitrary-length secret string"""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class TransactionStore:
    """Create, persist, load and invalidate authorization transactions"""

    def __init__(self, config: OAuthConfig, clock: Optional[Callable[[], float]] = None):
        self.config = config
        self._fernet = Fernet(derive_fernet_key(config.cookie_secret))
        self._clock = clock or time.time
        self._consumed: Dict[str, float] = {}  # transaction id -> time its cookie stops decrypting

    def cookie_name(self, transaction_id: str) -> str:
        return f"{self.config.cookie_prefix}_{transaction_id}"

    def create(self, original_request: AuthRequest) -> AuthorizationTransaction:
        """Start a transaction with a fresh PKCE pair, nonce and consent token"""
        pkce_verifier = generate_secure_code_verifier()
        transaction = AuthorizationTransaction(
            transaction_id=generate_secure_state(),
            original_request=original_request,
            pkce_verifier=pkce_verifier,
            pkce_challenge=generate_code_challenge(pkce_verifier),
            nonce=generate_token(),
            consent_token=generate_token(),
            created_at=self._clock(),
        )
        logger.debug(f"Created transaction {transaction.transaction_id[:8]}... for client "
                     f"{original_request.client_id}")
        return transaction

    def encode(self, transaction: AuthorizationTransaction) -> str:
        payload = json.dumps(transaction.to_dict()).encode("utf-8")
        token = self._fernet.encrypt_at_time(payload, int(self._clock()))
        # '=' would force the cookie value to be quoted
        return token.decode("ascii").rstrip("=")

    def decode(self, value: str) -> AuthorizationTransaction:
        padded = value + "=" * (-len(value) % 4)
        try:
            payload = self._fernet.decrypt_at_time(
                padded.encode("ascii"), TRANSACTION_TTL_SECONDS, int(self._clock())
            )
            return AuthorizationTransaction.from_dict(json.loads(payload))
        except (InvalidToken, UnicodeEncodeError, ValueError, KeyError, TypeError) as e:
            raise TransactionNotFound("Invalid or expired transaction") from e

    def persist(self, response: web.StreamResponse, transaction: AuthorizationTransaction):
        """Write the transaction cookie onto a response"""
        response.set_cookie(
            self.cookie_name(transaction.transaction_id),
            self.encode(transaction),
            max_age=TRANSACTION_TTL_SECONDS,
            path="/",
            secure=self.config.cookie_secure,
            httponly=True,
            samesite=self.config.cookie_samesite,
        )

    def load(self, cookies: Mapping[str, str], transaction_id: str) -> AuthorizationTransaction:
        """
        Read a transaction back from request cookies.

        Raises:
            TransactionNotFound: the cookie is absent, expired or malformed
        """
        if not transaction_id:
            raise TransactionNotFound("Missing transaction identifier")

        value = cookies.get(self.cookie_name(transaction_id))
        if not value:
            raise TransactionNotFound("Invalid or expired transaction")

        transaction = self.decode(value)
        if transaction.transaction_id != transaction_id:
            # A valid cookie copied under another transaction's name
            raise TransactionNotFound("Invalid or expired transaction")
        if transaction_id in self._consumed:
            raise TransactionNotFound("Transaction has already been used")
        return transaction

    def mark_consumed(self, transaction: AuthorizationTransaction):
        """
        Record that a transaction has reached a terminal state.

        The browser may still hold (or replay) the cookie, so consumed ids are
        remembered until the cookie itself would stop decrypting.
        """
        now = self._clock()
        for transaction_id in [t for t, expires in self._consumed.items() if expires <= now]:
            del self._consumed[transaction_id]
        self._consumed[transaction.transaction_id] = transaction.created_at + TRANSACTION_TTL_SECONDS

    def invalidate(self, response: web.StreamResponse, transaction_id: str):
        """Clear the transaction cookie (zero max-age)"""
        response.del_cookie(self.cookie_name(transaction_id), path="/")
