"""
Utility functions for the OAuth front door
"""

import json
import secrets
import hashlib
import base64
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from urllib.parse import urlencode, urlparse


def generate_secure_state() -> str:
    """Generate a secure random identifier for a transaction"""
    return secrets.token_urlsafe(32)


def generate_secure_code_verifier() -> str:
    """Generate a secure code verifier for PKCE (RFC 7636 allows 43-128 chars)"""
    return secrets.token_urlsafe(64)


def generate_code_challenge(code_verifier: str) -> str:
    """Compute the S256 PKCE challenge for a verifier"""
    hashed = hashlib.sha256(code_verifier.encode('utf-8')).digest()
    encoded = base64.urlsafe_b64encode(hashed)
    return encoded.decode('ascii').strip('=')


def verify_code_challenge(code_verifier: str, code_challenge: str, method: str = "S256") -> bool:
    """Check a PKCE verifier against the challenge sent with the authorization request"""
    if method == "plain":
        expected = code_verifier
    elif method == "S256":
        expected = generate_code_challenge(code_verifier)
    else:
        return False
    return secrets.compare_digest(expected.encode('utf-8'), code_challenge.encode('utf-8'))


def generate_token(nbytes: int = 32) -> str:
    """Generate an opaque random token (consent token, nonce, refresh token)"""
    return secrets.token_urlsafe(nbytes)


def tokens_match(expected: Optional[str], received: Optional[str]) -> bool:
    """Constant-time comparison that treats missing values as a mismatch"""
    if not expected or not received:
        return False
    return secrets.compare_digest(expected.encode('utf-8'), received.encode('utf-8'))


def append_query(url: str, params: Dict[str, Any]) -> str:
    """Append query parameters to a URL that may already carry a query string"""
    separator = "&" if urlparse(url).query else ("" if url.endswith("?") else "?")
    return f"{url}{separator}{urlencode(params)}"


def audit_log(event_type: str, user_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
    """Log security-relevant events for audit purposes"""
    logger = logging.getLogger("oauth_proxy.audit")

    audit_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "user_id": user_id,
        "details": details or {}
    }

    logger.info(f"AUDIT: {json.dumps(audit_entry, default=str)}")
