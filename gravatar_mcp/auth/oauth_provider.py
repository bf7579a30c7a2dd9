"""OAuth provider configuration for the Gravatar MCP OAuth front door"""

import os
import re
import logging
from typing import List, Optional
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = ["auth"]
DEFAULT_COOKIE_PREFIX = "mcp_oauth_tx"


def parse_scopes(raw: str) -> List[str]:
    """Split a space or comma separated scope string."""
    return [scope for scope in re.split(r"[\s,]+", raw or "") if scope]


@dataclass
class OAuthConfig:
    """Upstream OAuth client settings and front-door secrets"""

    # Upstream OAuth client
    client_id: str
    client_secret: str
    redirect_uri: str

    # Upstream endpoints
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: Optional[str] = None

    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))

    # Secrets for downstream tokens and transaction cookies
    signing_secret: str = ""
    cookie_secret: str = ""

    environment: str = "production"
    upstream_timeout: float = 10.0
    cookie_prefix: str = DEFAULT_COOKIE_PREFIX

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def cookie_secure(self) -> bool:
        """Transaction cookies require HTTPS outside development"""
        return not self.is_development

    @property
    def cookie_samesite(self) -> str:
        # The upstream redirect back to /callback is cross-site
        return "Lax" if self.is_development else "None"

    @property
    def scope_string(self) -> str:
        return " ".join(self.scopes)

    @classmethod
    def from_environment(cls) -> 'OAuthConfig':
        """Create OAuth config from environment variables"""
        try:
            config = cls(
                client_id=os.getenv("OAUTH_CLIENT_ID", ""),
                client_secret=os.getenv("OAUTH_CLIENT_SECRET", ""),
                redirect_uri=os.getenv("OAUTH_REDIRECT_URI", ""),
                authorization_endpoint=os.getenv("OAUTH_AUTHORIZATION_ENDPOINT", ""),
                token_endpoint=os.getenv("OAUTH_TOKEN_ENDPOINT", ""),
                userinfo_endpoint=os.getenv("OAUTH_USERINFO_ENDPOINT") or None,
                signing_secret=os.getenv("OAUTH_SIGNING_SECRET", ""),
                cookie_secret=os.getenv("OAUTH_COOKIE_SECRET", ""),
                environment=os.getenv("NODE_ENV") or os.getenv("ENVIRONMENT", "production"),
                upstream_timeout=float(os.getenv("OAUTH_UPSTREAM_TIMEOUT", "10")),
                cookie_prefix=os.getenv("OAUTH_COOKIE_PREFIX", DEFAULT_COOKIE_PREFIX),
            )

            oauth_scopes = parse_scopes(os.getenv("OAUTH_SCOPES", ""))
            if oauth_scopes:
                config.scopes = oauth_scopes
                logger.info(f"Using custom OAuth scopes: {config.scopes}")
            else:
                logger.info(f"Using default OAuth scopes: {config.scopes}")

            missing_fields = []
            if not config.client_id:
                missing_fields.append("OAUTH_CLIENT_ID")
            if not config.client_secret:
                missing_fields.append("OAUTH_CLIENT_SECRET")
            if not config.redirect_uri:
                missing_fields.append("OAUTH_REDIRECT_URI")
            if not config.authorization_endpoint:
                missing_fields.append("OAUTH_AUTHORIZATION_ENDPOINT")
            if not config.token_endpoint:
                missing_fields.append("OAUTH_TOKEN_ENDPOINT")
            if not config.signing_secret:
                missing_fields.append("OAUTH_SIGNING_SECRET")
            if not config.cookie_secret:
                missing_fields.append("OAUTH_COOKIE_SECRET")

            if missing_fields:
                raise ValueError(
                    f"Missing required environment variables: {', '.join(missing_fields)}"
                )

            if config.is_development:
                logger.warning("Development mode: transaction cookies are sent without the Secure flag")

            logger.info(f"OAuth configuration loaded: {config.authorization_endpoint}")
            return config

        except Exception as e:
            logger.error(f"Failed to load OAuth configuration: {e}")
            raise
