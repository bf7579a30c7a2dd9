"""
UI templates for the OAuth front door

Every value interpolated into the page comes from a client registration or
configuration and is HTML-escaped.
"""

import logging
from html import escape
from typing import List
from urllib.parse import urlparse

from .models import OAuthClientInfo

logger = logging.getLogger(__name__)


def get_redirect_domain(redirect_uri: str) -> str:
    """Extract a display domain from a redirect URI"""
    try:
        parsed = urlparse(redirect_uri)
    except ValueError:
        return "Unknown Domain"
    if parsed.netloc:
        return parsed.netloc
    # Custom schemes such as vscode://
    return f"{parsed.scheme}://" if parsed.scheme else "Unknown Domain"


def render_consent_page(client: OAuthClientInfo, redirect_uri: str, scopes: List[str],
                        transaction_state: str, consent_token: str,
                        action_url: str = "/authorize/consent") -> str:
    """Generate the consent page HTML"""
    client_name = escape(client.client_name or client.client_id)
    client_uri = escape(client.client_uri or "#", quote=True)
    logo_html = ""
    if client.logo_uri:
        logo_html = f'<img class="logo" src="{escape(client.logo_uri, quote=True)}" alt="{client_name} logo">'

    scope_items = "\n".join(
        f"                <li>{escape(scope)}</li>" for scope in scopes if scope
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Authorize {client_name}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: #f6f7f7;
            color: #1d2327;
            display: flex;
            justify-content: center;
            padding: 48px 16px;
        }}
        .card {{
            background: #fff;
            border-radius: 8px;
            box-shadow: 0 1px 3px rgba(0, 0, 0, 0.12);
            max-width: 440px;
            width: 100%;
            padding: 32px;
        }}
        .logo {{ max-height: 48px; margin-bottom: 16px; }}
        .redirect {{ color: #50575e; font-size: 14px; word-break: break-all; }}
        ul.scopes {{ padding-left: 20px; }}
        .actions {{ display: flex; gap: 12px; margin-top: 24px; }}
        button {{ flex: 1; padding: 10px; border-radius: 4px; font-size: 15px; cursor: pointer; }}
        .approve {{ background: #1d4fc4; color: #fff; border: none; }}
        .deny {{ background: #fff; color: #1d2327; border: 1px solid #c3c4c7; }}
    </style>
</head>
<body>
    <div class="card">
        {logo_html}
        <h1>Authorize <a href="{client_uri}" rel="noopener noreferrer">{client_name}</a></h1>
        <p>{client_name} is requesting access to your Gravatar account through this MCP server.</p>
        <p class="redirect">You will be redirected to {escape(get_redirect_domain(redirect_uri))}</p>
        <h2>Requested permissions</h2>
        <ul class="scopes">
{scope_items}
        </ul>
        <form method="post" action="{escape(action_url, quote=True)}">
            <input type="hidden" name="transaction_state" value="{escape(transaction_state, quote=True)}">
            <input type="hidden" name="consent_token" value="{escape(consent_token, quote=True)}">
            <div class="actions">
                <button type="submit" name="consent_action" value="deny" class="deny">Deny</button>
                <button type="submit" name="consent_action" value="approve" class="approve">Approve</button>
            </div>
        </form>
    </div>
</body>
</html>
"""
