"""Link tokens for the public recording page."""

import secrets

# 24 random bytes -> 192 bits, rendered as 32 URL-safe characters.
LINK_TOKEN_BYTES = 24


def new_link_token() -> str:
    """Return an unguessable, URL-safe token for one assignment's recording link."""
    return secrets.token_urlsafe(LINK_TOKEN_BYTES)


def recording_link(base_url: str, token: str) -> str:
    return f"{base_url}/record/{token}"
