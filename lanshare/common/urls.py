"""Share URL base resolution."""
from __future__ import annotations

from fastapi import Request


def resolve_base_url(request: Request) -> str:
    """PUBLIC_BASE_URL when configured, otherwise the host the client used."""
    configured = request.app.state.settings.public_base_url
    if configured:
        return configured
    return str(request.base_url).rstrip("/")
