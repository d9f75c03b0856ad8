from __future__ import annotations

import json
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

TEAMS_HOSTS = ("teams.microsoft.com", "teams.live.com")


@dataclass(frozen=True)
class JoinUrlInfo:
    user_id: str
    tenant_id: str | None
    join_url: str


def parse_join_url(join_url: str) -> JoinUrlInfo:
    """Extract the organizer (``Oid``) and tenant (``Tid``) from a Teams meeting join URL.

    The ``context`` query parameter holds URL-encoded JSON such as
    ``{"Tid": "<tenant>", "Oid": "<organizer>"}``. Raises ValueError when the
    URL is not a Teams link or carries no organizer.
    """
    parsed = urlparse(join_url)
    host = (parsed.hostname or "").lower()
    if not any(host == known or host.endswith("." + known) for known in TEAMS_HOSTS):
        raise ValueError("Not a valid Teams meeting URL")

    context_values = parse_qs(parsed.query).get("context")
    if not context_values:
        raise ValueError("Missing 'context' parameter in join URL")

    try:
        context = json.loads(context_values[0])
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse join URL context: {exc}") from exc

    user_id = context.get("Oid") if isinstance(context, dict) else None
    if not user_id:
        raise ValueError("Could not extract organizer ID (Oid) from join URL")
    return JoinUrlInfo(user_id=user_id, tenant_id=context.get("Tid"), join_url=join_url)
