"""Request origin helpers."""

from __future__ import annotations

from fastapi import Request


def client_address(request: Request, *, trusted_proxy_hops: int = 0) -> str:
    """Origin address of the caller.

    X-Forwarded-For is only read when the app sits behind known proxies.
    Each trusted proxy appends one hop, so the client address is the
    ``trusted_proxy_hops``-th entry counted from the right. Entries further
    left are supplied by the client and ignored.
    """
    if trusted_proxy_hops > 0:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
            if hops:
                return hops[-min(trusted_proxy_hops, len(hops))]
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
