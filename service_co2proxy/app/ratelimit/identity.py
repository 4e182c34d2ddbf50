"""
Client identity extraction for rate limiting.
"""

from fastapi import Request

from .sliding_window import UNKNOWN_IDENTITY


def get_client_id(request: Request) -> str:
    """Extract the caller's address from proxy headers or the socket peer."""
    client_ip = request.headers.get("client-ip")
    if client_ip and client_ip.strip():
        return client_ip.strip()

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_IDENTITY
