from __future__ import annotations

import ipaddress
import secrets
from functools import lru_cache

from fastapi import Request

IpNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


class InternalAccessDenied(Exception):
    def __init__(self, reason: str, *, client_ip: str | None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.client_ip = client_ip


def is_valid_internal_token(*, expected_token: str, received_token: str | None) -> bool:
    if not expected_token or not received_token:
        return False
    return secrets.compare_digest(expected_token, received_token)


@lru_cache(maxsize=32)
def _parse_networks(networks_csv: str) -> tuple[IpNetwork, ...]:
    networks: list[IpNetwork] = []
    for raw_entry in networks_csv.split(","):
        entry = raw_entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return tuple(networks)


def _parse_ip(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def is_client_ip_allowed(*, client_ip: str | None, allowlist: str) -> bool:
    parsed = _parse_ip(client_ip)
    if parsed is None:
        return False
    address = ipaddress.ip_address(parsed)
    return any(address in network for network in _parse_networks(allowlist))


def extract_client_ip(request: Request, *, trusted_proxies: str = "") -> str | None:
    """Peer address, or the first X-Forwarded-For hop when the peer is a trusted proxy."""
    peer_ip = _parse_ip(request.client.host if request.client is not None else None)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for and is_client_ip_allowed(client_ip=peer_ip, allowlist=trusted_proxies):
        return _parse_ip(forwarded_for.split(",", maxsplit=1)[0])
    return peer_ip


def check_internal_access(
    request: Request,
    *,
    expected_token: str,
    allowlist: str,
    trusted_proxies: str = "",
) -> str | None:
    client_ip = extract_client_ip(request, trusted_proxies=trusted_proxies)
    if not is_client_ip_allowed(client_ip=client_ip, allowlist=allowlist):
        raise InternalAccessDenied("ip_not_allowed", client_ip=client_ip)
    if not is_valid_internal_token(
        expected_token=expected_token,
        received_token=request.headers.get("X-Internal-Token"),
    ):
        raise InternalAccessDenied("invalid_credentials", client_ip=client_ip)
    return client_ip
