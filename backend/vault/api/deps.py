# vault/api/deps.py

from fastapi import Request

from vault.core.message import MessageService
from vault.infra.log_store import LogStore
from vault.services.subscriber_registry import SubscriberRegistry

IPV4_MAPPED_PREFIX = "::ffff:"


def get_service(request: Request) -> MessageService:
    return request.app.state.service


def get_store(request: Request) -> LogStore:
    return request.app.state.store


def get_registry(request: Request) -> SubscriberRegistry:
    return request.app.state.registry


def client_address(request: Request) -> str:
    """
    Viewer identity used for seenBy and deviceInfo: first X-Forwarded-For hop,
    else the transport peer, with an IPv4-mapped prefix removed.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        address = forwarded.split(",")[0].strip()
    elif request.client and request.client.host:
        address = request.client.host
    else:
        address = "Unknown"

    if address.startswith(IPV4_MAPPED_PREFIX):
        address = address[len(IPV4_MAPPED_PREFIX):]
    return address or "Unknown"


def device_info(request: Request) -> dict:
    return {
        "userAgent": request.headers.get("user-agent") or "Unknown",
        "ip": client_address(request),
    }
