import ipaddress
from typing import Annotated

from app.service.auth_service import ClientInfo as ClientInfoModel

from fastapi import Depends, Header, Request


def is_valid_ip(ip_str: str) -> bool:
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def is_private_ip(ip_str: str) -> bool:
    try:
        return ipaddress.ip_address(ip_str).is_private
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """
    Get the client's real IP address
    Supports IPv4 and IPv6 behind Cloudflare and standard reverse proxies
    """
    headers = request.headers

    for header in ("CF-Connecting-IP", "True-Client-IP"):
        value = headers.get(header)
        if value and is_valid_ip(value.strip()):
            return value.strip()

    forwarded_for = headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For may contain multiple IPs, take the first public one
        for ip_str in forwarded_for.split(","):
            ip = ip_str.strip()
            if is_valid_ip(ip) and not is_private_ip(ip):
                return ip

    real_ip = headers.get("X-Real-IP")
    if real_ip and is_valid_ip(real_ip.strip()):
        return real_ip.strip()

    client_ip = request.client.host if request.client else "127.0.0.1"
    return client_ip if is_valid_ip(client_ip) else "127.0.0.1"


IPAddress = Annotated[str, Depends(get_client_ip)]


def get_client_info(
    ip_address: IPAddress,
    user_agent: str | None = Header(None, include_in_schema=False),
) -> ClientInfoModel:
    return ClientInfoModel(ip_address=ip_address, user_agent=user_agent[:512] if user_agent else None)


ClientInfo = Annotated[ClientInfoModel, Depends(get_client_info)]
