"""URL normalisation and outbound-fetch safety checks."""

import ipaddress
import logging
from typing import Optional
from urllib.parse import urlparse

from .errors import ValidationError

logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2048
ALLOWED_SCHEMES = ("http", "https")


def normalize_url(raw: str) -> str:
    """Trim, default the scheme to https, and validate.

    Raises:
        ValidationError: empty input, unsupported scheme, no host, or too long
    """
    url = (raw or "").strip()
    if not url:
        raise ValidationError("URL is required", user_message="Please enter a website URL.")

    if "://" not in url:
        url = f"https://{url}"

    if len(url) > MAX_URL_LENGTH:
        raise ValidationError(
            f"URL exceeds {MAX_URL_LENGTH} characters",
            user_message="That URL is too long.",
        )

    parsed = urlparse(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise ValidationError(
            f"Unsupported URL scheme: {parsed.scheme}",
            user_message="Only http and https URLs are supported.",
        )
    if not parsed.hostname:
        raise ValidationError(
            f"URL has no host: {url}",
            user_message="Please enter a valid website URL.",
        )
    return url


def extract_domain(url: str) -> str:
    """Host without scheme, port or a leading www."""
    host = urlparse(url if "://" in url else f"https://{url}").hostname or ""
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def is_private_host(host: Optional[str]) -> bool:
    """True for localhost and RFC 1918 / loopback literals."""
    if not host:
        return True
    host = host.lower().strip("[]")
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


def is_fetchable_url(url: str) -> bool:
    """Whether an outbound collaborator may request this URL."""
    if not url or len(url) > MAX_URL_LENGTH:
        return False
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_SCHEMES:
        return False
    if is_private_host(parsed.hostname):
        logger.warning(f"Refusing to fetch private address: {parsed.hostname}")
        return False
    return True
