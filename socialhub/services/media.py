# socialhub/services/media.py
import base64
import binascii
import ipaddress
import logging
import socket
from typing import Callable, List, Optional

import httpx

from socialhub.config import settings
from socialhub.errors import ValidationError

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_REDIRECTS = 5


def decode_base64_image(data: str) -> bytes:
    # accept data URLs as sent by browsers: "data:image/png;base64,...."
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("imageBase64 is not valid base64")
    if not raw:
        raise ValidationError("imageBase64 is empty")
    if len(raw) > MAX_IMAGE_BYTES:
        raise ValidationError("Image is larger than 10 MB")
    return raw


def resolve_addresses(host: str) -> List[str]:
    """IP addresses a hostname resolves to; an IP literal resolves to itself."""
    try:
        return [str(ipaddress.ip_address(host))]
    except ValueError:
        pass
    try:
        infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError):
        return []
    return sorted({info[4][0] for info in infos})


def is_public_address(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    if ip.version == 6 and ip.ipv4_mapped:
        ip = ip.ipv4_mapped
    return ip.is_global and not ip.is_multicast


class MediaFetcher:
    """
    Downloads images referenced by ``mediaUrl`` so they can be uploaded to providers.

    Only hosts that resolve exclusively to public addresses are fetched, and
    redirects are followed one hop at a time so every hop is checked the same
    way. The body is streamed and the download stops once it passes the size cap.
    """

    def __init__(self, http: Optional[httpx.Client] = None, resolver: Optional[Callable[[str], List[str]]] = None):
        self.http = http or httpx.Client(timeout=settings.http_timeout_seconds)
        self.resolver = resolver or resolve_addresses

    def _check_url(self, url: httpx.URL) -> None:
        if url.scheme not in ("http", "https") or not url.host:
            raise ValidationError("mediaUrl must be an http(s) URL")
        addresses = self.resolver(url.host)
        if not addresses:
            raise ValidationError(f"Could not resolve media host {url.host}")
        if not all(is_public_address(a) for a in addresses):
            logger.warning("[media] refusing non-public host %s (%s)", url.host, ", ".join(addresses))
            raise ValidationError("mediaUrl must point to a public host")

    def fetch(self, url: str) -> bytes:
        try:
            target = httpx.URL(url)
        except httpx.InvalidURL as e:
            raise ValidationError("mediaUrl must be an http(s) URL") from e

        for _ in range(MAX_REDIRECTS + 1):
            self._check_url(target)
            try:
                with self.http.stream("GET", target, follow_redirects=False) as r:
                    if r.is_redirect:
                        target = r.url.join(r.headers["location"])
                        continue
                    return self._read_image(url, r)
            except httpx.HTTPError as e:
                logger.warning("[media] download failed for %s: %s", url, e)
                raise ValidationError(f"Could not download media from {url}") from e
        raise ValidationError(f"Too many redirects downloading {url}")

    def _read_image(self, url: str, r: httpx.Response) -> bytes:
        if r.status_code >= 400:
            logger.warning("[media] download of %s returned %s", url, r.status_code)
            raise ValidationError(f"Could not download media from {url}")
        content_type = r.headers.get("content-type", "")
        if content_type and not content_type.startswith("image/"):
            raise ValidationError("mediaUrl does not point to an image")
        declared = r.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > MAX_IMAGE_BYTES:
            raise ValidationError("Image is larger than 10 MB")

        body = bytearray()
        for chunk in r.iter_bytes():
            body.extend(chunk)
            if len(body) > MAX_IMAGE_BYTES:
                raise ValidationError("Image is larger than 10 MB")
        if not body:
            raise ValidationError(f"Could not download media from {url}")
        return bytes(body)

    def acquire(self, media_url: Optional[str] = None, image_base64: Optional[str] = None) -> Optional[bytes]:
        """Image bytes for a post: inline base64 wins over a URL; None when neither is given."""
        if image_base64:
            return decode_base64_image(image_base64)
        if media_url:
            return self.fetch(media_url)
        return None
