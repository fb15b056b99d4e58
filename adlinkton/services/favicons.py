"""Favicon acquisition and the on-disk favicon cache.

Favicons are stored flat in one directory shared by every user, named after
the md5 of the link's domain. A domain maps to at most one file; when no icon
can be fetched a small SVG with the domain's initial is written instead.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

import httpx
from flask import current_app


logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Adlinkton Favicon Fetcher)",
    "Accept": "image/*,*/*;q=0.8",
}

FAVICON_CANDIDATES = ("favicon.ico", "favicon.png", "apple-touch-icon.png")
CACHE_EXTENSIONS = ("png", "jpg", "gif", "ico", "svg")

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/x-icon": "ico",
    "image/vnd.microsoft.icon": "ico",
}

_DATA_URL_RE = re.compile(r"^data:image/([\w.+-]+);base64,(.+)$", re.DOTALL)

_FALLBACK_SVG = """<svg xmlns="http://www.w3.org/2000/svg" width="32" height="32" viewBox="0 0 32 32">
  <rect width="32" height="32" fill="{color}" rx="4"/>
  <text x="16" y="22" text-anchor="middle" fill="white" font-family="Arial, sans-serif" font-size="18" font-weight="bold">{letter}</text>
</svg>
"""


def sniff_image_type(content: bytes) -> str | None:
    head = content[:16]
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if head.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if head.startswith(b"GIF87a") or head.startswith(b"GIF89a"):
        return "image/gif"
    # ICO and CUR share the same directory header
    if head[:4] in (b"\x00\x00\x01\x00", b"\x00\x00\x02\x00"):
        return "image/vnd.microsoft.icon"
    return None


def is_valid_image(content: bytes, max_bytes: int) -> bool:
    if not content or len(content) > max_bytes:
        return False
    return sniff_image_type(content) in MIME_EXTENSIONS


def domain_from_url(url: str) -> str | None:
    value = (url or "").strip()
    if value and "://" not in value:
        value = f"//{value}"
    try:
        host = urlsplit(value).hostname
    except ValueError:
        return None
    if not host or any(ch.isspace() for ch in host):
        return None
    return host


def domain_hash(domain: str) -> str:
    return hashlib.md5(domain.encode("utf-8")).hexdigest()


def fallback_color(domain: str) -> str:
    return f"#{domain_hash(domain)[:6]}"


def fetch_with_timeout(
    url: str,
    timeout: float,
    max_bytes: int,
    max_redirects: int = 3,
    verify: bool = True,
) -> bytes | None:
    """Return the body of a 200 response, or None.

    Bodies larger than ``max_bytes`` are abandoned mid-stream and reported as
    None so an oversized icon never lands in memory in full.
    """
    try:
        with httpx.Client(
            follow_redirects=True,
            max_redirects=max_redirects,
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            verify=verify,
        ) as client:
            with client.stream("GET", url) as response:
                if response.status_code != 200:
                    return None
                chunks = []
                total = 0
                for chunk in response.iter_bytes():
                    total += len(chunk)
                    if total > max_bytes:
                        return None
                    chunks.append(chunk)
                return b"".join(chunks)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.debug("Favicon fetch failed for %s: %s", url, exc)
        return None


@dataclass(frozen=True)
class FaviconStore:
    storage_dir: Path
    public_prefix: str = "/favicons"
    max_bytes: int = 100 * 1024
    max_redirects: int = 3
    verify_tls: bool = True
    default_timeout: float = 3.0

    @classmethod
    def from_config(cls, config) -> FaviconStore:
        return cls(
            storage_dir=Path(config["FAVICON_STORAGE_DIR"]),
            public_prefix=config["FAVICON_PUBLIC_PREFIX"].rstrip("/"),
            max_bytes=int(config["FAVICON_MAX_BYTES"]),
            max_redirects=int(config["FAVICON_MAX_REDIRECTS"]),
            verify_tls=bool(config["FAVICON_VERIFY_TLS"]),
            default_timeout=float(config["FAVICON_FETCH_TIMEOUT"]),
        )

    def public_path(self, filename: str) -> str:
        return f"{self.public_prefix}/{filename}"

    def existing(self, domain: str) -> str | None:
        digest = domain_hash(domain)
        for ext in CACHE_EXTENSIONS:
            if (self.storage_dir / f"{digest}.{ext}").is_file():
                return self.public_path(f"{digest}.{ext}")
        return None

    def fetch(self, url: str, timeout: float | None = None) -> str | None:
        """Resolve a favicon for ``url``: cache, then network, then fallback."""
        domain = domain_from_url(url)
        if not domain:
            return None

        cached = self.existing(domain)
        if cached:
            return cached

        timeout = self.default_timeout if timeout is None else timeout
        try:
            for candidate in FAVICON_CANDIDATES:
                content = fetch_with_timeout(
                    f"https://{domain}/{candidate}",
                    timeout=timeout,
                    max_bytes=self.max_bytes,
                    max_redirects=self.max_redirects,
                    verify=self.verify_tls,
                )
                if content and is_valid_image(content, self.max_bytes):
                    return self.save(content, domain)
            return self.generate_fallback(domain)
        except OSError as exc:
            logger.warning("Could not write favicon for %s: %s", domain, exc)
            return None

    def save_data_url(self, data_url: str, url: str) -> str | None:
        match = _DATA_URL_RE.match((data_url or "").strip())
        if not match:
            return None
        try:
            payload = "".join(match.group(2).split())
            content = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            return None
        if not is_valid_image(content, self.max_bytes):
            return None

        domain = domain_from_url(url)
        if not domain:
            return None
        cached = self.existing(domain)
        if cached:
            return cached
        try:
            return self.save(content, domain)
        except OSError as exc:
            logger.warning("Could not write inline favicon for %s: %s", domain, exc)
            return None

    def save(self, content: bytes, domain: str) -> str:
        ext = MIME_EXTENSIONS.get(sniff_image_type(content) or "", "png")
        return self._write(domain, ext, content)

    def generate_fallback(self, domain: str) -> str:
        svg = _FALLBACK_SVG.format(color=fallback_color(domain), letter=domain[0].upper())
        return self._write(domain, "svg", svg.encode("utf-8"))

    def _write(self, domain: str, ext: str, content: bytes) -> str:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        digest = domain_hash(domain)
        filename = f"{digest}.{ext}"
        (self.storage_dir / filename).write_bytes(content)
        for other in CACHE_EXTENSIONS:
            if other != ext:
                (self.storage_dir / f"{digest}.{other}").unlink(missing_ok=True)
        return self.public_path(filename)


def get_favicon_store() -> FaviconStore:
    return current_app.extensions["favicon_store"]
