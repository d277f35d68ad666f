"""
Upstream origin configuration for requests relayed to the real vendor server.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

DEFAULT_ORIGIN_URL = "https://incall.changan.com.cn"
DEFAULT_HU_TAGS_PATH = "/hu-apigw/evhu/api/push/getHuTags"
DEFAULT_TIMEOUT_S = 30.0


@dataclass
class UpstreamConfig:
    """
    Upstream origin configuration.

    Attributes:
        origin_url: Scheme + host (+ optional port) of the origin server.
        hu_tags_path: Path on the origin that serves the push tag lookup.
        timeout_s: Upper bound for one upstream exchange.
        insecure_skip_verify: Disable TLS certificate validation toward the
            origin. Mock environments only; never on unless configured.
    """
    origin_url: str = DEFAULT_ORIGIN_URL
    hu_tags_path: str = DEFAULT_HU_TAGS_PATH
    timeout_s: float = DEFAULT_TIMEOUT_S
    insecure_skip_verify: bool = False

    @property
    def host(self) -> str:
        return urlparse(self.origin_url.strip()).netloc

    def url_for(self, path: str) -> str:
        return self.origin_url.strip().rstrip("/") + "/" + path.lstrip("/")

    def to_persist_dict(self) -> dict[str, Any]:
        return {
            "origin_url": self.origin_url,
            "hu_tags_path": self.hu_tags_path,
            "timeout_s": self.timeout_s,
            "insecure_skip_verify": self.insecure_skip_verify,
        }

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "UpstreamConfig":
        origin_url = str(data.get("origin_url", "") or DEFAULT_ORIGIN_URL)
        hu_tags_path = str(data.get("hu_tags_path", "") or DEFAULT_HU_TAGS_PATH)
        try:
            timeout_s = float(data.get("timeout_s", DEFAULT_TIMEOUT_S))
        except (TypeError, ValueError):
            timeout_s = DEFAULT_TIMEOUT_S
        if timeout_s <= 0:
            timeout_s = DEFAULT_TIMEOUT_S
        insecure = bool(data.get("insecure_skip_verify", False))
        return cls(
            origin_url=origin_url,
            hu_tags_path=hu_tags_path,
            timeout_s=timeout_s,
            insecure_skip_verify=insecure,
        )

    def validate(self) -> tuple[bool, str]:
        """
        Validate the origin configuration.

        Returns:
            (is_valid, error_message) tuple.
        """
        url = self.origin_url.strip()
        if not url:
            return False, "Upstream origin URL is empty"

        try:
            parsed = urlparse(url)
        except Exception as exc:
            return False, f"Invalid upstream origin URL: {exc}"

        if parsed.scheme.lower() not in {"http", "https"}:
            return False, f"Unsupported upstream scheme: {parsed.scheme or '(none)'}. Use: http, https"

        if not parsed.netloc:
            return False, "Upstream origin URL must include host (and optionally port)"

        if not self.hu_tags_path.startswith("/"):
            return False, "Upstream path must start with '/'"

        return True, ""
