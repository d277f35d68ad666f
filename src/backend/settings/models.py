from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..net.proxy import UpstreamConfig


DEFAULT_PORT = 443
DEFAULT_DEV_PORT = 3004
DEFAULT_PAGE_SIZE = 10
DEFAULT_MAX_PAGE_SIZE = 50
DEFAULT_INSTALL_ESTIMATE_S = 30


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _str(value: Any, default: str) -> str:
    if value is None:
        return default
    return str(value) or default


@dataclass
class ServerSection:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    dev_host: str = "127.0.0.1"
    dev_port: int = DEFAULT_DEV_PORT
    base_url: str = "https://localhost"
    ssl_key_path: str = "certs/server.key"
    ssl_cert_path: str = "certs/server.crt"

    def to_persist_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "dev_host": self.dev_host,
            "dev_port": self.dev_port,
            "base_url": self.base_url,
            "ssl": {"key_path": self.ssl_key_path, "cert_path": self.ssl_cert_path},
        }

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "ServerSection":
        d = cls()
        ssl = data.get("ssl") if isinstance(data.get("ssl"), dict) else {}
        return cls(
            host=_str(data.get("host"), d.host),
            port=_int(data.get("port"), d.port),
            dev_host=_str(data.get("dev_host"), d.dev_host),
            dev_port=_int(data.get("dev_port"), d.dev_port),
            base_url=_str(data.get("base_url"), d.base_url),
            ssl_key_path=_str(ssl.get("key_path"), d.ssl_key_path),
            ssl_cert_path=_str(ssl.get("cert_path"), d.ssl_cert_path),
        )


@dataclass
class PaginationSection:
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = DEFAULT_MAX_PAGE_SIZE

    def to_persist_dict(self) -> dict[str, Any]:
        return {"default_page_size": self.default_page_size, "max_page_size": self.max_page_size}

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "PaginationSection":
        default_size = max(1, _int(data.get("default_page_size"), DEFAULT_PAGE_SIZE))
        max_size = max(1, _int(data.get("max_page_size"), DEFAULT_MAX_PAGE_SIZE))
        return cls(default_page_size=default_size, max_page_size=max_size)


@dataclass
class DownloadSection:
    max_concurrent_downloads: int = 3
    retry_attempts: int = 3
    timeout_seconds: int = 300

    def to_persist_dict(self) -> dict[str, Any]:
        return {
            "max_concurrent_downloads": self.max_concurrent_downloads,
            "retry_attempts": self.retry_attempts,
            "timeout_seconds": self.timeout_seconds,
        }

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "DownloadSection":
        d = cls()
        return cls(
            max_concurrent_downloads=_int(data.get("max_concurrent_downloads"), d.max_concurrent_downloads),
            retry_attempts=_int(data.get("retry_attempts"), d.retry_attempts),
            timeout_seconds=_int(data.get("timeout_seconds"), d.timeout_seconds),
        )


@dataclass
class LoggingSection:
    level: str = "INFO"
    log_requests: bool = False
    file: str = ""  # empty: console only

    def to_persist_dict(self) -> dict[str, Any]:
        return {"level": self.level, "log_requests": self.log_requests, "file": self.file}

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "LoggingSection":
        return cls(
            level=_str(data.get("level"), "INFO").upper(),
            log_requests=bool(data.get("log_requests", False)),
            file=str(data.get("file", "") or ""),
        )


@dataclass
class TaskSection:
    strict_transitions: bool = False
    install_estimated_time_s: int = DEFAULT_INSTALL_ESTIMATE_S

    def to_persist_dict(self) -> dict[str, Any]:
        return {
            "strict_transitions": self.strict_transitions,
            "install_estimated_time_s": self.install_estimated_time_s,
        }

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "TaskSection":
        return cls(
            strict_transitions=bool(data.get("strict_transitions", False)),
            install_estimated_time_s=_int(data.get("install_estimated_time_s"), DEFAULT_INSTALL_ESTIMATE_S),
        )


@dataclass
class CatalogSection:
    # Where icons and APKs are served from; empty means "<public base>/static/store".
    asset_base_url: str = ""
    privacy_agreement_updated_at: str = "2025-06-06 14:03:31"

    def to_persist_dict(self) -> dict[str, Any]:
        return {
            "asset_base_url": self.asset_base_url,
            "privacy_agreement_updated_at": self.privacy_agreement_updated_at,
        }

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "CatalogSection":
        d = cls()
        return cls(
            asset_base_url=str(data.get("asset_base_url", "") or ""),
            privacy_agreement_updated_at=_str(data.get("privacy_agreement_updated_at"), d.privacy_agreement_updated_at),
        )


@dataclass
class ServerConfig:
    server: ServerSection = field(default_factory=ServerSection)
    pagination: PaginationSection = field(default_factory=PaginationSection)
    download: DownloadSection = field(default_factory=DownloadSection)
    logging: LoggingSection = field(default_factory=LoggingSection)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    tasks: TaskSection = field(default_factory=TaskSection)
    catalog: CatalogSection = field(default_factory=CatalogSection)
    # Runtime only, set from the environment; never persisted.
    dev_mode: bool = False

    @property
    def listen_host(self) -> str:
        return self.server.dev_host if self.dev_mode else self.server.host

    @property
    def listen_port(self) -> int:
        return self.server.dev_port if self.dev_mode else self.server.port

    def public_base_url(self) -> str:
        if self.dev_mode:
            return f"http://{self.server.dev_host}:{self.server.dev_port}"
        return self.server.base_url.rstrip("/")

    def asset_base_url(self) -> str:
        if self.catalog.asset_base_url.strip():
            return self.catalog.asset_base_url.strip().rstrip("/")
        return f"{self.public_base_url()}/static/store"

    def to_persist_dict(self) -> dict[str, Any]:
        return {
            "version": 1,
            "server": self.server.to_persist_dict(),
            "pagination": self.pagination.to_persist_dict(),
            "download": self.download.to_persist_dict(),
            "logging": self.logging.to_persist_dict(),
            "upstream": self.upstream.to_persist_dict(),
            "tasks": self.tasks.to_persist_dict(),
            "catalog": self.catalog.to_persist_dict(),
        }

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "ServerConfig":
        def section(name: str) -> dict[str, Any]:
            raw = data.get(name)
            return raw if isinstance(raw, dict) else {}

        return cls(
            server=ServerSection.from_persist_dict(section("server")),
            pagination=PaginationSection.from_persist_dict(section("pagination")),
            download=DownloadSection.from_persist_dict(section("download")),
            logging=LoggingSection.from_persist_dict(section("logging")),
            upstream=UpstreamConfig.from_persist_dict(section("upstream")),
            tasks=TaskSection.from_persist_dict(section("tasks")),
            catalog=CatalogSection.from_persist_dict(section("catalog")),
        )
