import hashlib
import json
import logging
from typing import Any, Optional

from .config import Settings, get_settings


def cache_key(method: str, url: str, options: Any) -> str:
    """Stable cache key for a request (method, URL and request options)."""
    raw = json.dumps([method.upper(), url, options], sort_keys=True, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def join_uri(base: str, uri: str = "") -> str:
    """Join a base URI and a relative path; absolute URIs are returned as is."""
    if uri.startswith(("http://", "https://")) or not base:
        return uri
    if not uri:
        return base
    return f"{base.rstrip('/')}/{uri.lstrip('/')}"


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Set the package log level from settings (LOG_LEVEL)."""
    settings = settings or get_settings()
    logging.getLogger("dataquery").setLevel(settings.log_level)
