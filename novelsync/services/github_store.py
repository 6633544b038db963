"""GitHub repository-contents client used as the chapter file store.

- HTTP client: httpx (bearer token, GitHub v3 JSON)
- ``get_version`` reads the current blob sha of a path (None if absent)
- ``put`` creates or updates a file; pass the sha to update in place
- ``upload`` does both, the way a single chapter write needs it

Paths are plain text until they reach this module; each segment is
percent-encoded here so non-Latin titles survive the URL.
"""

from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from novelsync.models.config import StoreConfig

logger = logging.getLogger(__name__)

_GITHUB_ACCEPT = "application/vnd.github.v3+json"


@dataclass(frozen=True)
class UploadResult:
    success: bool
    message: Optional[str] = None


def normalize_path(path: str) -> str:
    """Collapse repeated slashes and drop a leading slash."""
    return re.sub(r"/+", "/", path or "").lstrip("/")


def encode_path(path: str) -> str:
    return "/".join(quote(seg, safe="") for seg in normalize_path(path).split("/"))


def encode_content(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def _error_message(resp: httpx.Response) -> str:
    fallback = f"HTTP {resp.status_code}"
    try:
        data = resp.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return fallback


class GitHubStore:
    def __init__(
        self,
        config: StoreConfig,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self.api_url = api_url.rstrip("/")
        self._client = httpx.Client(
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {config.token}",
                "Accept": _GITHUB_ACCEPT,
                "User-Agent": "novelsync",
            },
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def repo_url(self) -> str:
        return f"{self.api_url}/repos/{quote(self.config.owner, safe='')}/{quote(self.config.repo, safe='')}"

    def contents_url(self, path: str) -> str:
        return f"{self.repo_url}/contents/{encode_path(path)}"

    def validate(self) -> bool:
        """True when the repository is reachable with the configured token."""
        try:
            r = self._client.get(self.repo_url)
        except httpx.HTTPError as exc:
            logger.error("GitHub validation error: %s", exc)
            return False
        return r.is_success

    def get_version(self, path: str) -> Optional[str]:
        """Return the current sha of ``path`` or None if it does not exist."""
        try:
            r = self._client.get(self.contents_url(path))
        except httpx.HTTPError as exc:
            logger.debug("Version lookup failed for %s: %s", path, exc)
            return None
        if not r.is_success:
            return None
        try:
            data = r.json()
        except ValueError:
            return None
        if isinstance(data, dict) and data.get("sha"):
            return str(data["sha"])
        return None

    def put(self, path: str, content: str, message: str, sha: Optional[str] = None) -> UploadResult:
        body: Dict[str, Any] = {"message": message, "content": encode_content(content)}
        if sha:
            body["sha"] = sha
        try:
            r = self._client.put(self.contents_url(path), json=body)
        except httpx.HTTPError as exc:
            logger.error("GitHub upload error for %s: %s", path, exc)
            return UploadResult(False, str(exc) or "Network error")
        if not r.is_success:
            reason = _error_message(r)
            logger.error("GitHub upload failed [%s] for %s: %s", r.status_code, path, r.text[:500])
            return UploadResult(False, reason)
        return UploadResult(True)

    def upload(self, path: str, content: str, message: str) -> UploadResult:
        """Create or update ``path``, looking up the existing sha first."""
        return self.put(path, content, message, sha=self.get_version(path))
