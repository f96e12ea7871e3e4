"""Durable storage for exported videos and optionally uploaded frames."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath
from typing import Optional, Protocol, Union
from urllib.parse import quote, unquote, urlparse

import requests

from video_export import logging_manager as log_mgr
from video_export.config_manager import ExportSettings
from video_export.errors import UploadError

logger = log_mgr.get_logger().getChild("storage")

PathLikeStr = Union[str, os.PathLike[str]]


class ObjectStore(Protocol):
    """Key/value blob storage addressed by public URLs."""

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public URL."""
        ...

    def delete(self, url: str) -> None:
        """Remove the object previously returned by :meth:`put`."""
        ...


def _relative_key(key: str) -> PurePosixPath:
    relative = PurePosixPath(key.replace("\\", "/"))
    if relative.is_absolute() or any(part == ".." for part in relative.parts):
        raise UploadError(f"Object key must be a relative path without '..': {key!r}")
    parts = [part for part in relative.parts if part not in {"", "."}]
    if not parts:
        raise UploadError("Object key must not be empty")
    return PurePosixPath(*parts)


class LocalObjectStore:
    """Store objects as files under ``storage_dir``.

    URLs are built from ``base_url`` when one is configured and fall back to
    ``file://`` URIs otherwise.
    """

    def __init__(self, storage_dir: PathLikeStr, *, base_url: Optional[str] = None) -> None:
        root = Path(storage_dir).expanduser()
        if not root.is_absolute():
            root = Path.cwd() / root
        self._root = root.resolve()
        self._base_url = (base_url or "").rstrip("/")

    @property
    def storage_root(self) -> Path:
        return self._root

    def resolve_path(self, key: str) -> Path:
        return self._root.joinpath(*_relative_key(key).parts)

    def resolve_url(self, key: str) -> str:
        relative = _relative_key(key)
        if not self._base_url:
            return self.resolve_path(key).as_uri()
        encoded = "/".join(quote(part) for part in relative.parts)
        return f"{self._base_url}/{encoded}"

    def _path_for_url(self, url: str) -> Optional[Path]:
        if self._base_url and url.startswith(self._base_url + "/"):
            return self.resolve_path(unquote(url[len(self._base_url) + 1 :]))
        parsed = urlparse(url)
        if parsed.scheme == "file":
            candidate = Path(unquote(parsed.path)).resolve()
            if candidate.is_relative_to(self._root):
                return candidate
        return None

    def put(self, key: str, data: bytes, content_type: str) -> str:
        target = self.resolve_path(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise UploadError(f"Failed to write {key}: {exc}") from exc
        url = self.resolve_url(key)
        logger.debug(
            "Stored object",
            extra={
                "event": "storage.local.put",
                "attributes": {"key": key, "bytes": len(data), "content_type": content_type},
            },
        )
        return url

    def delete(self, url: str) -> None:
        path = self._path_for_url(url)
        if path is None:
            raise UploadError(f"URL does not belong to this store: {url}")
        path.unlink(missing_ok=True)


class HttpBlobStore:
    """Blob API speaking ``PUT {api_url}/{key}`` and ``DELETE {url}``."""

    def __init__(
        self,
        api_url: str,
        *,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout_seconds: float = 300.0,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._session = session or requests.Session()
        self._owns_session = session is None
        self._timeout = timeout_seconds

    def _headers(self, **extra: str) -> dict:
        headers = dict(extra)
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def put(self, key: str, data: bytes, content_type: str) -> str:
        relative = _relative_key(key)
        target = f"{self._api_url}/{relative.as_posix()}"
        try:
            response = self._session.put(
                target,
                data=data,
                headers=self._headers(**{"Content-Type": content_type}),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise UploadError(f"Upload of {key} failed: {exc}") from exc
        if response.status_code >= 400:
            raise UploadError(f"Upload of {key} failed with HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        url = payload.get("url") if isinstance(payload, dict) else None
        return url or target

    def delete(self, url: str) -> None:
        try:
            response = self._session.delete(url, headers=self._headers(), timeout=self._timeout)
        except requests.RequestException as exc:
            raise UploadError(f"Delete of {url} failed: {exc}") from exc
        if response.status_code >= 400 and response.status_code != 404:
            raise UploadError(f"Delete of {url} failed with HTTP {response.status_code}")

    def close(self) -> None:
        if self._owns_session:
            self._session.close()


def create_object_store(settings: ExportSettings) -> ObjectStore:
    """Return the blob API store when configured, else local files."""

    if settings.blob_api_url:
        return HttpBlobStore(settings.blob_api_url, token=settings.blob_token_value())
    return LocalObjectStore(settings.storage_dir, base_url=settings.storage_base_url)


__all__ = ["HttpBlobStore", "LocalObjectStore", "ObjectStore", "create_object_store"]
