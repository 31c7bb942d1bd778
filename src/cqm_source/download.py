"""
Measure bundle download.

Fetches a bundle archive over HTTP so it can be served by BundleSource.
Uses a small retry/backoff, and raises BundleDownloadError once all attempts
have failed.

Environment
-----------
CQMS_BUNDLE_URL : Optional default bundle URL for the ``download`` command
"""

from __future__ import annotations

import os
import pathlib
import posixpath
import time
from urllib.parse import urlparse

import requests


class BundleDownloadError(RuntimeError):
    """Raised when a measure bundle cannot be downloaded."""


DEFAULT_BUNDLE_URL = os.getenv("CQMS_BUNDLE_URL", "")
DEFAULT_BUNDLE_NAME = "bundle.zip"


def _sleep_backoff(i: int) -> None:
    """
    Sleep using a small exponential backoff.
    Sequence ~ 0.25s, 0.5s, 1s, 2s.
    """
    time.sleep(0.25 * (2**i))


def _request_content(url: str, *, timeout: float = 30.0, attempts: int = 4) -> bytes:
    """
    GET raw bytes, retrying on network/HTTP problems.
    """
    last_exc: Exception | None = None
    for i in range(attempts):
        try:
            resp = requests.get(url, timeout=timeout)
            resp.raise_for_status()
            return resp.content
        except requests.RequestException as e:
            last_exc = e
            if i < attempts - 1:
                _sleep_backoff(i)
    assert last_exc is not None
    raise BundleDownloadError(f"Failed GET {url}: {last_exc}") from last_exc


def bundle_file_name(url: str) -> str:
    """Last path segment of ``url``, or DEFAULT_BUNDLE_NAME if it has none."""
    name = posixpath.basename(urlparse(url).path)
    return name or DEFAULT_BUNDLE_NAME


def download_bundle(url: str, dest_dir: str | pathlib.Path, *, timeout: float = 30.0) -> pathlib.Path:
    """
    Download the bundle at ``url`` into ``dest_dir`` and return the saved path.
    """
    if not url:
        raise BundleDownloadError("No bundle URL given (set CQMS_BUNDLE_URL or pass --url)")
    dest_dir = pathlib.Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    content = _request_content(url, timeout=timeout)
    out = dest_dir / bundle_file_name(url)
    with open(out, "wb") as f:
        f.write(content)
    return out
