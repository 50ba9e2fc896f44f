#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
RTX Patcher - Patch definition sources

Fetches the raw patch script of a configured repository over HTTP, or reads
a local copy. The text is returned untouched; parsing happens in the engine.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import requests

from ..config.models import PatchSourceConfig
from ..exceptions import PatchSourceError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "rtx-patcher"


def is_url(value: str) -> bool:
    return value.lower().startswith(("http://", "https://"))


def fetch_url(url: str, session: Optional[requests.Session] = None,
              timeout: float = DEFAULT_TIMEOUT) -> str:
    """GET ``url`` and return its body as text; raises PatchSourceError on failure."""
    http = session or requests
    logger.info(f"Fetching patch definitions from {url}")
    try:
        response = http.get(url, timeout=timeout, headers={"User-Agent": USER_AGENT})
    except requests.RequestException as e:
        logger.error(f"Patch definition download failed: {e}")
        raise PatchSourceError(f"Could not download patch definitions: {e}", url=url) from e

    if response.status_code != 200:
        logger.error(f"Patch definition download failed: HTTP {response.status_code}")
        raise PatchSourceError(
            f"Could not download patch definitions: HTTP {response.status_code}",
            url=url,
            details={"status_code": response.status_code},
        )

    response.encoding = response.encoding or "utf-8"
    text = response.text
    logger.debug(f"Downloaded {len(text)} characters from {url}")
    return text


def fetch_patch_text(source: PatchSourceConfig, session: Optional[requests.Session] = None,
                     timeout: float = DEFAULT_TIMEOUT) -> str:
    return fetch_url(source.url, session=session, timeout=timeout)


def load_patch_text(location: Union[str, Path], session: Optional[requests.Session] = None,
                    timeout: float = DEFAULT_TIMEOUT) -> str:
    """Read definitions from a local file or an http(s) URL."""
    text_location = str(location)
    if is_url(text_location):
        return fetch_url(text_location, session=session, timeout=timeout)

    path = Path(location)
    try:
        return path.read_bytes().decode("utf-8-sig", errors="replace")
    except OSError as e:
        raise PatchSourceError(f"Could not read patch definitions: {e}",
                               details={"path": str(path)}) from e
