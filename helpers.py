# pylint: disable=broad-except, line-too-long
"""
Utility functions for Destiny 2 manifest hash handling and remote requests.

This module provides:
    - Manifest hash normalization (signed/unsigned 32-bit forms)
    - API request retry logic
    - Content-delivery URL construction for display assets
    - Chunking for capped batch requests
"""
import ctypes
import logging
import time
from typing import Iterator, Optional

import requests

from constants import BUNGIE_CONTENT_HOST


def retry_request(method: callable, url: str, **kwargs) -> requests.Response:
    """
    Perform an API request with exponential backoff retry logic.

    Args:
        method (callable): The requests method (e.g., requests.get).
        url (str): The URL to request.
        **kwargs: Additional arguments for the request, plus 'tries' and 'delay'.

    Returns:
        requests.Response: The response object if successful.

    Raises:
        RuntimeError: If all retry attempts fail.
    """
    tries = kwargs.pop("tries", 3)
    delay = kwargs.pop("delay", 1)
    for attempt in range(tries):
        try:
            response = method(url, **kwargs)
            if response.ok:
                return response
            logging.warning("Request failed (status %d): %s",
                            response.status_code, url)
        except requests.RequestException as exc:
            logging.warning("Request error on attempt %d: %s",
                            attempt + 1, exc)
        if attempt < tries - 1:
            logging.info(
                "Retrying request in %d seconds (attempt %d/%d)", delay, attempt + 2, tries)
            time.sleep(delay)
            delay *= 2
    logging.error("Max retries exceeded for request: %s", url)
    raise RuntimeError(f"Request failed after {tries} attempts: {url}")


def canonicalize_hash(item_hash: int | str) -> int:
    """
    Convert a Destiny 2 hash to its canonical unsigned 32-bit integer form.

    Hashes arrive both as signed values (SQLite ids, some JSON payloads) and as
    unsigned values; either form maps to the same canonical integer.

    Args:
        item_hash (int or str): The hash, as an integer or decimal string.

    Returns:
        int: Unsigned 32-bit integer.

    Raises:
        ValueError: If the input is not integer-like.
    """
    if isinstance(item_hash, str):
        item_hash = item_hash.strip()
    return ctypes.c_uint32(int(item_hash)).value


def signed_hash(item_hash: int | str) -> int:
    """Return the two's complement signed 32-bit twin of a hash."""
    return ctypes.c_int32(canonicalize_hash(item_hash)).value


def content_url(path: Optional[str], host: str = BUNGIE_CONTENT_HOST) -> Optional[str]:
    """
    Build an absolute content-delivery URL from a root-relative asset path.

    Already absolute URLs are returned unchanged so processing the same
    definition twice never double-prefixes. Empty paths yield None.

    Args:
        path (str or None): Root-relative path, e.g. "/common/destiny2_content/icons/x.jpg".
        host (str): Content host to prefix.

    Returns:
        str or None: Absolute URL, or None when there is no path.
    """
    if not path:
        return None
    if path.startswith(("http://", "https://")):
        return path
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{host.rstrip('/')}{path}"


def chunks(items: list, size: int) -> Iterator[list]:
    """Yield successive slices of at most `size` items."""
    for i in range(0, len(items), size):
        yield items[i:i + size]
