# pylint: disable=broad-exception-caught, line-too-long
"""
Definition sources for the Destiny 2 manifest processor.

DefinitionSource is the capability the processor consumes: manifest metadata, the bulk
per-language content snapshot, single and batched entity lookups, and armory search.
BungieDefinitionSource implements it against the Bungie.net Platform API with requests.
"""
import logging
import urllib.parse
from abc import ABC, abstractmethod
from typing import Any

import requests

from constants import (BATCH_LIMIT, BUNGIE_API_BASE, DEFAULT_HEADERS,
                       MANIFEST_DOWNLOAD_TIMEOUT, REQUEST_TIMEOUT,
                       SEARCH_MAX_LIMIT)
from exceptions import BungieAPIError
from helpers import canonicalize_hash, retry_request
from models import ManifestMetadata


class DefinitionSource(ABC):
    """
    Remote capability providing raw manifest definitions.

    Implementations raise on failure; the processor decides which failures are fatal.
    """

    @abstractmethod
    def get_manifest_info(self) -> ManifestMetadata:
        """Fetch the manifest version and per-language content paths."""

    @abstractmethod
    def download_content(self, url: str, timeout: int | None = None) -> dict[str, dict[str, dict]]:
        """Download a full content snapshot: entity type -> hash string -> raw definition."""

    @abstractmethod
    def get_entity(self, entity_type: str, item_hash: int | str) -> dict:
        """Fetch one raw definition."""

    @abstractmethod
    def get_batch(self, entity_type: str, item_hashes: list[int | str]) -> dict[str, Any]:
        """
        Fetch up to BATCH_LIMIT raw definitions.

        Returns:
            dict: {"results": {hash: raw}, "errors": [{"hash": ..., "error": ...}]}
        """

    @abstractmethod
    def search(self, entity_type: str, term: str, limit: int = 10) -> list[dict]:
        """Search definitions by display text."""


class BungieDefinitionSource(DefinitionSource):
    """
    DefinitionSource backed by the Bungie.net Platform API.

    Batch lookups are emulated with one entity request per hash since the platform
    exposes no batch endpoint.
    """

    def __init__(
        self,
        api_base: str = BUNGIE_API_BASE,
        headers: dict = None,
        timeout: int = REQUEST_TIMEOUT,
        download_timeout: int = MANIFEST_DOWNLOAD_TIMEOUT,
        session: requests.Session = None,
    ):
        """
        Initialize BungieDefinitionSource with API base, headers and timeouts.

        Args:
            api_base (str): Bungie API base URL.
            headers (dict): HTTP headers for requests (must carry X-API-Key).
            timeout (int): Request timeout in seconds for metadata and entity calls.
            download_timeout (int): Timeout in seconds for the bulk content download.
            session (requests.Session): Optional session for connection reuse.
        """
        self.api_base = api_base.rstrip("/")
        self.headers = headers or DEFAULT_HEADERS
        self.timeout = timeout
        self.download_timeout = download_timeout
        self.session = session or requests.Session()

    def _platform_get(self, path: str, tries: int = 3) -> Any:
        """
        GET a Platform endpoint and unwrap the Bungie response envelope (private).

        Raises:
            BungieAPIError: If the envelope reports an error or carries no Response.
            RuntimeError: If the request keeps failing after retries.
        """
        url = f"{self.api_base}{path}"
        resp = retry_request(self.session.get, url, headers=self.headers, timeout=self.timeout, tries=tries)
        data = resp.json()
        error_code = data.get("ErrorCode", 1)
        if error_code != 1:
            raise BungieAPIError(
                f"Bungie API error {data.get('ErrorStatus')}: {data.get('Message')}",
                error_code=error_code,
            )
        if data.get("Response") is None:
            raise BungieAPIError(f"Bungie API returned no Response for {path}", error_code=error_code)
        return data["Response"]

    def get_manifest_info(self) -> ManifestMetadata:
        response = self._platform_get("/Destiny2/Manifest/")
        paths = response.get("jsonWorldContentPaths") or {}
        logging.info("Manifest version %s available in %d languages.", response.get("version"), len(paths))
        return ManifestMetadata(version=str(response.get("version") or ""), contentPathsByLanguage=paths)

    def download_content(self, url: str, timeout: int | None = None) -> dict[str, dict[str, dict]]:
        logging.info("Downloading manifest content: %s", url)
        resp = retry_request(self.session.get, url, timeout=timeout or self.download_timeout)
        return resp.json()

    def get_entity(self, entity_type: str, item_hash: int | str) -> dict:
        norm = canonicalize_hash(item_hash)
        return self._platform_get(f"/Destiny2/Manifest/{entity_type}/{norm}/", tries=1)

    def get_batch(self, entity_type: str, item_hashes: list[int | str]) -> dict[str, Any]:
        if len(item_hashes) > BATCH_LIMIT:
            raise ValueError(f"Maximum {BATCH_LIMIT} entities can be requested in a single batch")
        results: dict[str, dict] = {}
        errors: list[dict] = []
        for h in item_hashes:
            try:
                results[str(h)] = self.get_entity(entity_type, h)
            except Exception as e:
                errors.append({"hash": str(h), "error": str(e)})
        return {"results": results, "errors": errors}

    def search(self, entity_type: str, term: str, limit: int = 10) -> list[dict]:
        max_limit = min(int(limit or 10), SEARCH_MAX_LIMIT)
        encoded = urllib.parse.quote(term, safe="")
        response = self._platform_get(f"/Destiny2/Armory/Search/{entity_type}/{encoded}/", tries=1)
        results = (response.get("results") or {}).get("results") or []
        return results[:max_limit]
