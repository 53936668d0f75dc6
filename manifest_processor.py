# pylint: disable=broad-exception-caught, line-too-long
"""
ManifestProcessor module for Destiny 2 manifest management.

Downloads the per-language manifest content snapshot, processes every definition into an
in-memory DefinitionCache, and resolves hash references into nested, human-readable definitions.
Lookups fall back to the remote DefinitionSource on cache misses, in single, batched and
search form, and degrade to None/partial results instead of raising.
"""
import copy
import logging
import threading
from concurrent.futures import Future
from typing import Optional

from constants import (BATCH_LIMIT, BUNGIE_CONTENT_HOST,
                       DAMAGE_TYPE_DEFINITION, DEFAULT_LANGUAGE,
                       DISPLAY_URL_FIELDS, ITEM_CATEGORY_DEFINITION,
                       MANIFEST_DOWNLOAD_TIMEOUT, MAX_RESOLUTION_DEPTH,
                       STAT_DEFINITION)
from definition_cache import DefinitionCache
from definition_source import DefinitionSource
from exceptions import ManifestError, ManifestLanguageUnavailable
from helpers import canonicalize_hash, chunks, content_url
from models import BatchError, BatchResolution, CacheStats, ManifestMetadata


class ManifestProcessor:
    """
    Hash-resolution engine over a processed Destiny 2 manifest snapshot.

    Construct one per application with a DefinitionSource, call initialize() (or let the
    first lookup do it), then resolve definitions with get_definition(),
    batch_get_definitions() and search_definitions(). clear() forces a fresh load.

    Processed definitions are the raw manifest dicts with normalized displayProperties and a
    resolvedHashes map of eagerly resolved children (item categories, damage type, stats).
    """

    def __init__(
        self,
        source: DefinitionSource,
        language: str = DEFAULT_LANGUAGE,
        content_host: str = BUNGIE_CONTENT_HOST,
        download_timeout: int = MANIFEST_DOWNLOAD_TIMEOUT,
        batch_limit: int = BATCH_LIMIT,
        max_depth: int = MAX_RESOLUTION_DEPTH,
        cache: DefinitionCache = None,
    ):
        """
        Initialize ManifestProcessor with its definition source and settings.

        Args:
            source (DefinitionSource): Remote capability for manifest data.
            language (str): Default manifest language for initialize().
            content_host (str): Host prefixed to root-relative icon/screenshot paths.
            download_timeout (int): Timeout in seconds for the bulk content download.
            batch_limit (int): Max hashes per remote batch request.
            max_depth (int): Max nesting of recursive hash resolution.
            cache (DefinitionCache): Optional pre-built cache.
        """
        self.source = source
        self.default_language = language
        self.content_host = content_host
        self.download_timeout = download_timeout
        self.batch_limit = batch_limit
        self.max_depth = max_depth
        self.cache = cache if cache is not None else DefinitionCache()
        self.manifest_metadata: Optional[ManifestMetadata] = None
        self.language: Optional[str] = None
        self._initialized = False
        self._init_lock = threading.Lock()
        self._init_future: Optional[Future] = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def manifest_version(self) -> Optional[str]:
        return self.manifest_metadata.version if self.manifest_metadata else None

    # --- Loading ---

    def initialize(self, language: str = None) -> None:
        """
        Download and process the manifest for a language.

        Concurrent callers share a single in-flight load. Calling again for the loaded
        language is a no-op; a different language replaces the cache.

        Args:
            language (str): Manifest language code; defaults to the processor's language.

        Raises:
            ManifestLanguageUnavailable: If the manifest has no content for the language.
            ManifestError: If metadata fetch, download or processing fails.
        """
        language = language or self.default_language
        while True:
            with self._init_lock:
                if self._initialized and self.language == language:
                    return
                future = self._init_future
                owner = future is None
                if owner:
                    future = Future()
                    self._init_future = future
            if owner:
                break
            future.result()  # re-raises the loader's failure
            # The shared load may have been for another language; re-check.
            if self.language == language:
                return

        try:
            self._load(language)
            future.set_result(True)
        except Exception as e:
            future.set_exception(e)
            raise
        finally:
            with self._init_lock:
                self._init_future = None

    def _load(self, language: str) -> None:
        """Fetch metadata, download content and populate the cache (private)."""
        self._initialized = False
        self.cache.clear()
        try:
            try:
                metadata = self.source.get_manifest_info()
            except Exception as e:
                raise ManifestError(f"Failed to download manifest info: {e}") from e
            self.manifest_metadata = metadata
            logging.info("Downloaded manifest info: version=%s languages=%s", metadata.version, metadata.languages)

            path = metadata.contentPathsByLanguage.get(language)
            if not path:
                raise ManifestLanguageUnavailable(language, metadata.languages)
            url = content_url(path, self.content_host)
            try:
                content = self.source.download_content(url, timeout=self.download_timeout)
            except Exception as e:
                raise ManifestError(f"Failed to download manifest content: {e}") from e
            if not isinstance(content, dict):
                raise ManifestError("Manifest content is not a mapping of entity types")

            try:
                self._populate(content)
            except Exception as e:
                raise ManifestError(f"Failed to process manifest data: {e}") from e
        except Exception:
            self.cache.clear()
            self.manifest_metadata = None
            logging.error("Failed to initialize manifest processor for language %s", language)
            raise
        self.language = language
        self._initialized = True
        logging.info("Processed manifest data for %s: entityTypes=%d totalDefinitions=%d",
                     language, len(content), self.cache.size)

    def _populate(self, content: dict) -> None:
        """
        Process every definition of a content snapshot into the cache (private).

        Child references resolve against the snapshot itself, so entity type order does not
        matter and the bulk load issues no remote calls.
        """
        snapshot: dict[str, dict[int, dict]] = {}
        for entity_type, definitions in content.items():
            table = {}
            for hash_str, raw in (definitions or {}).items():
                try:
                    table[canonicalize_hash(hash_str)] = raw
                except (TypeError, ValueError):
                    logging.debug("Skipping non-numeric key %s in %s", hash_str, entity_type)
            snapshot[entity_type] = table
        for entity_type, table in snapshot.items():
            for item_hash in table:
                self._resolve(entity_type, item_hash, set(), snapshot)

    # --- Processing pipeline ---

    def process_definition(self, definition: dict) -> dict:
        """
        Process a raw definition: clone it, normalize displayProperties and resolve child hashes.

        Children resolve through the cache-or-fetch path and are cached individually.
        Processing an already processed definition yields the same result.

        Args:
            definition (dict): Raw (or processed) manifest definition.

        Returns:
            dict: Processed definition with a resolvedHashes map.
        """
        return self._process(definition, set(), None)

    def _process(self, definition: dict, resolving: set, snapshot: Optional[dict]) -> dict:
        processed = copy.deepcopy({k: v for k, v in definition.items() if k != "resolvedHashes"})

        if processed.get("displayProperties"):
            processed["displayProperties"] = self.resolve_display_properties(processed["displayProperties"])

        resolved = {}
        category_hashes = processed.get("itemCategoryHashes")
        if category_hashes:
            categories = (self._resolve(ITEM_CATEGORY_DEFINITION, h, resolving, snapshot) for h in category_hashes)
            resolved["itemCategories"] = [c for c in categories if c]

        if processed.get("defaultDamageTypeHash"):
            resolved["damageType"] = self._resolve(DAMAGE_TYPE_DEFINITION, processed["defaultDamageTypeHash"], resolving, snapshot)

        stats = (processed.get("stats") or {}).get("stats")
        if stats:
            resolved["stats"] = {}
            for stat_hash, stat_data in stats.items():
                stat_data = {} if stat_data is None else stat_data
                if not isinstance(stat_data, dict):
                    logging.debug("Skipping malformed stat entry %s", stat_hash)
                    continue
                stat_def = self._resolve(STAT_DEFINITION, stat_hash, resolving, snapshot)
                if stat_def:
                    resolved["stats"][str(stat_hash)] = {
                        "definition": stat_def,
                        "value": stat_data.get("value"),
                        "maximum": stat_data.get("maximum"),
                    }

        processed["resolvedHashes"] = resolved
        return processed

    def resolve_display_properties(self, display_properties: dict) -> Optional[dict]:
        """
        Normalize a displayProperties block.

        Name defaults to "Unknown" and description to "". Root-relative asset paths become
        absolute content URLs; absent paths stay None.
        """
        if not display_properties:
            return None
        resolved = dict(display_properties)
        resolved["name"] = display_properties.get("name") or "Unknown"
        resolved["description"] = display_properties.get("description") or ""
        resolved["hasIcon"] = bool(display_properties.get("hasIcon", False))
        for field in DISPLAY_URL_FIELDS:
            resolved[field] = content_url(display_properties.get(field), self.content_host)
        return resolved

    def _resolve(self, entity_type: str, item_hash: int | str, resolving: set, snapshot: Optional[dict] = None) -> Optional[dict]:
        """
        Cache-or-load resolution shared by every lookup path (private).

        Loads from the bulk snapshot while populating, otherwise from the remote source.
        `resolving` holds the (type, hash) chain of the current top-level call and guards
        against cycles in malformed data.
        """
        if not item_hash:
            return None
        try:
            norm = canonicalize_hash(item_hash)
        except (TypeError, ValueError):
            logging.warning("Ignoring invalid hash %r for %s", item_hash, entity_type)
            return None
        cached = self.cache.get(entity_type, norm)
        if cached is not None:
            return cached
        key = (entity_type, norm)
        if key in resolving or len(resolving) >= self.max_depth:
            logging.debug("Skipping nested resolution of %s:%s", entity_type, norm)
            return None

        if snapshot is not None:
            raw = snapshot.get(entity_type, {}).get(norm)
        else:
            try:
                raw = self.source.get_entity(entity_type, norm)
            except Exception as e:
                logging.warning("Failed to fetch definition for %s:%s: %s", entity_type, norm, e)
                return None
        if not raw:
            return None
        return self._process_and_cache(entity_type, norm, raw, resolving, snapshot)

    def _process_and_cache(self, entity_type: str, norm: int, raw: dict, resolving: set, snapshot: Optional[dict] = None) -> dict:
        key = (entity_type, norm)
        resolving.add(key)
        try:
            processed = self._process(raw, resolving, snapshot)
        finally:
            resolving.discard(key)
        self.cache.set(entity_type, norm, processed)
        return processed

    # --- Lookups ---

    def get_definition(self, entity_type: str, item_hash: int | str) -> Optional[dict]:
        """
        Resolve a single hash to its processed definition.

        Serves from the cache when possible; on a miss fetches the definition from the
        source, processes and caches it. Fetch failures are logged and yield None.

        Args:
            entity_type (str): Manifest entity type (e.g., DestinyInventoryItemDefinition).
            item_hash (int | str): Signed or unsigned hash.

        Returns:
            dict or None: Processed definition if resolvable.
        """
        if not self._initialized:
            self.initialize()
        return self._resolve(entity_type, item_hash, set())

    def batch_resolve(self, entity_type: str, item_hashes: list[int | str]) -> BatchResolution:
        """
        Resolve many hashes of one entity type with one remote call per batch of misses.

        Never raises for item or batch failures; those are reported in the errors list.

        Args:
            entity_type (str): Manifest entity type.
            item_hashes (list[int | str]): Hashes to resolve; duplicates collapse.

        Returns:
            BatchResolution: Results keyed by unsigned hash string, plus per-hash errors.
        """
        if not item_hashes:
            return BatchResolution()
        if not self._initialized:
            self.initialize()

        results: dict[str, dict] = {}
        errors: list[BatchError] = []
        uncached: list[int] = []
        seen = set()
        for h in item_hashes:
            try:
                norm = canonicalize_hash(h)
            except (TypeError, ValueError):
                errors.append(BatchError(hash=str(h), error="Invalid hash"))
                continue
            if norm in seen:
                continue
            seen.add(norm)
            definition = self.cache.get(entity_type, norm)
            if definition is not None:
                results[str(norm)] = definition
            else:
                uncached.append(norm)

        for batch in chunks(uncached, self.batch_limit):
            try:
                response = self.source.get_batch(entity_type, batch) or {}
            except Exception as e:
                logging.warning("Batch definition fetch failed for %s (%d hashes): %s", entity_type, len(batch), e)
                errors.extend(BatchError(hash=str(h), error=str(e)) for h in batch)
                continue
            for hash_str, raw in (response.get("results") or {}).items():
                if not raw:
                    continue
                try:
                    norm = canonicalize_hash(hash_str)
                except (TypeError, ValueError):
                    continue
                try:
                    results[str(norm)] = self._process_and_cache(entity_type, norm, raw, set())
                except Exception as e:
                    logging.warning("Failed to process definition %s:%s: %s", entity_type, norm, e)
                    errors.append(BatchError(hash=str(norm), error=str(e)))
            failed = {e.hash for e in errors}
            for err in response.get("errors") or []:
                err_hash = str(err.get("hash", err.get("hashId")))
                try:
                    err_hash = str(canonicalize_hash(err_hash))
                except (TypeError, ValueError):
                    pass
                failed.add(err_hash)
                errors.append(BatchError(hash=err_hash, error=str(err.get("error"))))
            for norm in batch:
                if str(norm) not in results and str(norm) not in failed:
                    errors.append(BatchError(hash=str(norm), error="Definition not found"))

        if errors:
            logging.warning("Batch lookup for %s resolved %d of %d hashes", entity_type, len(results), len(seen))
        return BatchResolution(results=results, errors=errors)

    def batch_get_definitions(self, entity_type: str, item_hashes: list[int | str]) -> dict[str, dict]:
        """Resolve many hashes; returns unsigned hash string -> processed definition."""
        return self.batch_resolve(entity_type, item_hashes).results

    def search_definitions(self, entity_type: str, search_term: str, limit: int = 10) -> list[dict]:
        """
        Search definitions by display name or description.

        Prefers the source's search; if it fails, scans cached definitions of the entity type
        case-insensitively and stops after `limit` matches.

        Args:
            entity_type (str): Manifest entity type.
            search_term (str): Text to search for.
            limit (int): Maximum number of results.

        Returns:
            list[dict]: Matching definitions.
        """
        if not self._initialized:
            self.initialize()
        try:
            found = self.source.search(entity_type, search_term, limit)
            return [self._with_display_properties(r) for r in found or []]
        except Exception as e:
            logging.warning("Definition search failed for %s, scanning cache: %s", entity_type, e)

        results = []
        if limit <= 0:
            return results
        term = (search_term or "").lower()
        for _, definition in self.cache.items(entity_type):
            dp = definition.get("displayProperties") or {}
            name = (dp.get("name") or "").lower()
            description = (dp.get("description") or "").lower()
            if term in name or term in description:
                results.append(definition)
                if len(results) >= limit:
                    break
        return results

    def _with_display_properties(self, result: dict) -> dict:
        out = dict(result)
        if out.get("displayProperties"):
            out["displayProperties"] = self.resolve_display_properties(out["displayProperties"])
        return out

    # --- Lifecycle ---

    def clear(self) -> None:
        """Drop all cached definitions and manifest metadata; the next lookup reloads."""
        with self._init_lock:
            self.cache.clear()
            self.manifest_metadata = None
            self.language = None
            self._initialized = False

    def get_cache_stats(self) -> CacheStats:
        return CacheStats(
            manifestVersion=self.manifest_version,
            definitionCount=self.cache.size,
            isInitialized=self._initialized,
            language=self.language,
        )
