"""Unit tests for DefinitionCache."""
# pylint: disable=import-error
from definition_cache import DefinitionCache


def test_signed_and_unsigned_lookups_return_same_object():
    """Test that signed and unsigned forms of a hash address one cache entry."""
    cache = DefinitionCache()
    definition = {"displayProperties": {"name": "Impact"}}
    cache.set("DestinyStatDefinition", -251443477, definition)
    assert cache.get("DestinyStatDefinition", 4043523819) is definition
    assert cache.get("DestinyStatDefinition", "-251443477") is definition
    assert cache.has("DestinyStatDefinition", "4043523819")
    assert ("DestinyStatDefinition", 4043523819) in cache
    assert len(cache) == 1


def test_entity_types_are_separate_namespaces():
    """Test that the same hash under different entity types does not collide."""
    cache = DefinitionCache()
    cache.set("DestinyStatDefinition", 1, {"a": 1})
    assert cache.get("DestinyItemCategoryDefinition", 1) is None
    assert cache.entity_types() == ["DestinyStatDefinition"]


def test_overwrite_keeps_size_and_clear_resets():
    """Test overwriting an entry and clearing the cache."""
    cache = DefinitionCache()
    cache.set("DestinyStatDefinition", 1, {"v": 1})
    cache.set("DestinyStatDefinition", "1", {"v": 2})
    assert cache.size == 1
    assert cache.get("DestinyStatDefinition", 1) == {"v": 2}
    cache.clear()
    assert cache.size == 0
    assert cache.get("DestinyStatDefinition", 1) is None


def test_items_iterates_a_snapshot():
    """Test that items() tolerates writes during iteration."""
    cache = DefinitionCache()
    cache.set("DestinyStatDefinition", 1, {"v": 1})
    cache.set("DestinyStatDefinition", 2, {"v": 2})
    seen = []
    for item_hash, _ in cache.items("DestinyStatDefinition"):
        seen.append(item_hash)
        cache.set("DestinyStatDefinition", item_hash + 100, {"v": 0})
    assert sorted(seen) == [1, 2]
    assert not list(cache.items("DestinyDamageTypeDefinition"))
