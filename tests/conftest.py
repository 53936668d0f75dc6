"""Shared fixtures: a small manifest snapshot and an in-memory DefinitionSource."""
import copy
import threading
from collections import defaultdict

import pytest

# pylint: disable=import-error
from definition_source import DefinitionSource
from exceptions import DefinitionSourceError
from helpers import canonicalize_hash
from manifest_processor import ManifestProcessor
from models import ManifestMetadata

ITEM_HASH = 1363886209
ATTACK_STAT_HASH = 1480404414
IMPACT_STAT_HASH = 4043523819          # stored under its signed form below
IMPACT_STAT_SIGNED = -251443477
RANGE_STAT_HASH = 1240592695
SOLAR_DAMAGE_HASH = 1847026933
WEAPON_CATEGORY_HASH = 1
KINETIC_CATEGORY_HASH = 2
PERKS_SOCKET_CATEGORY_HASH = 4241085061
TRAIT_SOCKET_TYPE_HASH = 1282012138
MISSING_SOCKET_TYPE_HASH = 2614797986
INTRINSIC_PLUG_HASH = 1399201519
TRAIT_PLUG_HASH = 3400784728
ENERGY_TYPE_HASH = 728351493
SANDBOX_PERK_HASH = 1820235745
CONTENT_PATH = "/common/destiny2_content/json/en/aggregate-1.json"


def build_snapshot() -> dict:
    """Per-language content snapshot, entity type -> hash string -> raw definition."""
    return {
        "DestinyInventoryItemDefinition": {
            str(ITEM_HASH): {
                "hash": ITEM_HASH,
                "displayProperties": {
                    "name": "Fatebringer",
                    "description": "Hungry for the Vault.",
                    "icon": "/common/destiny2_content/icons/fatebringer.jpg",
                    "hasIcon": True,
                },
                "screenshot": "/common/destiny2_content/screenshots/fatebringer.jpg",
                "itemType": 1,
                "itemSubType": 17,
                "defaultDamageType": 3,
                "defaultDamageTypeHash": SOLAR_DAMAGE_HASH,
                "itemCategoryHashes": [WEAPON_CATEGORY_HASH, KINETIC_CATEGORY_HASH],
                "classType": 3,
                "inventory": {
                    "tierType": 5,
                    "tierTypeName": "Legendary",
                    "bucketTypeHash": 1498876634,
                    "maxStackSize": 1,
                },
                "stats": {
                    "stats": {
                        str(ATTACK_STAT_HASH): {"value": 50, "minimum": 0, "maximum": 100},
                        str(IMPACT_STAT_HASH): {"value": 84, "minimum": 0, "maximum": 100},
                        str(RANGE_STAT_HASH): {"value": 38, "minimum": 0, "maximum": 100},
                    }
                },
                "investmentStats": [
                    {"statTypeHash": ATTACK_STAT_HASH, "value": 10, "isConditionallyActive": False},
                ],
                "sockets": {
                    "socketCategories": [
                        {"socketCategoryHash": PERKS_SOCKET_CATEGORY_HASH, "socketIndexes": [0, 1]},
                    ],
                    "socketEntries": [
                        {
                            "socketTypeHash": TRAIT_SOCKET_TYPE_HASH,
                            "reusablePlugItems": [{"plugItemHash": INTRINSIC_PLUG_HASH}],
                        },
                        {
                            "socketTypeHash": MISSING_SOCKET_TYPE_HASH,
                            "reusablePlugItems": [{"plugItemHash": TRAIT_PLUG_HASH}],
                        },
                    ],
                },
                "equippingBlock": {"ammoType": 1, "minimumLevel": 0, "uniqueLabel": None},
                "collectibleHash": 2533990645,
                "loreHash": 1062208811,
                "allowActions": True,
            },
            str(INTRINSIC_PLUG_HASH): {
                "hash": INTRINSIC_PLUG_HASH,
                "displayProperties": {
                    "name": "Adaptive Frame",
                    "description": "A well-rounded, reliable design.",
                    "icon": "/common/destiny2_content/icons/adaptive.png",
                },
                "itemType": 7,
                "inventory": {"tierType": 2},
                "plug": {"plugCategoryHash": 7906839, "energyCost": {"energyCost": 0, "energyType": 0}},
            },
            str(TRAIT_PLUG_HASH): {
                "hash": TRAIT_PLUG_HASH,
                "displayProperties": {
                    "name": "Explosive Payload",
                    "description": "Rounds explode on impact.",
                    "icon": "/common/destiny2_content/icons/explosive.png",
                },
                "itemType": 7,
                "inventory": {"tierType": 3},
                "plug": {"plugCategoryHash": 7906839, "energyCost": {"energyCost": 2, "energyType": 3}},
            },
        },
        "DestinyStatDefinition": {
            str(ATTACK_STAT_HASH): {
                "hash": ATTACK_STAT_HASH,
                "displayProperties": {"name": "Attack", "description": "Power of the weapon."},
                "aggregationType": 0,
                "hasComputedBlock": False,
                "statCategory": 1,
            },
            str(IMPACT_STAT_SIGNED): {
                "hash": IMPACT_STAT_SIGNED,
                "displayProperties": {"name": "Impact", "description": "Damage per shot."},
                "statCategory": 1,
            },
            str(RANGE_STAT_HASH): {
                "hash": RANGE_STAT_HASH,
                "displayProperties": {"name": "Range", "description": "Effective distance."},
                "statCategory": 1,
            },
        },
        "DestinyDamageTypeDefinition": {
            str(SOLAR_DAMAGE_HASH): {
                "hash": SOLAR_DAMAGE_HASH,
                "displayProperties": {"name": "Solar", "icon": "/common/destiny2_content/icons/solar.png"},
            },
        },
        "DestinyItemCategoryDefinition": {
            str(WEAPON_CATEGORY_HASH): {
                "hash": WEAPON_CATEGORY_HASH,
                "displayProperties": {"name": "Weapon"},
                "shortTitle": "Weapon",
                "visible": True,
            },
            str(KINETIC_CATEGORY_HASH): {
                "hash": KINETIC_CATEGORY_HASH,
                "displayProperties": {"name": "Kinetic Weapon"},
                "shortTitle": "Kinetic",
                "itemTypeRegex": "type_weapon_kinetic",
                "visible": True,
            },
        },
        "DestinySocketCategoryDefinition": {
            str(PERKS_SOCKET_CATEGORY_HASH): {
                "hash": PERKS_SOCKET_CATEGORY_HASH,
                "displayProperties": {"name": "WEAPON PERKS", "description": "Perks that modify the weapon."},
            },
        },
        "DestinySocketTypeDefinition": {
            str(TRAIT_SOCKET_TYPE_HASH): {
                "hash": TRAIT_SOCKET_TYPE_HASH,
                "displayProperties": {"name": "Trait"},
            },
        },
        "DestinyEnergyTypeDefinition": {
            str(ENERGY_TYPE_HASH): {
                "hash": ENERGY_TYPE_HASH,
                "displayProperties": {"name": "Solar Energy"},
            },
        },
        "DestinySandboxPerkDefinition": {
            str(SANDBOX_PERK_HASH): {
                "hash": SANDBOX_PERK_HASH,
                "displayProperties": {"name": "Anti-Barrier Rounds", "description": "Pierces shields."},
            },
        },
    }


class FakeDefinitionSource(DefinitionSource):
    """
    In-memory DefinitionSource that counts calls per operation.

    `remote` holds definitions only reachable through entity/batch/search calls, keyed
    by entity type and canonical hash. Operations named in `fail` raise.
    """

    def __init__(self, content: dict = None, remote: dict = None, paths: dict = None, version: str = "230101.1"):
        self.content = content if content is not None else build_snapshot()
        self.remote = defaultdict(dict)
        for entity_type, defs in (remote or {}).items():
            for h, raw in defs.items():
                self.remote[entity_type][canonicalize_hash(h)] = raw
        self.paths = paths if paths is not None else {"en": CONTENT_PATH, "fr": CONTENT_PATH.replace("/en/", "/fr/")}
        self.version = version
        self.calls = defaultdict(int)
        self.fail = set()
        self.download_gate: threading.Event = None
        self.download_error: Exception = None
        self.downloaded_urls = []
        self.download_timeouts = []
        self.batch_requests = []

    def _record(self, name: str) -> None:
        self.calls[name] += 1
        if name in self.fail:
            raise DefinitionSourceError(f"{name} unavailable")

    @property
    def remote_calls(self) -> int:
        return sum(self.calls[n] for n in ("get_entity", "get_batch", "search"))

    def get_manifest_info(self) -> ManifestMetadata:
        self._record("get_manifest_info")
        return ManifestMetadata(version=self.version, contentPathsByLanguage=self.paths)

    def download_content(self, url, timeout=None):
        self._record("download_content")
        self.downloaded_urls.append(url)
        self.download_timeouts.append(timeout)
        if self.download_gate is not None:
            self.download_gate.wait(timeout=5)
        if self.download_error is not None:
            raise self.download_error
        return copy.deepcopy(self.content)

    def get_entity(self, entity_type, item_hash):
        self._record("get_entity")
        raw = self.remote[entity_type].get(canonicalize_hash(item_hash))
        if raw is None:
            raise DefinitionSourceError(f"Entity not found: {entity_type} with hash {item_hash}")
        return copy.deepcopy(raw)

    def get_batch(self, entity_type, item_hashes):
        self._record("get_batch")
        self.batch_requests.append(list(item_hashes))
        results, errors = {}, []
        for h in item_hashes:
            raw = self.remote[entity_type].get(canonicalize_hash(h))
            if raw is None:
                errors.append({"hash": str(h), "error": "Entity not found"})
            else:
                results[str(h)] = copy.deepcopy(raw)
        return {"results": results, "errors": errors}

    def search(self, entity_type, term, limit=10):
        self._record("search")
        term = term.lower()
        found = [copy.deepcopy(d) for d in self.remote[entity_type].values()
                 if term in d.get("displayProperties", {}).get("name", "").lower()]
        return found[:limit]


@pytest.fixture
def source():
    return FakeDefinitionSource()


@pytest.fixture
def processor(source):
    """Initialized processor over the shared snapshot."""
    proc = ManifestProcessor(source)
    proc.initialize()
    return proc
