# pylint: disable=broad-exception-caught, line-too-long
"""
Destiny 2 item analyzer.

Builds a structured ItemAnalysis (basic properties, sockets, stats, perks, categories,
requirements, quality and metadata) for an item instance, resolving every hash through a
ManifestProcessor. Instance components are accepted wrapped the way the Bungie profile
endpoints return them ({"data": {"sockets": [...]}}) or already unwrapped.
"""
import logging
from typing import Any, Dict, List, Optional

from constants import (CLASS_TYPE_ANY, CLASS_TYPE_MAP, DAMAGE_TYPE_MAP,
                       ENERGY_TYPE_DEFINITION, INTRINSIC_TIER_TYPE,
                       ITEM_CATEGORY_DEFINITION, ITEM_DEFINITION,
                       ITEM_STATE_EQUIPPED, ITEM_STATE_LOCKED, ITEM_TYPE_MAP,
                       MASTERWORK_ENERGY_THRESHOLD, PERK_ITEM_TYPE,
                       PLUG_SET_DEFINITION, SANDBOX_PERK_DEFINITION,
                       SOCKET_CATEGORY_DEFINITION, SOCKET_TYPE_DEFINITION,
                       STAT_DEFINITION, TIER_TYPE_MAP, WEAPON_ITEM_TYPE)
from exceptions import ItemDefinitionUnavailable
from helpers import canonicalize_hash
from manifest_processor import ManifestProcessor
from models import (CategoryInfo, InvestmentStat, ItemAnalysis, ItemBasic,
                    ItemMetadata, PerkInfo, PlugInfo, QualityAnalysis,
                    Requirements, SocketAnalysis, SocketCategoryInfo,
                    SocketInfo, SocketTypeInfo, StatInfo)


def _component(item: dict, name: str, default: Any) -> Any:
    """
    Unwrap an instance component: {"data": {name: x}}, {name: x} or x itself.
    """
    value = item.get(name)
    if value is None:
        return default
    if isinstance(value, dict):
        if "data" in value:
            value = value.get("data") or {}
        if isinstance(value, dict) and name in value:
            value = value[name]
    if value is None or not isinstance(value, type(default)):
        return default
    return value


def _has_state(state: Any, flag: int) -> bool:
    """Check an item state flag; accepts a bitmask or a list of flag values."""
    if not state:
        return False
    if isinstance(state, (list, tuple, set)):
        return flag in state
    try:
        return bool(int(state) & flag)
    except (TypeError, ValueError):
        return False


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _display(definition: Optional[dict]) -> dict:
    return (definition or {}).get("displayProperties") or {}


def _hash_key(item_hash: Any) -> Optional[str]:
    try:
        return str(canonicalize_hash(item_hash))
    except (TypeError, ValueError):
        return None


class ItemAnalyzer:
    """
    Analyzes Destiny 2 items with full hash resolution.

    All definitions come from the injected ManifestProcessor, so missing manifest entries
    degrade to "Unknown" placeholders or skipped entries instead of failures.
    """

    def __init__(self, processor: ManifestProcessor):
        self.processor = processor

    def _lookup(self, entity_type: str, item_hash: Any) -> Optional[dict]:
        if item_hash is None:
            return None
        return self.processor.get_definition(entity_type, item_hash)

    def analyze_item(self, item: dict, definition: dict = None) -> ItemAnalysis:
        """
        Analyze a complete item with all hash resolutions.

        Args:
            item (dict): Item instance data (itemHash, sockets, stats, perks, energy, state...).
            definition (dict, optional): Pre-fetched item definition; resolved from itemHash if omitted.

        Returns:
            ItemAnalysis: Full analysis, or error/itemHash/basic on failure. Never raises.
        """
        item = item or {}
        try:
            if not definition and item.get("itemHash"):
                definition = self._lookup(ITEM_DEFINITION, item["itemHash"])
            if not definition:
                raise ItemDefinitionUnavailable("Unable to resolve item definition")

            plug_defs = self._plug_definitions(item)
            return ItemAnalysis(
                basic=self.analyze_basic_properties(item, definition),
                sockets=self.analyze_sockets(item, definition, plug_defs),
                stats=self.analyze_stats(item, definition),
                perks=self.analyze_perks(item, definition, plug_defs),
                categories=self.analyze_categories(definition),
                requirements=self.analyze_requirements(definition),
                quality=self.analyze_quality(item, definition),
                metadata=self.analyze_metadata(definition),
                itemHash=_to_int(item.get("itemHash") or definition.get("hash")),
            )
        except Exception as e:
            logging.error("Item analysis failed for %s: %s", item.get("itemHash"), e)
            try:
                basic = self.analyze_basic_properties(item, definition or {})
            except Exception as basic_error:
                logging.warning("Basic properties unavailable for %s: %s", item.get("itemHash"), basic_error)
                basic = ItemBasic(hash=_to_int(item.get("itemHash")))
            return ItemAnalysis(
                error=str(e),
                itemHash=_to_int(item.get("itemHash")),
                basic=basic,
            )

    def _plug_definitions(self, item: dict) -> Dict[str, dict]:
        """Pre-resolve every socketed plug of an instance with one batch lookup (private)."""
        plug_hashes = [s.get("plugHash") for s in _component(item, "sockets", []) if s.get("plugHash")]
        if not plug_hashes:
            return {}
        return self.processor.batch_get_definitions(ITEM_DEFINITION, plug_hashes)

    def analyze_basic_properties(self, item: dict, definition: dict) -> ItemBasic:
        item = item or {}
        definition = definition or {}
        dp = self.processor.resolve_display_properties(_display(definition)) or {}
        inventory = definition.get("inventory") or {}
        state = item.get("state")
        return ItemBasic(
            hash=_to_int(item.get("itemHash") or definition.get("hash")),
            name=dp.get("name") if dp.get("name") not in (None, "", "Unknown") else "Unknown Item",
            description=dp.get("description") or "",
            icon=dp.get("icon"),
            screenshot=dp.get("screenshot"),
            itemType=ITEM_TYPE_MAP.get(definition.get("itemType"), "Unknown"),
            itemSubType=_to_int(definition.get("itemSubType")),
            tierType=TIER_TYPE_MAP.get(inventory.get("tierType"), "Unknown"),
            tierTypeName=inventory.get("tierTypeName"),
            damageType=DAMAGE_TYPE_MAP.get(definition.get("defaultDamageType"), "None"),
            powerLevel=_to_int((item.get("primaryStat") or {}).get("value")) or 0,
            masterworkLevel=_to_int((item.get("energy") or {}).get("energyUsed")) or 0,
            isEquipped=_has_state(state, ITEM_STATE_EQUIPPED),
            isLocked=_has_state(state, ITEM_STATE_LOCKED),
            instanceId=str(item["itemInstanceId"]) if item.get("itemInstanceId") is not None else None,
            bucketHash=_to_int(inventory.get("bucketTypeHash")),
            stackUniqueLabel=inventory.get("stackUniqueLabel"),
            maxStackSize=_to_int(inventory.get("maxStackSize")) or 1,
        )

    def analyze_sockets(self, item: dict, definition: dict, plug_defs: Dict[str, dict] = None) -> SocketAnalysis:
        """
        Resolve socket categories, socketed plugs and socket types.

        Instance sockets are matched to the definition's socketEntries by index; sockets
        without an entry are skipped.
        """
        sockets_data = _component(item, "sockets", [])
        socket_block = definition.get("sockets") or {}
        if not sockets_data or not socket_block:
            return SocketAnalysis()
        if plug_defs is None:
            plug_defs = self._plug_definitions(item)

        categories = []
        for category in socket_block.get("socketCategories") or []:
            category_hash = category.get("socketCategoryHash")
            dp = _display(self._lookup(SOCKET_CATEGORY_DEFINITION, category_hash))
            categories.append(SocketCategoryInfo(
                hash=category_hash,
                name=dp.get("name") or "Unknown Category",
                description=dp.get("description") or "",
                socketIndexes=category.get("socketIndexes") or [],
            ))

        entries = socket_block.get("socketEntries") or []
        sockets = []
        for index, socket_data in enumerate(sockets_data):
            entry = entries[index] if index < len(entries) else None
            if not entry:
                continue
            plug_hash = socket_data.get("plugHash")
            socket = {
                "index": index,
                "plugHash": plug_hash,
                "isEnabled": socket_data.get("isEnabled"),
                "isVisible": socket_data.get("isVisible"),
                "cannotCurrentlyRoll": socket_data.get("cannotCurrentlyRoll"),
            }
            plug_def = plug_defs.get(_hash_key(plug_hash)) if plug_hash else None
            if plug_def:
                socket["plug"] = self._plug_info(plug_def)

            socket_type = self._lookup(SOCKET_TYPE_DEFINITION, entry.get("socketTypeHash"))
            if socket_type:
                dp = _display(socket_type)
                socket["socketType"] = SocketTypeInfo(
                    name=dp.get("name") or "Unknown Socket Type",
                    description=dp.get("description") or "",
                )
            sockets.append(SocketInfo(**socket))

        return SocketAnalysis(sockets=sockets, categories=categories)

    def _plug_info(self, plug_def: dict) -> PlugInfo:
        dp = _display(plug_def)
        plug_block = plug_def.get("plug") or {}
        energy_cost = plug_block.get("energyCost") or {}
        category_name = None
        plug_category_hash = plug_block.get("plugCategoryHash")
        if plug_category_hash:
            plug_category = self._lookup(PLUG_SET_DEFINITION, plug_category_hash)
            if plug_category:
                category_name = _display(plug_category).get("name") or "Unknown Category"
        return PlugInfo(
            name=dp.get("name") or "Unknown Plug",
            description=dp.get("description") or "",
            icon=dp.get("icon"),
            plugCategoryHash=plug_category_hash,
            energyCost=energy_cost.get("energyCost") or 0,
            energyType=DAMAGE_TYPE_MAP.get(energy_cost.get("energyType"), "Any"),
            categoryName=category_name,
        )

    def analyze_stats(self, item: dict, definition: dict) -> Dict[str, StatInfo]:
        """
        Merge instance stat values with the definition's base stats.

        Instance values win; base stats fill in hashes the instance does not report.
        Keys are unsigned stat hash strings.
        """
        stats: Dict[str, StatInfo] = {}
        resolved = (definition.get("resolvedHashes") or {}).get("stats") or {}

        for stat_hash, stat_value in _component(item, "stats", {}).items():
            key = _hash_key(stat_hash)
            stat_def = self._lookup(STAT_DEFINITION, stat_hash)
            if key is None or not stat_def:
                continue
            value = stat_value.get("value") if isinstance(stat_value, dict) else stat_value
            stats[key] = self._stat_info(stat_def, value=value or 0)

        for stat_hash, stat_data in ((definition.get("stats") or {}).get("stats") or {}).items():
            key = _hash_key(stat_hash)
            if key is None or key in stats:
                continue
            stat_def = (resolved.get(str(stat_hash)) or {}).get("definition") or self._lookup(STAT_DEFINITION, stat_hash)
            if not stat_def:
                continue
            stat_data = stat_data or {}
            stats[key] = self._stat_info(
                stat_def,
                value=stat_data.get("value") or 0,
                minimum=stat_data.get("minimum") or 0,
                maximum=stat_data.get("maximum") or 100,
                isBase=True,
            )
        return stats

    @staticmethod
    def _stat_info(stat_def: dict, **values) -> StatInfo:
        dp = _display(stat_def)
        return StatInfo(
            name=dp.get("name") or "Unknown Stat",
            description=dp.get("description") or "",
            icon=dp.get("icon"),
            aggregationType=stat_def.get("aggregationType"),
            hasComputedBlock=stat_def.get("hasComputedBlock"),
            category=stat_def.get("statCategory"),
            **values,
        )

    def analyze_perks(self, item: dict, definition: dict, plug_defs: Dict[str, dict] = None) -> List[PerkInfo]:
        """
        Collect perk plugs from the instance sockets plus the instance's sandbox perks.
        """
        if plug_defs is None:
            plug_defs = self._plug_definitions(item)
        perks = []
        for index, socket in enumerate(_component(item, "sockets", [])):
            plug_hash = socket.get("plugHash")
            if not plug_hash:
                continue
            plug_def = plug_defs.get(_hash_key(plug_hash))
            if not plug_def or plug_def.get("itemType") != PERK_ITEM_TYPE:
                continue
            dp = _display(plug_def)
            perks.append(PerkInfo(
                hash=plug_hash,
                name=dp.get("name") or "Unknown Perk",
                description=dp.get("description") or "",
                icon=dp.get("icon"),
                isIntrinsic=(plug_def.get("inventory") or {}).get("tierType") == INTRINSIC_TIER_TYPE,
                socketIndex=socket.get("socketIndex", index),
            ))

        # 302 sandbox perks (artifact/passives)
        for perk in _component(item, "perks", []):
            perk_hash = perk.get("perkHash")
            if not perk_hash:
                continue
            dp = _display(self._lookup(SANDBOX_PERK_DEFINITION, perk_hash))
            perks.append(PerkInfo(
                hash=perk_hash,
                name=dp.get("name") or "Unknown Perk",
                description=dp.get("description") or "",
                icon=dp.get("icon"),
                source="sandbox",
                isActive=perk.get("isActive", False),
                isVisible=perk.get("visible", False),
            ))
        return perks

    def analyze_categories(self, definition: dict) -> List[CategoryInfo]:
        categories = []
        for category_hash in definition.get("itemCategoryHashes") or []:
            category_def = self._lookup(ITEM_CATEGORY_DEFINITION, category_hash)
            if not category_def:
                continue
            dp = _display(category_def)
            categories.append(CategoryInfo(
                hash=category_hash,
                name=dp.get("name") or "Unknown Category",
                description=dp.get("description") or "",
                shortTitle=category_def.get("shortTitle"),
                itemTypeRegex=category_def.get("itemTypeRegex"),
                visible=category_def.get("visible"),
            ))
        return categories

    @staticmethod
    def analyze_requirements(definition: dict) -> Requirements:
        equipping = definition.get("equippingBlock") or {}
        class_type = definition.get("classType")
        if class_type is None:
            class_type = CLASS_TYPE_ANY
        minimum_level = equipping.get("minimumLevel") or 0
        return Requirements(
            powerLevel=minimum_level,
            classRestriction=class_type,
            className=CLASS_TYPE_MAP.get(class_type, "Unknown"),
            exclusiveToClass=class_type != CLASS_TYPE_ANY,
            requiresLevel=minimum_level > 0,
            ammoType=equipping.get("ammoType") or 0,
            uniqueLabel=equipping.get("uniqueLabel"),
        )

    def analyze_quality(self, item: dict, definition: dict) -> QualityAnalysis:
        """
        Energy, masterwork state and investment stats.

        An item counts as masterworked when its energy capacity reaches MASTERWORK_ENERGY_THRESHOLD.
        """
        quality = {"quality": definition.get("quality") or {}}
        energy = item.get("energy")
        if energy:
            capacity = energy.get("energyCapacity") or 0
            quality.update(
                energyCapacity=capacity,
                energyUsed=energy.get("energyUsed") or 0,
                energyType=DAMAGE_TYPE_MAP.get(energy.get("energyType"), "Any"),
                masterworked=capacity >= MASTERWORK_ENERGY_THRESHOLD,
            )
            energy_type_def = self._lookup(ENERGY_TYPE_DEFINITION, energy.get("energyTypeHash"))
            if energy_type_def:
                quality["energyTypeName"] = _display(energy_type_def).get("name")

        investment_stats = []
        for investment in definition.get("investmentStats") or []:
            stat_hash = investment.get("statTypeHash")
            stat_def = self._lookup(STAT_DEFINITION, stat_hash)
            if not stat_def:
                continue
            investment_stats.append(InvestmentStat(
                statHash=stat_hash,
                name=_display(stat_def).get("name") or "Unknown Stat",
                value=investment.get("value"),
                isConditionallyActive=investment.get("isConditionallyActive"),
            ))
        return QualityAnalysis(investmentStats=investment_stats, **quality)

    @staticmethod
    def analyze_metadata(definition: dict) -> ItemMetadata:
        return ItemMetadata(
            collectibleHash=definition.get("collectibleHash"),
            loreHash=definition.get("loreHash"),
            summaryItemHash=definition.get("summaryItemHash"),
            allowActions=definition.get("allowActions") or False,
            doesPostmasterPullHaveSideEffects=definition.get("doesPostmasterPullHaveSideEffects") or False,
            nonTransferrable=definition.get("nonTransferrable") or False,
            specialItemType=definition.get("specialItemType"),
            itemValue=definition.get("itemValue") or [],
            sourceData=definition.get("sourceData") or {},
            acquireRewardSiteHash=definition.get("acquireRewardSiteHash"),
            acquireUnlockHash=definition.get("acquireUnlockHash"),
        )

    def get_weapon_archetype(self, definition: dict) -> Optional[List[dict]]:
        """
        Intrinsic (common-tier) plugs offered by a weapon's sockets; None for non-weapons.
        """
        if (definition or {}).get("itemType") != WEAPON_ITEM_TYPE:
            return None
        archetypes = []
        for entry in (definition.get("sockets") or {}).get("socketEntries") or []:
            for reusable in entry.get("reusablePlugItems") or []:
                plug_hash = reusable.get("plugItemHash")
                plug_def = self._lookup(ITEM_DEFINITION, plug_hash)
                if plug_def and (plug_def.get("inventory") or {}).get("tierType") == INTRINSIC_TIER_TYPE:
                    dp = _display(plug_def)
                    archetypes.append({
                        "hash": plug_hash,
                        "name": dp.get("name") or "Unknown Archetype",
                        "description": dp.get("description") or "",
                    })
        return archetypes

    def batch_analyze_items(self, items: List[dict], include_full_analysis: bool = False) -> Dict[str, ItemAnalysis]:
        """
        Analyze many items, pre-resolving their definitions with batched lookups.

        Args:
            items (List[dict]): Item instances.
            include_full_analysis (bool): Full analysis when True, basic properties only otherwise.

        Returns:
            Dict[str, ItemAnalysis]: Keyed by itemInstanceId, or itemHash for uninstanced items.
        """
        hashes = [i.get("itemHash") for i in items if i.get("itemHash")]
        definitions = self.processor.batch_get_definitions(ITEM_DEFINITION, hashes)
        analyses: Dict[str, ItemAnalysis] = {}
        for item in items:
            key = str(item.get("itemInstanceId") or _hash_key(item.get("itemHash")) or item.get("itemHash"))
            try:
                definition = definitions.get(_hash_key(item.get("itemHash")))
                if include_full_analysis:
                    analyses[key] = self.analyze_item(item, definition)
                else:
                    analyses[key] = ItemAnalysis(
                        basic=self.analyze_basic_properties(item, definition or {}),
                        itemHash=_to_int(item.get("itemHash")),
                    )
            except Exception as e:
                logging.warning("Failed to analyze item %s: %s", item.get("itemHash"), e)
                analyses[key] = ItemAnalysis(
                    error=str(e),
                    itemHash=_to_int(item.get("itemHash")),
                    basic=ItemBasic(hash=_to_int(item.get("itemHash"))),
                )
        return analyses
