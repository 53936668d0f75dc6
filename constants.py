"""
Module containing constants for the Destiny 2 manifest processor.
"""

import os

# API and content delivery configuration constants
BUNGIE_API_BASE = os.getenv("BUNGIE_API_BASE", "https://www.bungie.net/Platform")
BUNGIE_CONTENT_HOST = os.getenv("BUNGIE_CONTENT_HOST", "https://www.bungie.net")
API_KEY = os.getenv("BUNGIE_API_KEY")
# Default headers for Bungie API requests
DEFAULT_HEADERS = {"X-API-Key": API_KEY, "Content-Type": "application/json"}
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "10"))  # seconds
MANIFEST_DOWNLOAD_TIMEOUT = int(os.getenv("MANIFEST_DOWNLOAD_TIMEOUT", "60"))  # seconds, full content is large
DEFAULT_LANGUAGE = os.getenv("MANIFEST_LANGUAGE", "en")

# Remote capability limits
BATCH_LIMIT = 20        # max hashes per batch entity request
SEARCH_MAX_LIMIT = 50   # max results per armory search
MAX_RESOLUTION_DEPTH = 8

# Manifest entity types referenced by the processing pipeline and the item analyzer
ITEM_DEFINITION = "DestinyInventoryItemDefinition"
ITEM_CATEGORY_DEFINITION = "DestinyItemCategoryDefinition"
DAMAGE_TYPE_DEFINITION = "DestinyDamageTypeDefinition"
STAT_DEFINITION = "DestinyStatDefinition"
SOCKET_CATEGORY_DEFINITION = "DestinySocketCategoryDefinition"
SOCKET_TYPE_DEFINITION = "DestinySocketTypeDefinition"
PLUG_SET_DEFINITION = "DestinyPlugSetDefinition"
SANDBOX_PERK_DEFINITION = "DestinySandboxPerkDefinition"
ENERGY_TYPE_DEFINITION = "DestinyEnergyTypeDefinition"

# displayProperties fields holding root-relative content paths
DISPLAY_URL_FIELDS = ["icon", "iconWatermark", "iconWatermarkShelved", "screenshot", "highResIcon"]

# Maps itemType integer values to names
ITEM_TYPE_MAP = {
    1: "Weapon",
    2: "Armor",
    3: "Ghost",
    4: "Vehicle",
    7: "Emblem",
    8: "Emote",
    9: "Ship",
    10: "Sparrow",
    11: "ClanBanner",
    12: "Aura",
    13: "Mod",
    14: "Consumable",
    15: "ExchangeMaterial",
    16: "MissionReward",
    17: "Currency",
}

# Maps damage/energy type integer values to names
DAMAGE_TYPE_MAP = {
    1: "Kinetic",
    2: "Arc",
    3: "Solar",
    4: "Void",
    5: "Raid",
    6: "Stasis",
    7: "Strand",
}

# Maps inventory tierType integer values to rarity names
TIER_TYPE_MAP = {
    2: "Common",
    3: "Uncommon",
    4: "Rare",
    5: "Legendary",
    6: "Exotic",
}

# Maps classType integer values to user-friendly class names
CLASS_TYPE_MAP = {
    0: "Titan",
    1: "Hunter",
    2: "Warlock",
    3: "Any",
}
CLASS_TYPE_ANY = 3

WEAPON_ITEM_TYPE = 1
PERK_ITEM_TYPE = 7
INTRINSIC_TIER_TYPE = 2  # common-tier plugs are intrinsic perks

# Item instance state bit flags
ITEM_STATE_EQUIPPED = 4
ITEM_STATE_LOCKED = 8

MASTERWORK_ENERGY_THRESHOLD = 10
