# pylint: disable=line-too-long
"""
Models for Destiny 2 manifest metadata and item analysis.

This module defines Pydantic models returned by the manifest processor and the item analyzer.
Includes:
- ManifestMetadata, CacheStats: manifest version/content locations and cache status.
- BatchResolution: batch lookup results with per-hash errors.
- ItemAnalysis and its sections: basic properties, sockets, stats, perks, categories,
  requirements, quality and metadata for a single item instance.

Processed definitions themselves stay plain dicts, exactly as the manifest delivers them.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


# --- Manifest models ---
class ManifestMetadata(BaseModel):
    """
    Manifest version and per-language content locations.

    Attributes:
        version (str): Manifest version string.
        contentPathsByLanguage (Dict[str, str]): Language code -> root-relative content path.
    """
    version: str
    contentPathsByLanguage: Dict[str, str] = dict()

    @property
    def languages(self) -> List[str]:
        return sorted(self.contentPathsByLanguage)


class CacheStats(BaseModel):
    """Snapshot of processor cache state."""
    manifestVersion: Optional[str] = None
    definitionCount: int = 0
    isInitialized: bool = False
    language: Optional[str] = None


class BatchError(BaseModel):
    hash: str
    error: str


class BatchResolution(BaseModel):
    """
    Result of a batch lookup.

    Attributes:
        results (Dict[str, Any]): Unsigned hash string -> processed definition dict.
        errors (List[BatchError]): Hashes that could not be resolved and why.
    """
    results: Dict[str, Any] = dict()
    errors: List[BatchError] = list()


# --- Item analysis models ---
class ItemBasic(BaseModel):
    hash: Optional[int] = None
    name: str = "Unknown Item"
    description: str = ""
    icon: Optional[str] = None
    screenshot: Optional[str] = None
    itemType: str = "Unknown"
    itemSubType: Optional[int] = None
    tierType: str = "Unknown"
    tierTypeName: Optional[str] = None
    damageType: str = "None"
    powerLevel: int = 0
    masterworkLevel: int = 0
    isEquipped: bool = False
    isLocked: bool = False
    instanceId: Optional[str] = None
    bucketHash: Optional[int] = None
    stackUniqueLabel: Optional[str] = None
    maxStackSize: int = 1


class SocketCategoryInfo(BaseModel):
    hash: Optional[int] = None
    name: str = "Unknown Category"
    description: str = ""
    socketIndexes: List[int] = list()


class PlugInfo(BaseModel):
    name: str = "Unknown Plug"
    description: str = ""
    icon: Optional[str] = None
    plugCategoryHash: Optional[int] = None
    energyCost: int = 0
    energyType: str = "Any"
    categoryName: Optional[str] = None


class SocketTypeInfo(BaseModel):
    name: str = "Unknown Socket Type"
    description: str = ""


class SocketInfo(BaseModel):
    index: int
    plugHash: Optional[int] = None
    isEnabled: Optional[bool] = None
    isVisible: Optional[bool] = None
    cannotCurrentlyRoll: Optional[bool] = None
    plug: Optional[PlugInfo] = None
    socketType: Optional[SocketTypeInfo] = None


class SocketAnalysis(BaseModel):
    sockets: List[SocketInfo] = list()
    categories: List[SocketCategoryInfo] = list()


class StatInfo(BaseModel):
    """
    A resolved stat value.

    Instance-reported values are authoritative; base values from the definition
    are flagged with isBase and carry their declared range.
    """
    name: str = "Unknown Stat"
    description: str = ""
    icon: Optional[str] = None
    value: int = 0
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    aggregationType: Optional[int] = None
    hasComputedBlock: Optional[bool] = None
    category: Optional[int] = None
    isBase: bool = False


class PerkInfo(BaseModel):
    hash: int
    name: str = "Unknown Perk"
    description: str = ""
    icon: Optional[str] = None
    isIntrinsic: bool = False
    isPerk: bool = True
    socketIndex: Optional[int] = None
    source: str = "socket"  # "socket" plug or instance "sandbox" perk
    isActive: Optional[bool] = None
    isVisible: Optional[bool] = None


class CategoryInfo(BaseModel):
    hash: int
    name: str = "Unknown Category"
    description: str = ""
    shortTitle: Optional[str] = None
    itemTypeRegex: Optional[str] = None
    visible: Optional[bool] = None


class Requirements(BaseModel):
    powerLevel: int = 0
    classRestriction: int = 3
    className: str = "Any"
    exclusiveToClass: bool = False
    requiresLevel: bool = False
    ammoType: int = 0
    uniqueLabel: Optional[str] = None


class InvestmentStat(BaseModel):
    statHash: int
    name: str = "Unknown Stat"
    value: Optional[int] = None
    isConditionallyActive: Optional[bool] = None


class QualityAnalysis(BaseModel):
    masterworked: bool = False
    energyCapacity: int = 0
    energyUsed: int = 0
    energyType: Optional[str] = None
    energyTypeName: Optional[str] = None
    quality: Dict[str, Any] = dict()
    investmentStats: List[InvestmentStat] = list()


class ItemMetadata(BaseModel):
    """Passthrough hashes for downstream consumers; not resolved further."""
    collectibleHash: Optional[int] = None
    loreHash: Optional[int] = None
    summaryItemHash: Optional[int] = None
    allowActions: bool = False
    doesPostmasterPullHaveSideEffects: bool = False
    nonTransferrable: bool = False
    specialItemType: Optional[int] = None
    itemValue: Any = list()
    sourceData: Dict[str, Any] = dict()
    acquireRewardSiteHash: Optional[int] = None
    acquireUnlockHash: Optional[int] = None


class ItemAnalysis(BaseModel):
    """
    Full analysis of a Destiny 2 item instance.

    On failure only error, itemHash and a best-effort basic section are populated.
    """
    basic: ItemBasic
    sockets: Optional[SocketAnalysis] = None
    stats: Optional[Dict[str, StatInfo]] = None
    perks: Optional[List[PerkInfo]] = None
    categories: Optional[List[CategoryInfo]] = None
    requirements: Optional[Requirements] = None
    quality: Optional[QualityAnalysis] = None
    metadata: Optional[ItemMetadata] = None
    error: Optional[str] = None
    itemHash: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None
