from enum import Enum
from typing import Dict, Set


# Enums
class UserTier(str, Enum):
    free = "free"
    premium = "premium"


class ItemState(str, Enum):
    active = "active"
    inactive = "inactive"
    archived = "archived"
    cancelled = "cancelled"


class ItemStatus(str, Enum):
    available = "available"
    in_custody = "in_custody"


class BulkActionKind(str, Enum):
    location = "location"
    category = "category"
    assign_custody = "assign-custody"
    release_custody = "release-custody"
    trash = "trash"
    activate = "activate"
    deactivate = "deactivate"
    archive = "archive"
    tag_add = "tag-add"
    tag_remove = "tag-remove"
    cancel = "cancel"


# States hidden from the default list view
REMOVED_STATES = (ItemState.archived.value, ItemState.cancelled.value)


class Capability:
    """Capability constants checked by require_capability()."""
    ITEMS_READ = "items:read"
    ITEMS_MANAGE = "items:manage"
    ITEMS_IMPORT = "items:import"


TIER_CAPABILITIES: Dict[str, Set[str]] = {
    UserTier.free.value: {
        Capability.ITEMS_READ,
        Capability.ITEMS_MANAGE,
    },
    UserTier.premium.value: {
        Capability.ITEMS_READ,
        Capability.ITEMS_MANAGE,
        Capability.ITEMS_IMPORT,
    },
}


def capabilities_for_tier(tier: str) -> Set[str]:
    """Unknown tiers get free-tier capabilities."""
    return set(TIER_CAPABILITIES.get(tier, TIER_CAPABILITIES[UserTier.free.value]))
