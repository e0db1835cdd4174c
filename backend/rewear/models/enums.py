import enum

from sqlalchemy import Enum

# Column types are declared with native_enum so Postgres gets real ENUM types
# while SQLite (tests) falls back to VARCHAR.


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class ItemStatus(str, enum.Enum):
    PENDING = "pending"
    AVAILABLE = "available"
    SWAPPED = "swapped"
    REMOVED = "removed"


class SwapType(str, enum.Enum):
    DIRECT = "direct"
    POINTS = "points"


class SwapStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LedgerSource(str, enum.Enum):
    SWAP_TRANSFER = "swap_transfer"
    SWAP_REVERSAL = "swap_reversal"
    LISTING_BONUS = "listing_bonus"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    SIGNUP_BONUS = "signup_bonus"


def _values(e: type[enum.Enum]) -> list[str]:
    return [m.value for m in e]


role_enum = Enum(*_values(Role), name="role_enum")
item_status_enum = Enum(*_values(ItemStatus), name="item_status_enum")
swap_type_enum = Enum(*_values(SwapType), name="swap_type_enum")
swap_status_enum = Enum(*_values(SwapStatus), name="swap_status_enum")
ledger_source_enum = Enum(*_values(LedgerSource), name="ledger_source_enum")

ITEM_CATEGORIES = ("Tops", "Dresses", "Outerwear", "Bottoms", "Footwear", "Accessories", "Other")
ITEM_SIZES = (
    "XS", "S", "M", "L", "XL", "XXL",
    "36", "37", "38", "39", "40", "41", "42", "43", "44", "45",
    "One Size",
)
ITEM_CONDITIONS = ("Excellent", "Good", "Fair", "Poor")
