"""
Menu Profit Engine - Data Model

Value objects shared by every stage of the pipeline:

    SalesRecord + Ingredient/Recipe  (inputs)
        -> ItemMarginRow             (margin engine)
        -> QuadrantItem / ProfitLeakReport / PriceSuggestion  (consumers)

All result objects are frozen dataclasses. Each analysis run builds fresh
snapshots; nothing is mutated in place.
"""

import math
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple


# =============================================================================
# ENUMS
# =============================================================================

class UnitType(str, Enum):
    """Unit an ingredient is costed in."""

    OZ = "oz"
    ML = "ml"
    GRAMS = "grams"
    COUNT = "count"
    LB = "lb"
    EACH = "each"


class Quadrant(str, Enum):
    """Volume x margin bucket relative to the menu's medians."""

    HIGH_VOLUME_HIGH_MARGIN = "high_volume_high_margin"
    HIGH_VOLUME_LOW_MARGIN = "high_volume_low_margin"
    LOW_VOLUME_HIGH_MARGIN = "low_volume_high_margin"
    LOW_VOLUME_LOW_MARGIN = "low_volume_low_margin"

    @classmethod
    def from_flags(cls, high_volume: bool, high_margin: bool) -> "Quadrant":
        if high_volume and high_margin:
            return cls.HIGH_VOLUME_HIGH_MARGIN
        elif high_volume and not high_margin:
            return cls.HIGH_VOLUME_LOW_MARGIN
        elif (not high_volume) and high_margin:
            return cls.LOW_VOLUME_HIGH_MARGIN
        else:
            return cls.LOW_VOLUME_LOW_MARGIN

    @property
    def menu_engineering_class(self) -> str:
        """Classic menu engineering label (Star / Plowhorse / Puzzle / Dog)."""
        return {
            Quadrant.HIGH_VOLUME_HIGH_MARGIN: "Star",
            Quadrant.HIGH_VOLUME_LOW_MARGIN: "Plowhorse",
            Quadrant.LOW_VOLUME_HIGH_MARGIN: "Puzzle",
            Quadrant.LOW_VOLUME_LOW_MARGIN: "Dog",
        }[self]


class LeakItemRole(str, Enum):
    """Whether a bottom-margin item should be repriced or may be an intentional loss leader."""

    TO_FIX = "to_fix"
    STRATEGIC_CANDIDATE = "strategic_candidate"


# =============================================================================
# MARGIN PERCENTAGE (defined / undefined)
# =============================================================================

@dataclass(frozen=True)
class MarginPct:
    """
    Gross margin percentage that is either Defined(value) or Undefined.

    Zero revenue gives Defined(0.0) ("no margin"). Undefined means the margin
    is unknown and must be left out of any median or percentile.
    """
    value: Optional[float] = None

    def __post_init__(self):
        if self.value is not None:
            v = float(self.value)
            object.__setattr__(self, "value", None if math.isnan(v) else v)

    @classmethod
    def defined(cls, value: float) -> "MarginPct":
        return cls(float(value))

    @classmethod
    def undefined(cls) -> "MarginPct":
        return cls(None)

    @property
    def is_defined(self) -> bool:
        return self.value is not None

    def or_else(self, default: float) -> float:
        return self.value if self.value is not None else default

    def __repr__(self) -> str:
        if self.value is None:
            return "MarginPct.undefined()"
        return f"MarginPct.defined({self.value!r})"


# =============================================================================
# INPUT RECORDS
# =============================================================================

@dataclass(frozen=True)
class SalesRecord:
    """One POS transaction line."""
    item_name: str
    units_sold: float
    revenue: float
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class Ingredient:
    """Costed ingredient. Identity is `id`; `name` is for display only."""
    id: str
    name: str
    unit_type: UnitType
    cost_per_unit: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Ingredient":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            unit_type=UnitType(data.get("unit_type", UnitType.OZ.value)),
            cost_per_unit=float(data.get("cost_per_unit", 0) or 0),
        )


@dataclass(frozen=True)
class RecipeLine:
    """Quantity of one ingredient per serving (weak reference by id)."""
    ingredient_id: str
    quantity: float


@dataclass(frozen=True)
class Recipe:
    """Recipe keyed by menu item name. A recipe with no lines costs 0."""
    menu_item_name: str
    lines: Tuple[RecipeLine, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Recipe":
        lines = tuple(
            RecipeLine(ingredient_id=str(line["ingredient_id"]), quantity=float(line.get("quantity", 0) or 0))
            for line in data.get("lines", [])
        )
        return cls(menu_item_name=str(data["menu_item_name"]), lines=lines)


@dataclass(frozen=True)
class MenuItem:
    """Price-list entry: current menu price and category for an item."""
    name: str
    price: Optional[float] = None
    cost_per_serving: Optional[float] = None
    category: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MenuItem":
        price = data.get("price")
        cost = data.get("cost_per_serving")
        return cls(
            name=str(data["name"]),
            price=float(price) if price is not None else None,
            cost_per_serving=float(cost) if cost is not None else None,
            category=data.get("category"),
        )


# =============================================================================
# DERIVED ROWS
# =============================================================================

def _plain(obj: Any) -> Any:
    """Convert enums / MarginPct / nested containers into JSON-ready values."""
    if isinstance(obj, MarginPct):
        return obj.value
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _plain(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    return obj


@dataclass(frozen=True)
class ItemMarginRow:
    """
    Per-item financials for one analysis run.

    Invariants:
        total_cost == round2(cost_per_serving * units_sold)
        contribution_margin == round2(revenue - total_cost)
        revenue == 0  =>  gross_margin_pct == MarginPct.defined(0)
    """
    item_name: str
    units_sold: float
    revenue: float
    cost_per_serving: float
    total_cost: float
    gross_margin_pct: MarginPct
    contribution_margin: float
    price: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _plain(self)


@dataclass(frozen=True)
class QuadrantItem:
    item_name: str
    quadrant: Quadrant
    units_sold: float
    revenue: float
    gross_margin_pct: MarginPct
    contribution_margin: float

    def to_dict(self) -> Dict[str, Any]:
        data = _plain(self)
        data["menu_engineering_class"] = self.quadrant.menu_engineering_class
        return data


@dataclass(frozen=True)
class PriceSuggestion:
    """Capped price recommendation for one item. Pure value, no identity."""
    current_price: float
    cost: float
    current_margin_pct: float
    target_margin_pct: float
    suggested_price: float
    suggested_margin_pct: float
    increase_pct: float
    capped: bool
    caution: bool

    def to_dict(self) -> Dict[str, Any]:
        return _plain(self)


@dataclass(frozen=True)
class ProfitLeakItem:
    item_name: str
    current_margin_pct: float
    units_sold: float
    revenue: float
    cost_per_serving: float
    current_contribution: float
    current_price: float
    target_margin_pct: float
    suggested_price: float
    price_at_target: float
    potential_contribution: float
    estimated_lost_profit_per_month: float
    capped: bool
    # High-volume low-margin items may be intentional loss leaders; review before raising.
    role: LeakItemRole

    def to_dict(self) -> Dict[str, Any]:
        return _plain(self)


@dataclass(frozen=True)
class ProfitLeakSummary:
    bottom_margin_skus: int = 0
    estimated_lost_profit_per_month: float = 0.0
    lost_from_items_to_fix: float = 0.0
    lost_from_strategic_candidates: float = 0.0
    items_to_fix_count: int = 0
    strategic_candidate_count: int = 0
    message: str = ""


@dataclass(frozen=True)
class ProfitLeakReport:
    summary: ProfitLeakSummary
    items: Tuple[ProfitLeakItem, ...] = ()
    # Wall clock; not part of equality
    generated_at: str = field(default="", compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": _plain(self.summary),
            "items": [item.to_dict() for item in self.items],
            "generated_at": self.generated_at,
        }


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class AnalysisConfig:
    """
    Parameters for one analysis run, passed by value into the pure core.

    Attributes:
        default_target_margin: Target gross margin as decimal (0.75 for 75%).
        per_item_target_margin: item_name -> target margin override (decimal).
        menu_price_overrides: item_name -> current menu price.
        strategic_item_names: Items the operator has marked as loss leaders.
    """
    default_target_margin: float = 0.75
    per_item_target_margin: Mapping[str, float] = field(default_factory=dict)
    menu_price_overrides: Mapping[str, float] = field(default_factory=dict)
    strategic_item_names: FrozenSet[str] = frozenset()

    def __post_init__(self):
        # Own copies of the caller's containers
        object.__setattr__(self, "per_item_target_margin", dict(self.per_item_target_margin or {}))
        object.__setattr__(self, "menu_price_overrides", dict(self.menu_price_overrides or {}))
        object.__setattr__(self, "strategic_item_names", frozenset(self.strategic_item_names or ()))

    def target_margin_for(self, item_name: str) -> float:
        return self.per_item_target_margin.get(item_name, self.default_target_margin)

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "AnalysisConfig":
        return cls(
            default_target_margin=float(config.get("default_target_margin", 0.75)),
            per_item_target_margin=config.get("per_item_target_margin") or {},
            menu_price_overrides=config.get("menu_price_overrides") or {},
            strategic_item_names=config.get("strategic_item_names") or (),
        )
