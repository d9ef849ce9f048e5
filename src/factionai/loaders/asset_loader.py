"""Asset loader — parses asset YAML into AssetDefinition models.

Format: one mapping per section (force, cunning, wealth, special) of
``definition_id -> attributes``::

    force:
      force_1_security_personnel:
        name: Security Personnel
        rating: 1
        hp: 3
        cost: 2
        tech_level: 0
        type: Military Unit
        attack: {attacker: Force, defender: Force, damage: 1d3+1}
        counterattack: 1d4
        flags: [A]

Entries of the ``special`` section need an explicit ``category``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from factionai.engine.asset_catalog import AssetCatalog
from factionai.engine.combat import is_valid_dice_expression
from factionai.models.asset import (
    AssetCategory,
    AssetDefinition,
    AssetType,
    AttackPattern,
    CounterattackPattern,
    SpecialFlags,
)

log = logging.getLogger(__name__)

DEFAULT_ASSETS_PATH = "config/assets.yaml"

_SECTIONS = {
    "force": AssetCategory.FORCE,
    "cunning": AssetCategory.CUNNING,
    "wealth": AssetCategory.WEALTH,
    "special": None,
}


def _category(value: Any, asset_id: str) -> AssetCategory:
    try:
        return AssetCategory(str(value).capitalize())
    except ValueError:
        raise ValueError(f"Asset {asset_id}: unknown category {value!r}") from None


def _dice(value: Any, asset_id: str) -> str:
    expression = str(value).strip()
    if not is_valid_dice_expression(expression):
        raise ValueError(f"Asset {asset_id}: malformed dice expression {expression!r}")
    return expression


def _attack(raw: Any, asset_id: str) -> Optional[AttackPattern]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Asset {asset_id}: attack must be a mapping")
    return AttackPattern(
        attacker_attribute=_category(raw.get("attacker"), asset_id),
        defender_attribute=_category(raw.get("defender"), asset_id),
        damage=_dice(raw.get("damage", "None"), asset_id),
    )


def _flags(raw: Any) -> SpecialFlags:
    letters = set(raw or [])
    return SpecialFlags(
        has_action="A" in letters,
        has_special="S" in letters,
        requires_permission="P" in letters,
    )


def _parse_section(section_key: str, section: Any) -> list[AssetDefinition]:
    """Parse a single section dict into AssetDefinitions."""
    default_category = _SECTIONS[section_key]
    definitions: list[AssetDefinition] = []
    for asset_id, attrs in (section or {}).items():
        if not isinstance(attrs, dict):
            log.warning("Skipping asset %s: expected a mapping", asset_id)
            continue
        if "category" in attrs:
            category = _category(attrs["category"], asset_id)
        elif default_category is not None:
            category = default_category
        else:
            raise ValueError(f"Asset {asset_id}: special assets need a category")

        counter = attrs.get("counterattack")
        definitions.append(AssetDefinition(
            id=asset_id,
            name=attrs.get("name", asset_id),
            category=category,
            required_rating=int(attrs.get("rating", 1)),
            hp=int(attrs.get("hp", 1)),
            cost=int(attrs.get("cost", 1)),
            tech_level=int(attrs.get("tech_level", 0)),
            asset_type=attrs.get("type", AssetType.SPECIAL),
            attack=_attack(attrs.get("attack"), asset_id),
            counterattack=CounterattackPattern(_dice(counter, asset_id)) if counter else None,
            maintenance=int(attrs.get("maintenance", 0)),
            flags=_flags(attrs.get("flags")),
            description=attrs.get("description", ""),
            movement_range=int(attrs.get("movement_range", 0)),
        ))
    return definitions


def load_asset_definitions(path: str | Path = DEFAULT_ASSETS_PATH) -> list[AssetDefinition]:
    """Load all asset definitions from a YAML file.

    Raises:
        ValueError: An entry has an unknown category or a malformed dice
            expression.
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f) or {}

    definitions: list[AssetDefinition] = []
    for key in _SECTIONS:
        definitions.extend(_parse_section(key, data.get(key)))
    log.info("Loaded %d asset definitions from %s", len(definitions), path)
    return definitions


def load_catalog(path: str | Path = DEFAULT_ASSETS_PATH) -> AssetCatalog:
    """Asset catalog filled from *path*."""
    return AssetCatalog(load_asset_definitions(path))
