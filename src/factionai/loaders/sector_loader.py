"""Scenario loader — parses a scenario YAML into the sector and factions.

Format::

    player_faction_id: empire        # optional
    sector:
      id: hydra
      name: Hydra Sector
      systems:
        - id: sol
          name: Sol
          x: 0
          y: 0
          world: {name: Earth, tech_level: 4, population: 5, tags: [Trade Hub]}
          routes: [{to: alpha, trade: true}, beta]
    factions:
      - id: empire
        name: Terran Empire
        type: Government
        homeworld: sol
        hp: 15
        force: 5
        cunning: 3
        wealth: 4
        fac_creds: 12
        tags: [Warlike]
        goal: {type: Military Conquest, target: 5}
        assets:
          - {id: e1, definition: force_4_strike_fleet, location: sol}

Asset hp defaults to the definition's hp when a catalog is given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import yaml

from factionai.models.faction import (
    Faction,
    FactionAsset,
    FactionAttributes,
    FactionGoal,
    GoalType,
)
from factionai.models.sector import PrimaryWorld, Route, Sector, StarSystem

if TYPE_CHECKING:
    from factionai.engine.asset_catalog import AssetCatalog

log = logging.getLogger(__name__)

DEFAULT_SCENARIO_PATH = "config/scenarios/default.yaml"


@dataclass
class Scenario:
    """A loaded scenario.

    Attributes:
        sector: Star systems and their routes.
        factions: Factions in file order.
        player_faction_id: The human-controlled faction, if any.
    """

    sector: Sector
    factions: list[Faction] = field(default_factory=list)
    player_faction_id: Optional[str] = None


# -- Sector --------------------------------------------------------------

def _parse_route(raw: Any) -> Route:
    if isinstance(raw, dict):
        return Route(system_id=str(raw["to"]), is_trade_route=bool(raw.get("trade", False)))
    return Route(system_id=str(raw))


def _parse_world(raw: Any) -> PrimaryWorld:
    if not isinstance(raw, dict):
        return PrimaryWorld()
    return PrimaryWorld(
        name=raw.get("name", ""),
        tech_level=int(raw.get("tech_level", 0)),
        population=int(raw.get("population", 0)),
        atmosphere=raw.get("atmosphere", "Breathable"),
        temperature=raw.get("temperature", "Temperate"),
        biosphere=raw.get("biosphere", "None"),
        government=raw.get("government", ""),
        tags=tuple(raw.get("tags") or ()),
        trade_codes=tuple(raw.get("trade_codes") or ()),
    )


def _parse_system(raw: dict[str, Any]) -> StarSystem:
    return StarSystem(
        id=str(raw["id"]),
        name=raw.get("name", str(raw["id"])),
        x=int(raw.get("x", 0)),
        y=int(raw.get("y", 0)),
        primary_world=_parse_world(raw.get("world")),
        routes=tuple(_parse_route(r) for r in raw.get("routes") or ()),
    )


def parse_sector(raw: Any) -> Sector:
    """Build a Sector from its YAML mapping."""
    raw = raw or {}
    systems = [_parse_system(s) for s in raw.get("systems") or []]
    known = {s.id for s in systems}
    for system in systems:
        for route in system.routes:
            if route.system_id not in known:
                log.warning("System %s has a route to unknown system %s", system.id, route.system_id)
    return Sector(id=raw.get("id", "sector"), name=raw.get("name", ""), systems=systems)


# -- Factions ------------------------------------------------------------

def _goal_type(value: Any) -> GoalType:
    """Accept the display value ("Military Conquest") or the enum name."""
    text = str(value)
    for goal_type in GoalType:
        if text in (goal_type.value, goal_type.name):
            return goal_type
    raise ValueError(f"Unknown goal type {value!r}")


def _parse_goal(raw: Any, faction_id: str) -> Optional[FactionGoal]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raw = {"type": raw}
    goal_type = _goal_type(raw["type"])
    return FactionGoal(
        id=raw.get("id", f"{faction_id}-goal"),
        type=goal_type,
        description=raw.get("description", goal_type.value),
        current=int(raw.get("current", 0)),
        target=int(raw.get("target", 1)),
        difficulty=int(raw.get("difficulty", 1)),
        is_completed=bool(raw.get("completed", False)),
    )


def _parse_asset(raw: dict[str, Any], catalog: Optional[AssetCatalog]) -> FactionAsset:
    definition_id = str(raw["definition"])
    definition = catalog.get(definition_id) if catalog is not None else None
    if catalog is not None and definition is None:
        log.warning("Asset %s uses unknown definition %s", raw.get("id"), definition_id)
    default_hp = definition.hp if definition is not None else 1
    max_hp = int(raw.get("max_hp", default_hp))
    return FactionAsset(
        id=str(raw["id"]),
        definition_id=definition_id,
        location=str(raw["location"]),
        hp=int(raw.get("hp", max_hp)),
        max_hp=max_hp,
        stealthed=bool(raw.get("stealthed", False)),
        purchased_turn=raw.get("purchased_turn"),
    )


def parse_faction(raw: dict[str, Any], catalog: Optional[AssetCatalog] = None) -> Faction:
    """Build a Faction from its YAML mapping."""
    faction_id = str(raw["id"])
    max_hp = int(raw.get("max_hp", raw.get("hp", 10)))
    return Faction(
        id=faction_id,
        name=raw.get("name", faction_id),
        faction_type=raw.get("type", "Other"),
        homeworld=str(raw.get("homeworld", "")),
        attributes=FactionAttributes(
            hp=int(raw.get("hp", max_hp)),
            max_hp=max_hp,
            force=int(raw.get("force", 1)),
            cunning=int(raw.get("cunning", 1)),
            wealth=int(raw.get("wealth", 1)),
        ),
        fac_creds=int(raw.get("fac_creds", 0)),
        tags=list(raw.get("tags") or []),
        goal=_parse_goal(raw.get("goal"), faction_id),
        assets=[_parse_asset(a, catalog) for a in raw.get("assets") or []],
    )


def load_scenario(path: str | Path = DEFAULT_SCENARIO_PATH,
                  catalog: Optional[AssetCatalog] = None) -> Scenario:
    """Load a scenario from a YAML file.

    Raises:
        ValueError: A goal type is unknown or two factions share an ID.
    """
    path = Path(path)
    with path.open() as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}

    sector = parse_sector(data.get("sector"))
    factions = [parse_faction(f, catalog) for f in data.get("factions") or []]

    seen: set[str] = set()
    for faction in factions:
        if faction.id in seen:
            raise ValueError(f"Duplicate faction id {faction.id!r}")
        seen.add(faction.id)

    player = data.get("player_faction_id")
    if player is not None and player not in seen:
        log.warning("Player faction %s is not in the scenario", player)

    log.info("Loaded scenario %s: %d systems, %d factions", path, len(sector.systems), len(factions))
    return Scenario(sector=sector, factions=factions, player_faction_id=player)
