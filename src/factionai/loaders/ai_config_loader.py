"""AI configuration — loads tunable constants from config/ai.yaml.

Provides a single ``AIConfig`` dataclass that is loaded once at startup
and then passed (or injected) wherever constants are needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from factionai.engine.difficulty_scaler import check_difficulty, resolve_difficulty_config

log = logging.getLogger(__name__)

DEFAULT_AI_CONFIG_PATH = "config/ai.yaml"


@dataclass
class AIControllerConfig:
    """Pacing of the execution phase."""
    base_action_delay: float = 750.0
    delay_variance: float = 250.0
    max_actions_per_turn: int = 10
    enable_logging: bool = False


@dataclass
class PlannerConfig:
    """Strategic planner thresholds.

    Attributes:
        max_plan_age: Turns after creation at which a plan is regenerated.
        min_confidence: Plans below this confidence are regenerated.
        income_per_turn: FacCreds the planner assumes it earns each turn.
        max_actions_per_planned_turn: Actions scheduled per relative turn.
    """
    max_plan_age: int = 3
    min_confidence: float = 40.0
    income_per_turn: int = 2
    max_actions_per_planned_turn: int = 3


@dataclass
class AIConfig:
    """All tunable AI constants.

    Loaded from ``config/ai.yaml``.  Every field has a sensible default
    so the runner can start even without the file.
    """

    # -- Difficulty --------------------------------------------------
    difficulty: str = "normal"
    difficulty_overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # -- Factions ----------------------------------------------------
    player_faction_id: Optional[str] = None

    # -- Turn pipeline -----------------------------------------------
    controller: AIControllerConfig = field(default_factory=AIControllerConfig)
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    expand_influence_cost: int = 4

    # -- Runner ------------------------------------------------------
    turns: int = 1
    seed: Optional[int] = None


def _section(cls, raw: Any):
    if not isinstance(raw, dict):
        return cls()
    return cls(**{k: v for k, v in raw.items() if k in cls.__dataclass_fields__})


def load_ai_config(path: str = DEFAULT_AI_CONFIG_PATH) -> AIConfig:
    """Load AI configuration from a YAML file.

    Missing keys fall back to dataclass defaults and unknown keys are
    ignored.  If the file does not exist, a warning is logged and pure
    defaults are returned.

    Raises:
        ValueError: The difficulty or an override level is unknown.
    """
    p = Path(path)
    if not p.exists():
        log.warning("AI config not found at %s, using defaults", p)
        return AIConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded AI config from %s (%d keys)", p, len(raw))

    controller = _section(AIControllerConfig, raw.pop("controller", None))
    planner = _section(PlannerConfig, raw.pop("planner", None))

    overrides = raw.pop("difficulty_overrides", None) or {}
    for level, values in overrides.items():
        # Fails fast on unknown level names
        resolve_difficulty_config(level, values)

    cfg = AIConfig(controller=controller, planner=planner, difficulty_overrides=overrides, **{
        k: v for k, v in raw.items()
        if k in AIConfig.__dataclass_fields__
    })
    check_difficulty(cfg.difficulty)
    return cfg
