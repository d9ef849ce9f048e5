"""Difficulty scaler — adjusts scored actions for the AI difficulty level.

- easy: uniform noise on every score, the only source of sub-optimal play
- normal / medium: scores pass through unchanged
- hard / expert: attack candidates are re-evaluated by a one-ply expected
  value combat predictor and penalized or rewarded

The adjusted list is always re-sorted best first.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field, fields, replace
from typing import TYPE_CHECKING, Optional

from factionai.engine.combat import (
    calculate_attack_odds,
    calculate_expected_counterattack_damage,
    calculate_expected_damage,
)
from factionai.engine.utility_scorer import ActionScoringResult, ScoredAction

if TYPE_CHECKING:
    from factionai.engine.asset_catalog import AssetCatalog
    from factionai.engine.goal_selection import StrategicIntent
    from factionai.engine.influence_map import InfluenceMap
    from factionai.engine.threat_assessment import SectorThreatOverview
    from factionai.engine.utility_scorer import UtilityScorer
    from factionai.models.asset import AssetDefinition
    from factionai.models.faction import Faction, FactionAsset
    from factionai.models.sector import StarSystem

log = logging.getLogger(__name__)

DIFFICULTY_LEVELS = ("easy", "normal", "medium", "hard", "expert")

DEATH_PENALTY_MULTIPLIER = 5
RISKY_EXPECTED_VALUE = -10
AVOID_ADJUSTMENT = -50
RISKY_ADJUSTMENT = -25
MAX_FAVORABLE_BONUS = 30
RETREAT_LOSS_RATIO = 0.5


@dataclass(frozen=True)
class DifficultyConfig:
    """Tuning for one difficulty level.

    Attributes:
        level: Difficulty name.
        easy_noise_range: Scores move by up to +/- this much on easy.
        hard_min_win_probability: Attacks below this win chance are
            avoided on hard.
        expert_min_win_probability: Same threshold for expert.
        damage_weight: Weight of expected damage dealt.
        survival_weight: Weight of expected damage taken.
    """

    level: str
    easy_noise_range: float = 0.0
    hard_min_win_probability: float = 0.0
    expert_min_win_probability: float = 0.0
    damage_weight: float = 1.0
    survival_weight: float = 1.0

    @property
    def min_win_probability(self) -> float:
        if self.level == "expert":
            return self.expert_min_win_probability
        return self.hard_min_win_probability


DEFAULT_DIFFICULTY_CONFIGS: dict[str, DifficultyConfig] = {
    "easy": DifficultyConfig("easy", easy_noise_range=30),
    "normal": DifficultyConfig("normal"),
    "medium": DifficultyConfig("medium"),
    "hard": DifficultyConfig("hard", hard_min_win_probability=0.4,
                             damage_weight=1.2, survival_weight=1.5),
    "expert": DifficultyConfig("expert", expert_min_win_probability=0.5,
                               damage_weight=1.5, survival_weight=2.0),
}


def check_difficulty(level: str) -> str:
    """Return *level* unchanged, or raise ValueError for unknown names."""
    if level not in DEFAULT_DIFFICULTY_CONFIGS:
        raise ValueError(f"Unknown difficulty {level!r}, expected one of {', '.join(DIFFICULTY_LEVELS)}")
    return level


def resolve_difficulty_config(level: str, overrides: Optional[dict] = None) -> DifficultyConfig:
    """Default config for *level* with the known keys of *overrides* applied."""
    base = DEFAULT_DIFFICULTY_CONFIGS[check_difficulty(level)]
    if not overrides:
        return base
    known = {f.name for f in fields(DifficultyConfig)} - {"level"}
    return replace(base, **{k: v for k, v in overrides.items() if k in known})


def get_win_probability_threshold(level: str) -> float:
    """Minimum win probability an attack needs at *level* (0 below hard)."""
    if check_difficulty(level) in ("hard", "expert"):
        return DEFAULT_DIFFICULTY_CONFIGS[level].min_win_probability
    return 0.0


# -- Results -------------------------------------------------------------

@dataclass(frozen=True)
class CombatPrediction:
    """Expected outcome of one attack.

    Attributes:
        win_probability: Chance the attack succeeds (0-1).
        expected_damage_dealt: Average damage of the attack.
        expected_damage_taken: Average counterattack damage, scaled by the
            chance of failing.
        net_expected_value: Positive when the trade favors the attacker.
        recommendation: attack, risky or avoid.
    """

    win_probability: float
    expected_damage_dealt: float
    expected_damage_taken: float
    net_expected_value: float
    recommendation: str
    reasoning: str


@dataclass(frozen=True)
class MinimaxEvaluation:
    action: ScoredAction
    combat_prediction: CombatPrediction
    adjusted_score: float
    original_score: float
    adjustment: float
    reasoning: str
    invalid: bool = False


@dataclass
class DifficultyAdjustedResult:
    """Scored actions after difficulty scaling.

    ``best_action`` is the first of ``adjusted_actions``, or None when
    there are no actions.
    """

    original_result: ActionScoringResult
    adjusted_actions: list[ScoredAction]
    best_action: Optional[ScoredAction]
    difficulty: str
    minimax_evaluations: list[MinimaxEvaluation] = field(default_factory=list)
    reasoning: str = ""

    @property
    def invalid_actions(self) -> list[ScoredAction]:
        return [a for a in self.adjusted_actions if a.invalid]

    def as_scoring_result(self) -> ActionScoringResult:
        """The adjusted actions grouped by type, best first."""
        return ActionScoringResult.from_actions(
            self.original_result.faction_id, self.adjusted_actions, self.reasoning)


@dataclass(frozen=True)
class RetreatAnalysis:
    should_retreat: bool
    reasoning: str


def should_avoid_attack(evaluation: MinimaxEvaluation, level: str) -> bool:
    """Whether the predictor vetoed the attack at *level*."""
    if level in ("easy", "normal", "medium"):
        return False
    return evaluation.combat_prediction.recommendation == "avoid"


_INVALID_PREDICTION = CombatPrediction(0.0, 0.0, 0.0, -100.0, "avoid", "Invalid reference")


# -- Scaler --------------------------------------------------------------

class DifficultyScaler:
    """Applies difficulty adjustments to a scoring result.

    Args:
        catalog: Asset definitions for resolving attackers and targets.
        rng: Random source for easy-mode noise.
        overrides: Level -> partial DifficultyConfig values.
    """

    def __init__(self, catalog: AssetCatalog, rng: Optional[random.Random] = None,
                 overrides: Optional[dict[str, dict]] = None) -> None:
        self._catalog = catalog
        self._rng = rng or random.Random()
        self._overrides = overrides or {}

    def config_for(self, level: str) -> DifficultyConfig:
        return resolve_difficulty_config(level, self._overrides.get(level))

    # -- Easy ------------------------------------------------------------

    def add_noise_to_score(self, score: float, noise_range: float) -> float:
        """Add uniform noise in [-noise_range, +noise_range], floored at 0."""
        if noise_range <= 0:
            return score
        return max(0.0, score + self._rng.uniform(-noise_range, noise_range))

    def apply_easy_mode_noise(self, actions: list[ScoredAction], noise_range: float) -> list[ScoredAction]:
        return [
            replace(a, score=self.add_noise_to_score(a.score, noise_range),
                    reasoning=f"{a.reasoning} [Easy mode noise applied]")
            for a in actions
        ]

    # -- Hard / expert ---------------------------------------------------

    @staticmethod
    def predict_combat_outcome(attacking_faction: Faction, attacking_asset: FactionAsset,
                               attacking_def: AssetDefinition, target_faction: Faction,
                               target_def: AssetDefinition,
                               config: DifficultyConfig) -> CombatPrediction:
        """One-ply expected value of *attacking_asset* attacking a target."""
        pattern = attacking_def.attack
        if pattern is None:
            return CombatPrediction(0.0, 0.0, 0.0, -100.0, "avoid", "Asset cannot attack")

        win = calculate_attack_odds(
            pattern.attacker_attribute,
            attacking_faction.attributes.rating(pattern.attacker_attribute),
            pattern.defender_attribute,
            target_faction.attributes.rating(pattern.defender_attribute),
        )
        reasons = [f"Win probability: {win * 100:.0f}%"]

        dealt = calculate_expected_damage(pattern.damage)
        reasons.append(f"Expected damage dealt: {dealt:.1f}")

        taken = calculate_expected_counterattack_damage(target_def.counterattack) * (1 - win)
        if taken > 0:
            reasons.append(f"Expected damage taken: {taken:.1f}")

        damage_value = dealt * win * config.damage_weight
        survival_cost = taken * config.survival_weight
        death_risk = (1 - win) if taken >= attacking_asset.hp else 0.0
        death_penalty = death_risk * attacking_def.cost * DEATH_PENALTY_MULTIPLIER
        net = damage_value - survival_cost - death_penalty

        threshold = config.min_win_probability
        if win < threshold:
            recommendation = "avoid"
            reasons.append(f"Below {threshold * 100:.0f}% threshold")
        elif net < RISKY_EXPECTED_VALUE:
            recommendation = "risky"
            reasons.append("Unfavorable expected outcome")
        else:
            recommendation = "attack"
            reasons.append("Favorable expected outcome")

        return CombatPrediction(win, dealt, taken, net, recommendation, ". ".join(reasons))

    def evaluate_attack_with_minimax(self, action: ScoredAction, faction: Faction,
                                     factions: list[Faction],
                                     config: DifficultyConfig) -> MinimaxEvaluation:
        """Re-score one attack from its combat prediction.

        Non-attack actions pass through. Unresolvable attackers or targets
        get a zero score and are flagged invalid.
        """
        if action.action.type != "attack":
            return MinimaxEvaluation(
                action=action,
                combat_prediction=CombatPrediction(1.0, 0.0, 0.0, 0.0, "attack", "Non-combat action"),
                adjusted_score=action.score,
                original_score=action.score,
                adjustment=0.0,
                reasoning="Non-combat action - no adjustment",
            )

        attacker = faction.get_asset(action.action.acting_asset_id)
        attacker_def = self._catalog.definition_of(attacker) if attacker else None
        if attacker is None or attacker_def is None:
            return self._invalid(action, "Invalid attacker - score zeroed")

        target_faction = next((f for f in factions if f.id == action.action.target_faction_id), None)
        target = target_faction.get_asset(action.action.target_asset_id) if target_faction else None
        target_def = self._catalog.definition_of(target) if target else None
        if target_faction is None or target is None or target_def is None:
            return self._invalid(action, "Invalid target - score zeroed")

        prediction = self.predict_combat_outcome(
            faction, attacker, attacker_def, target_faction, target_def, config)

        if prediction.recommendation == "avoid":
            adjustment = float(AVOID_ADJUSTMENT)
            adjusted = max(0.0, action.score + adjustment)
        elif prediction.recommendation == "risky":
            adjustment = float(RISKY_ADJUSTMENT)
            adjusted = max(0.0, action.score + adjustment)
        else:
            adjustment = min(MAX_FAVORABLE_BONUS, prediction.net_expected_value * 2)
            adjusted = action.score + adjustment

        return MinimaxEvaluation(
            action=action,
            combat_prediction=prediction,
            adjusted_score=adjusted,
            original_score=action.score,
            adjustment=adjustment,
            reasoning=f"{prediction.reasoning}. Adjustment: {adjustment:+.0f}",
        )

    @staticmethod
    def _invalid(action: ScoredAction, reason: str) -> MinimaxEvaluation:
        log.warning("Invalid attack candidate %s: %s", action.action.description, reason)
        return MinimaxEvaluation(
            action=action,
            combat_prediction=_INVALID_PREDICTION,
            adjusted_score=0.0,
            original_score=action.score,
            adjustment=-action.score,
            reasoning=reason,
            invalid=True,
        )

    # -- Entry points ----------------------------------------------------

    def apply_difficulty_scaling(self, result: ActionScoringResult, faction: Faction,
                                 factions: list[Faction], level: str) -> DifficultyAdjustedResult:
        """Adjust *result* for *level* and re-sort best first."""
        config = self.config_for(level)
        adjusted = list(result.scored_actions)
        evaluations: list[MinimaxEvaluation] = []
        reasons = [f"Difficulty: {level}"]

        if level == "easy":
            adjusted = self.apply_easy_mode_noise(adjusted, config.easy_noise_range)
            reasons.append(f"Applied +/-{config.easy_noise_range:.0f} noise")
        elif level in ("hard", "expert"):
            rescored = []
            for action in adjusted:
                if action.action.type != "attack":
                    rescored.append(action)
                    continue
                evaluation = self.evaluate_attack_with_minimax(action, faction, factions, config)
                evaluations.append(evaluation)
                rescored.append(replace(
                    action,
                    score=evaluation.adjusted_score,
                    reasoning=f"{action.reasoning}. [Minimax: {evaluation.combat_prediction.recommendation}]",
                    invalid=action.invalid or evaluation.invalid,
                ))
            adjusted = rescored
            reasons.append(f"Minimax evaluated {len(evaluations)} attacks")
            avoided = sum(1 for e in evaluations if e.combat_prediction.recommendation == "avoid")
            if avoided:
                reasons.append(f"{avoided} attacks penalized as unfavorable")
        else:
            reasons.append("Standard scoring")

        adjusted.sort(key=lambda a: a.score, reverse=True)
        return DifficultyAdjustedResult(
            original_result=result,
            adjusted_actions=adjusted,
            best_action=adjusted[0] if adjusted else None,
            difficulty=level,
            minimax_evaluations=evaluations,
            reasoning=". ".join(reasons),
        )

    def score_actions_with_difficulty(self, scorer: UtilityScorer, faction: Faction,
                                      factions: list[Faction], systems: list[StarSystem],
                                      influence_map: InfluenceMap, threats: SectorThreatOverview,
                                      intent: StrategicIntent, level: str) -> DifficultyAdjustedResult:
        """Score every candidate with *scorer*, then scale for *level*."""
        base = scorer.score_all_actions(faction, factions, systems, influence_map, threats, intent)
        return self.apply_difficulty_scaling(base, faction, factions, level)

    def analyze_retreat_necessity(self, faction: Faction, factions: list[Faction],
                                  system_id: str, level: str) -> RetreatAnalysis:
        """Recommend retreat when over half the asset value at *system_id*
        is expected to die. Only hard and expert AIs retreat this way."""
        if level not in ("hard", "expert"):
            return RetreatAnalysis(False, "Easy/Normal AI does not retreat strategically")

        config = self.config_for(level)
        ours = faction.assets_at(system_id)
        if not ours:
            return RetreatAnalysis(False, "No assets at location")

        attackers = []
        for enemy in factions:
            if enemy.id == faction.id:
                continue
            for asset in enemy.assets:
                if asset.location != system_id or asset.stealthed:
                    continue
                definition = self._catalog.definition_of(asset)
                if definition is not None and definition.attack is not None:
                    attackers.append((enemy, asset, definition))

        if not attackers:
            return RetreatAnalysis(False, "No enemy attackers at location")

        death_risk = 0.0
        total_value = 0
        for asset in ours:
            definition = self._catalog.definition_of(asset)
            if definition is None:
                continue
            total_value += definition.cost
            for enemy, enemy_asset, enemy_def in attackers:
                prediction = self.predict_combat_outcome(
                    enemy, enemy_asset, enemy_def, faction, definition, config)
                if prediction.expected_damage_dealt >= asset.hp:
                    death_risk += definition.cost * prediction.win_probability

        ratio = death_risk / max(1, total_value)
        if ratio > RETREAT_LOSS_RATIO:
            return RetreatAnalysis(True, f"High expected losses ({ratio * 100:.0f}% of asset value at risk)")
        return RetreatAnalysis(False, f"Acceptable risk level ({ratio * 100:.0f}% of asset value at risk)")
