"""Tests for goal weighting, goal changes and strategic intent."""

from factionai.engine.goal_selection import GoalSelectionService
from factionai.models.faction import Faction, FactionAsset, FactionAttributes, FactionGoal, GoalType
from factionai.models.sector import StarSystem


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_faction(fid="us", force=5, cunning=3, wealth=2, hp=10, tags=None,
                  goal=None, creds=0, assets=None):
    return Faction(
        id=fid, name=fid, homeworld="home",
        attributes=FactionAttributes(hp=hp, max_hp=10, force=force, cunning=cunning, wealth=wealth),
        fac_creds=creds, tags=tags or [], assets=assets or [],
        goal=FactionGoal(id="g", type=goal) if goal else None,
    )


def _weights(faction, factions=None):
    svc = GoalSelectionService()
    return {w.goal_type: w for w in svc.calculate_goal_weights(faction, factions or [faction])}


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

class TestGoalWeights:
    def test_force_goal_weight(self):
        w = _weights(_make_faction())[GoalType.MILITARY_CONQUEST]
        assert w.base_weight == 70
        assert w.situational_modifier == 10
        assert w.final_weight == 80

    def test_expand_bonus_for_few_assets(self):
        w = _weights(_make_faction())[GoalType.EXPAND_INFLUENCE]
        assert w.final_weight == 70

    def test_tags_shift_weights(self):
        w = _weights(_make_faction(force=1, tags=["Warlike"]))
        assert w[GoalType.MILITARY_CONQUEST].tag_modifier == 20
        assert w[GoalType.PEACEABLE_KINGDOM].tag_modifier == -25

    def test_weights_are_clamped(self):
        w = _weights(_make_faction(force=8, tags=["Warlike", "Savage"]))
        assert w[GoalType.MILITARY_CONQUEST].final_weight == 100
        w = _weights(_make_faction(force=1, tags=["Warlike", "Savage"]))
        assert w[GoalType.PEACEABLE_KINGDOM].final_weight == 0

    def test_low_hp_favors_peace(self):
        w = _weights(_make_faction(hp=3))
        assert w[GoalType.PEACEABLE_KINGDOM].final_weight == 90
        assert w[GoalType.MILITARY_CONQUEST].final_weight == 60

    def test_weak_single_enemy_invites_destruction(self):
        us = _make_faction()
        weak = _make_faction("weak", force=1, cunning=1, wealth=1)
        w = _weights(us, [us, weak])[GoalType.DESTROY_THE_FOE]
        assert w.situational_modifier == 25


# ---------------------------------------------------------------------------
# Evaluation and changes
# ---------------------------------------------------------------------------

class TestEvaluateGoals:
    def test_recommends_highest_weight(self):
        svc = GoalSelectionService()
        faction = _make_faction()
        evaluation = svc.evaluate_goals(faction, [faction], [])
        assert evaluation.recommended_goal is GoalType.MILITARY_CONQUEST
        assert len(evaluation.goal_weights) == 11
        assert evaluation.strategic_intent.primary_focus == "military"

    def test_recovering_faction_recommends_peace(self):
        svc = GoalSelectionService()
        faction = _make_faction(hp=3)
        assert svc.evaluate_goals(faction, [faction], []).recommended_goal is GoalType.PEACEABLE_KINGDOM


class TestShouldChangeGoal:
    def test_no_goal(self):
        change, reason = GoalSelectionService().should_change_goal(_make_faction(), [], [])
        assert change
        assert reason == "No current goal"

    def test_completed_goal(self):
        faction = _make_faction(goal=GoalType.MILITARY_CONQUEST)
        faction.goal.is_completed = True
        change, _ = GoalSelectionService().should_change_goal(faction, [faction], [])
        assert change

    def test_goal_sticks_within_margin(self):
        # Expand Influence 70 vs Military Conquest 80
        faction = _make_faction(goal=GoalType.EXPAND_INFLUENCE)
        change, reason = GoalSelectionService().should_change_goal(faction, [faction], [])
        assert not change
        assert reason == "Current goal remains optimal"

    def test_much_better_goal_replaces(self):
        # Peaceable Kingdom 30 vs Military Conquest 80
        faction = _make_faction(goal=GoalType.PEACEABLE_KINGDOM)
        change, reason = GoalSelectionService().should_change_goal(faction, [faction], [])
        assert change
        assert "Military Conquest" in reason


# ---------------------------------------------------------------------------
# Intent
# ---------------------------------------------------------------------------

class TestStrategicIntent:
    def test_military_targets_strongest(self):
        us = _make_faction(assets=[FactionAsset("a1", "x", "outpost", hp=1, max_hp=1)])
        weak = _make_faction("weak", force=1, cunning=1, wealth=1)
        strong = _make_faction("strong", force=6, cunning=6, wealth=6)
        intent = GoalSelectionService().determine_strategic_intent(
            us, GoalType.MILITARY_CONQUEST, [us, weak, strong], [])
        assert intent.primary_focus == "military"
        assert intent.aggression_level == 60
        assert intent.target_faction_id == "strong"
        assert intent.priority_system_ids == ["home", "outpost"]

    def test_destroy_the_foe_targets_weakest(self):
        us = _make_faction()
        weak = _make_faction("weak", force=1, cunning=1, wealth=1)
        strong = _make_faction("strong", force=6, cunning=6, wealth=6)
        intent = GoalSelectionService().determine_strategic_intent(
            us, GoalType.DESTROY_THE_FOE, [us, weak, strong], [])
        assert intent.target_faction_id == "weak"
        assert intent.aggression_level == 70

    def test_no_goal_is_defensive(self):
        intent = GoalSelectionService().determine_strategic_intent(_make_faction(), None, [], [])
        assert intent.primary_focus == "defensive"
        assert intent.target_faction_id is None

    def test_economic_focus_lowers_aggression(self):
        intent = GoalSelectionService().determine_strategic_intent(
            _make_faction(tags=["Warlike"]), GoalType.WEALTH_OF_WORLDS, [], [])
        assert intent.primary_focus == "economic"
        assert intent.aggression_level == 60

    def test_expansion_adds_candidate_systems(self):
        systems = [StarSystem(id="home"), StarSystem(id="s1"), StarSystem(id="s2")]
        intent = GoalSelectionService().determine_strategic_intent(
            _make_faction(), GoalType.EXPAND_INFLUENCE, [], systems)
        assert intent.primary_focus == "expansion"
        assert intent.priority_system_ids == ["home", "s1", "s2"]


class TestCreateGoalInstance:
    def test_target_follows_ratings(self):
        faction = _make_faction()
        goal = GoalSelectionService.create_goal_instance(GoalType.MILITARY_CONQUEST, faction)
        assert goal.target == 5
        assert goal.current == 0
        assert goal.difficulty == 1
        assert not goal.is_completed

    def test_hard_goal_difficulty(self):
        goal = GoalSelectionService.create_goal_instance(GoalType.DESTROY_THE_FOE, _make_faction())
        assert goal.difficulty == 2

    def test_unique_ids(self):
        faction = _make_faction()
        a = GoalSelectionService.create_goal_instance(GoalType.EXPAND_INFLUENCE, faction)
        b = GoalSelectionService.create_goal_instance(GoalType.EXPAND_INFLUENCE, faction)
        assert a.id != b.id
