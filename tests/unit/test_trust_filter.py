"""
Unit tests for the trust filter.

Tests cover:
1. Archetype distance - clusters, pair overrides, secondary softening
2. Pair rules - hide before demote, demote priority, confidence gates
3. Category policies - bags/accessories never hide, shoes+tops archetype downgrade
4. Anchor rule - statement pieces in anchor-dependent pairs at medium distance
5. Batch evaluation - top-N by score, ghost rejection, stats
6. Remote config merge - allow-list, per-key validation
"""

import pytest

from stylecheck.models.item import Category
from stylecheck.models.signals import Archetype
from stylecheck.models.trust_filter import ArchetypeDistance, MatchAction, TrustFilterCandidate, TrustReason
from stylecheck.services.trust_filter import TrustFilterConfig, evaluate_batch, evaluate_pair, merge_remote_config
from stylecheck.services.trust_filter.config import AnchorRule
from stylecheck.services.trust_filter.distance import archetype_distance, base_distance


@pytest.fixture
def config() -> TrustFilterConfig:
    return TrustFilterConfig()


@pytest.fixture
def dressy_classic(make_signals):
    return make_signals(primary="classic", formality="dressy")


@pytest.fixture
def casual_street(make_signals):
    return make_signals(primary="street", formality="casual")


# =============================================================================
# Distance Tests
# =============================================================================


class TestArchetypeDistance:
    def test_same_cluster_is_close(self, config):
        assert base_distance(config, Archetype.CLASSIC, Archetype.PREPPY) is ArchetypeDistance.CLOSE

    def test_cluster_matrix_is_symmetric(self, config):
        for left in config.clusters:
            for right in config.clusters:
                assert config.cluster_distances[left][right] is config.cluster_distances[right][left]

    def test_tailored_vs_urban_is_far(self, config):
        assert base_distance(config, Archetype.CLASSIC, Archetype.STREET) is ArchetypeDistance.FAR

    def test_pair_override_in_either_order(self, config):
        assert base_distance(config, Archetype.CLASSIC, Archetype.WESTERN) is ArchetypeDistance.CLOSE
        assert base_distance(config, Archetype.WESTERN, Archetype.CLASSIC) is ArchetypeDistance.CLOSE

    def test_unknown_archetype_has_no_distance(self, config):
        assert base_distance(config, Archetype.UNKNOWN, Archetype.CLASSIC) is None

    def test_secondary_only_brings_closer(self, config, make_signals):
        target = make_signals(primary="classic")
        closer = make_signals(primary="street", secondary="minimalist", secondary_confidence=0.6)
        further = make_signals(primary="preppy", secondary="street", secondary_confidence=0.9)

        assert archetype_distance(config, target, closer) == (ArchetypeDistance.CLOSE, True)
        assert archetype_distance(config, target, further) == (ArchetypeDistance.CLOSE, False)

    def test_weak_secondary_is_ignored(self, config, make_signals):
        target = make_signals(primary="classic")
        candidate = make_signals(primary="street", secondary="classic", secondary_confidence=0.2)
        assert archetype_distance(config, target, candidate) == (ArchetypeDistance.FAR, False)


# =============================================================================
# Pair Rule Tests
# =============================================================================


class TestEvaluatePair:
    def test_dressy_classic_vs_casual_street_hides(self, dressy_classic, casual_street):
        decision = evaluate_pair(dressy_classic, casual_street, Category.TOPS, Category.BOTTOMS)

        assert decision.action is MatchAction.HIDE
        assert decision.primary_reason is TrustReason.STYLE_ARCHETYPE_HARD_CLASH
        assert TrustReason.FORMALITY_MISMATCH in decision.secondary_reasons
        assert decision.debug.archetype_distance is ArchetypeDistance.FAR
        assert decision.debug.formality_gap == 3

    def test_missing_signals_keep(self, dressy_classic):
        for target, candidate in ((dressy_classic, None), (None, dressy_classic), (None, None)):
            decision = evaluate_pair(target, candidate, Category.TOPS, Category.BOTTOMS)
            assert decision.action is MatchAction.KEEP
            assert decision.primary_reason is TrustReason.INSUFFICIENT_INFO

    def test_identical_signals_keep(self, make_signals):
        decision = evaluate_pair(make_signals(), make_signals(), Category.TOPS, Category.BOTTOMS)

        assert decision.action is MatchAction.KEEP
        assert decision.primary_reason is None
        assert decision.secondary_reasons == ()

    def test_secondary_archetype_prevents_hide(self, dressy_classic, make_signals):
        candidate = make_signals(
            primary="street", formality="casual", secondary="classic", secondary_confidence=0.6
        )
        decision = evaluate_pair(dressy_classic, candidate, Category.TOPS, Category.BOTTOMS)

        assert decision.action is MatchAction.DEMOTE
        assert decision.primary_reason is TrustReason.FORMALITY_MISMATCH
        assert decision.debug.used_secondary is True

    def test_unconfident_primaries_never_hide(self, make_signals):
        target = make_signals(primary="classic", primary_confidence=0.6, formality="dressy")
        candidate = make_signals(primary="street", primary_confidence=0.6, formality="casual")

        decision = evaluate_pair(target, candidate, Category.TOPS, Category.BOTTOMS)

        assert decision.action is MatchAction.DEMOTE
        assert decision.primary_reason is TrustReason.FORMALITY_MISMATCH
        assert decision.debug.confidence_gate_hit is True

    def test_athleisure_clash_outranks_formality_mismatch(self, make_signals):
        target = make_signals(primary="street", formality="office")
        candidate = make_signals(primary="sporty", formality="athleisure")

        decision = evaluate_pair(target, candidate, Category.TOPS, Category.BOTTOMS)

        assert decision.action is MatchAction.DEMOTE
        assert decision.primary_reason is TrustReason.ATHLEISURE_VS_POLISHED_CLASH
        assert decision.secondary_reasons == (TrustReason.FORMALITY_MISMATCH,)

    def test_statement_overload(self, make_signals):
        target = make_signals(primary="classic", statement="high")
        candidate = make_signals(primary="romantic", statement="high")

        decision = evaluate_pair(target, candidate, Category.TOPS, Category.BOTTOMS)

        assert decision.primary_reason is TrustReason.STATEMENT_VS_STATEMENT_OVERLOAD
        assert TrustReason.STYLE_ARCHETYPE_MISMATCH in decision.secondary_reasons

    def test_season_mismatch(self, make_signals):
        decision = evaluate_pair(
            make_signals(season="light"), make_signals(season="heavy"), Category.TOPS, Category.OUTERWEAR
        )
        assert decision.action is MatchAction.DEMOTE
        assert decision.primary_reason is TrustReason.WEATHER_SEASON_MISMATCH
        assert decision.debug.season_diff == 2

    def test_unconfident_season_is_ignored(self, make_signals):
        decision = evaluate_pair(
            make_signals(season="light"),
            make_signals(season="heavy", season_confidence=0.3),
            Category.TOPS,
            Category.OUTERWEAR,
        )
        assert decision.action is MatchAction.KEEP
        assert decision.debug.season_diff is None

    def test_bold_patterns(self, make_signals):
        decision = evaluate_pair(
            make_signals(pattern="bold"), make_signals(pattern="bold"), Category.TOPS, Category.BOTTOMS
        )
        assert decision.primary_reason is TrustReason.PATTERN_TEXTURE_OVERLOAD

    def test_low_confidence_inputs(self, make_signals):
        candidate = make_signals(formality="evening", formality_confidence=0.4)

        decision = evaluate_pair(make_signals(), candidate, Category.TOPS, Category.BOTTOMS)

        assert decision.primary_reason is TrustReason.LOW_CONFIDENCE_INPUTS
        assert decision.debug.formality_gap is None

    def test_demote_order_is_configurable(self, make_signals):
        config = TrustFilterConfig(
            demote_order=(TrustReason.WEATHER_SEASON_MISMATCH, TrustReason.STYLE_ARCHETYPE_MISMATCH)
        )
        target = make_signals(primary="classic", season="light")
        candidate = make_signals(primary="romantic", season="heavy")

        decision = evaluate_pair(target, candidate, Category.TOPS, Category.BOTTOMS, config)

        assert decision.primary_reason is TrustReason.WEATHER_SEASON_MISMATCH


# =============================================================================
# Category Policy Tests
# =============================================================================


class TestCategoryPolicy:
    def test_bags_never_hide(self, dressy_classic, casual_street):
        decision = evaluate_pair(dressy_classic, casual_street, Category.TOPS, Category.BAGS)
        assert decision.action is MatchAction.DEMOTE

    def test_archetype_only_demote_is_kept_for_accessories(self, make_signals):
        target, candidate = make_signals(primary="classic"), make_signals(primary="romantic")

        assert evaluate_pair(target, candidate, Category.TOPS, Category.BOTTOMS).action is MatchAction.DEMOTE
        assert evaluate_pair(target, candidate, Category.TOPS, Category.ACCESSORIES).action is MatchAction.KEEP
        assert evaluate_pair(target, candidate, Category.BAGS, Category.DRESSES).action is MatchAction.KEEP

    def test_shoes_with_tops_downgrade_archetype_hide(self, dressy_classic, casual_street):
        assert evaluate_pair(dressy_classic, casual_street, Category.TOPS, Category.SHOES).action is MatchAction.DEMOTE
        assert evaluate_pair(dressy_classic, casual_street, Category.SHOES, Category.TOPS).action is MatchAction.DEMOTE

    def test_shoes_with_bottoms_still_hide(self, dressy_classic, casual_street):
        decision = evaluate_pair(dressy_classic, casual_street, Category.BOTTOMS, Category.SHOES)
        assert decision.action is MatchAction.HIDE

    def test_downgraded_clash_prefers_anchor_reason(self, make_signals):
        anchor_rule = AnchorRule(archetype_distance=ArchetypeDistance.FAR, formality_gap_max=3)
        config = TrustFilterConfig(anchor_rule=anchor_rule)
        target = make_signals(primary="classic", formality="dressy", statement="high")
        candidate = make_signals(primary="street", formality="casual")

        decision = evaluate_pair(target, candidate, Category.TOPS, Category.SHOES, config)

        assert decision.action is MatchAction.DEMOTE
        assert decision.primary_reason is TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR
        assert TrustReason.STYLE_ARCHETYPE_HARD_CLASH in decision.secondary_reasons
        assert TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR not in decision.secondary_reasons


# =============================================================================
# Anchor Rule Tests
# =============================================================================


class TestAnchorRule:
    @pytest.fixture
    def statement_top(self, make_signals):
        return make_signals(primary="classic", statement="high")

    @pytest.fixture
    def romantic(self, make_signals):
        return make_signals(primary="romantic")

    @pytest.mark.parametrize(
        "categories",
        [
            (Category.TOPS, Category.SHOES),
            (Category.SHOES, Category.TOPS),
            (Category.OUTERWEAR, Category.SHOES),
            (Category.TOPS, Category.OUTERWEAR),
        ],
    )
    def test_anchor_dependent_pairs_are_demoted(self, statement_top, romantic, categories):
        decision = evaluate_pair(statement_top, romantic, *categories)

        assert decision.action is MatchAction.DEMOTE
        assert decision.primary_reason is TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR
        assert decision.secondary_reasons == (TrustReason.STYLE_ARCHETYPE_MISMATCH,)

    def test_bold_pattern_needs_an_anchor(self, make_signals, romantic):
        decision = evaluate_pair(make_signals(pattern="bold"), romantic, Category.TOPS, Category.SHOES)
        assert decision.primary_reason is TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR

    def test_other_pairs_are_not_affected(self, statement_top, romantic):
        decision = evaluate_pair(statement_top, romantic, Category.TOPS, Category.BOTTOMS)

        assert decision.primary_reason is TrustReason.STYLE_ARCHETYPE_MISMATCH
        assert TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR not in decision.secondary_reasons

    def test_quiet_pieces_do_not_need_an_anchor(self, make_signals, romantic):
        decision = evaluate_pair(make_signals(primary="classic"), romantic, Category.TOPS, Category.SHOES)
        assert decision.primary_reason is TrustReason.STYLE_ARCHETYPE_MISMATCH

    def test_close_archetypes_do_not_need_an_anchor(self, statement_top, make_signals):
        decision = evaluate_pair(statement_top, make_signals(primary="minimalist"), Category.TOPS, Category.SHOES)
        assert decision.action is MatchAction.KEEP

    def test_wide_formality_gap_is_left_to_formality_rules(self, make_signals):
        target = make_signals(primary="classic", formality="dressy", statement="high")
        candidate = make_signals(primary="romantic", formality="casual")

        decision = evaluate_pair(target, candidate, Category.TOPS, Category.SHOES)

        assert decision.primary_reason is TrustReason.FORMALITY_MISMATCH
        assert TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR not in decision.secondary_reasons

    def test_disabled_by_remote_override(self, config, statement_top, romantic):
        merged, errors = merge_remote_config(config, {"anchor_rule.enabled": False})

        decision = evaluate_pair(statement_top, romantic, Category.TOPS, Category.SHOES, merged)

        assert errors == []
        assert decision.primary_reason is TrustReason.STYLE_ARCHETYPE_MISMATCH


# =============================================================================
# Batch Tests
# =============================================================================


def _candidate(item_id, signals, score, category=Category.BOTTOMS):
    return TrustFilterCandidate(id=item_id, signals=signals, category=category, ce_score=score)


class TestEvaluateBatch:
    def test_partitions_high_candidates(self, dressy_classic, casual_street, make_signals):
        candidates = [
            _candidate("keep", make_signals(primary="classic", formality="dressy"), 0.95),
            _candidate("hide", casual_street, 0.9),
            _candidate("demote", make_signals(primary="romantic", formality="dressy"), 0.85),
            _candidate("unknown", None, 0.8),
        ]

        result = evaluate_batch(dressy_classic, Category.TOPS, candidates, [c.id for c in candidates])

        assert result.high_final == ["keep", "unknown"]
        assert result.hidden == ["hide"]
        assert result.demoted == ["demote"]
        assert result.stats.total_evaluated == 4
        assert result.stats.hidden_count == 1
        assert result.stats.demoted_count == 1
        assert result.stats.reason_counts == {
            TrustReason.STYLE_ARCHETYPE_HARD_CLASH.value: 1,
            TrustReason.STYLE_ARCHETYPE_MISMATCH.value: 1,
            TrustReason.INSUFFICIENT_INFO.value: 1,
        }

    def test_only_top_candidates_are_evaluated(self, casual_street, dressy_classic):
        candidates = [_candidate(f"c{i}", casual_street, 1.0 - i / 100) for i in range(12)]
        high_ids = [c.id for c in candidates]

        result = evaluate_batch(dressy_classic, Category.TOPS, reversed(candidates), high_ids)

        assert result.stats.total_evaluated == 10
        assert result.stats.skipped_count == 2
        assert result.hidden == [f"c{i}" for i in range(10)]
        assert result.high_final == ["c10", "c11"]
        assert set(result.decisions) == {f"c{i}" for i in range(10)}

    def test_max_candidates_from_config(self, casual_street, dressy_classic):
        candidates = [_candidate(f"c{i}", casual_street, 1.0 - i / 100) for i in range(4)]
        config = TrustFilterConfig(max_candidates=2)

        result = evaluate_batch(dressy_classic, Category.TOPS, candidates, [c.id for c in candidates], config)

        assert result.hidden == ["c0", "c1"]
        assert result.high_final == ["c2", "c3"]

    def test_ghost_candidates_are_rejected(self, casual_street, dressy_classic):
        candidates = [_candidate("real", casual_street, 0.9), _candidate("ghost", casual_street, 0.99)]

        result = evaluate_batch(dressy_classic, Category.TOPS, candidates, ["real"])

        assert result.stats.rejected_ids == ["ghost"]
        assert "ghost" not in result.decisions
        assert set(result.demoted) | set(result.hidden) <= {"real"}
        assert "ghost" not in result.high_final

    def test_empty_batch(self, dressy_classic):
        result = evaluate_batch(dressy_classic, Category.TOPS, [], [])
        assert result.high_final == result.demoted == result.hidden == []
        assert result.stats.total_evaluated == 0


# =============================================================================
# Config Merge Tests
# =============================================================================


class TestMergeRemoteConfig:
    def test_allowed_overrides_apply(self, config):
        merged, errors = merge_remote_config(
            config, {"max_candidates": 5, "confidence.formality_min": 0.7, "pair_overrides": {"boho:street": "close"}}
        )

        assert errors == []
        assert merged.max_candidates == 5
        assert merged.confidence.formality_min == 0.7
        assert merged.pair_overrides == {"boho:street": ArchetypeDistance.CLOSE}
        assert config.max_candidates == 10

    def test_unknown_key_is_rejected(self, config):
        merged, errors = merge_remote_config(config, {"clusters": {}})

        assert len(errors) == 1
        assert "not allowed" in errors[0]
        assert merged == config

    def test_bad_value_is_rejected_without_losing_others(self, config):
        merged, errors = merge_remote_config(config, {"max_candidates": 500, "season_diff_min": 2})

        assert len(errors) == 1
        assert "max_candidates" in errors[0]
        assert merged.max_candidates == 10
        assert merged.season_diff_min == 2

    def test_hide_reason_cannot_be_a_demote_reason(self, config):
        _, errors = merge_remote_config(
            config, {"demote_order": ["style_archetype_hard_clash", "formality_mismatch"]}
        )
        assert len(errors) == 1

    def test_empty_overrides(self, config):
        assert merge_remote_config(config, {}) == (config, [])

    def test_anchor_rule_overrides(self, config):
        merged, errors = merge_remote_config(
            config, {"anchor_rule.formality_gap_max": 0, "anchor_rule.archetype_distance": "far"}
        )

        assert errors == []
        assert merged.anchor_rule.formality_gap_max == 0
        assert merged.anchor_rule.archetype_distance is ArchetypeDistance.FAR
        assert merged.anchor_rule.pair_types == config.anchor_rule.pair_types

    def test_anchor_rule_switch_must_be_a_bool(self, config):
        merged, errors = merge_remote_config(config, {"anchor_rule.enabled": "yes"})

        assert len(errors) == 1
        assert "anchor_rule.enabled" in errors[0]
        assert merged.anchor_rule.enabled is True
