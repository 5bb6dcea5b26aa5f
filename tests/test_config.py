"""
Tests for Configuration

Settings loading and validation of the scoring/criteria objects.
"""

import pytest
from pydantic import ValidationError

from ridematch import config
from ridematch.config import Settings
from ridematch.exceptions import InvalidCriteria
from ridematch.main import app
from ridematch.models.criteria import MatchingCriteria, ScoringConfig, ScoringWeights
from ridematch.models.trip import UserPreferences


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.mongodb_database == "ridematch"
        assert settings.match_expiry_days == 30
        assert settings.min_match_score == 0.3

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MATCH_EXPIRY_DAYS", "10")
        monkeypatch.setenv("MIN_MATCH_SCORE", "0.5")

        settings = Settings(_env_file=None)

        assert settings.match_expiry_days == 10
        assert settings.scoring_config().min_match_score == 0.5

    def test_invalid_scoring_settings_fail_at_load(self):
        settings = Settings(_env_file=None, min_match_score=1.5)

        with pytest.raises(InvalidCriteria):
            settings.scoring_config()

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, cors_origins="https://a.example, https://b.example")

        assert settings.cors_origins_list == ["https://a.example", "https://b.example"]

    def test_debug_flag_reaches_app(self):
        assert app.debug is config.settings.debug


class TestScoringConfig:
    """Tests for ScoringConfig and ScoringWeights."""

    def test_default_weights_sum_to_one(self):
        weights = ScoringWeights()

        assert sum(weights.model_dump().values()) == pytest.approx(1.0)

    def test_weights_must_sum_to_one(self):
        with pytest.raises(InvalidCriteria):
            ScoringWeights(route=0.5)

    def test_negative_weight_rejected(self):
        with pytest.raises(InvalidCriteria):
            ScoringWeights(route=0.7, price=-0.25)

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(InvalidCriteria):
            ScoringConfig(exact_route_threshold=0.3, partial_overlap_threshold=0.5)

    def test_concurrency_must_be_positive(self):
        with pytest.raises(InvalidCriteria):
            ScoringConfig(max_concurrency=0)

    def test_config_is_frozen(self):
        config = ScoringConfig()

        with pytest.raises(ValidationError):
            config.min_match_score = 0.9


class TestMatchingCriteria:
    """Tests for MatchingCriteria."""

    def test_defaults(self):
        criteria = MatchingCriteria()

        assert criteria.max_detour_distance_km == 10
        assert criteria.max_detour_time_min == 30
        assert criteria.max_walking_distance_m == 500
        assert criteria.time_flexibility_min == 15
        assert (criteria.price_min, criteria.price_max) == (0, 100)

    def test_inverted_price_range_rejected(self):
        with pytest.raises(InvalidCriteria):
            MatchingCriteria(price_min=50, price_max=10)

    def test_non_positive_detour_budget_rejected(self):
        with pytest.raises(InvalidCriteria):
            MatchingCriteria(max_detour_distance_km=0)

    def test_negative_flexibility_rejected(self):
        with pytest.raises(InvalidCriteria):
            MatchingCriteria(time_flexibility_min=-5)

    def test_from_preferences_fills_defaults(self):
        criteria = MatchingCriteria.from_preferences(
            UserPreferences(max_detour_time_min=20, price_range_max=40)
        )

        assert criteria.max_detour_time_min == 20
        assert criteria.price_max == 40
        assert criteria.max_detour_distance_km == 10

    def test_explicit_criteria_win_over_preferences(self):
        base = MatchingCriteria.from_preferences(UserPreferences(time_flexibility_min=30))

        merged = base.merged_with(MatchingCriteria(max_detour_distance_km=5))

        assert merged.max_detour_distance_km == 5
        assert merged.time_flexibility_min == 30
