"""Tests for rubric configuration and its validation."""

import json
import math

import pytest

from features import Detector
from rubric_sets import RUBRIC_SETS, SPS, START_HEART, get_rubric_set
from rubrics import (
    ConfigurationError,
    Criterion,
    RubricConfig,
    RubricSet,
    ScoreBand,
    Signal,
    load_rubric_set,
    rubric_set_from_dict,
)


def _rubric(key="a", max_points=5, weight=50, points=(5,), detector="d", default=0):
    return RubricConfig(
        key=key,
        label=key.upper(),
        name=key,
        max_points=max_points,
        weight_percent=weight,
        default_score=default,
        criteria=tuple(
            Criterion(f"c{i}", p, (Signal(detector, p, "found", "missing"),))
            for i, p in enumerate(points)
        ),
    )


def _set(*rubrics, detectors=(Detector("d", phrases=("x",)),), bands=None):
    return RubricSet(
        key="test",
        title="Test",
        rubrics=rubrics,
        detectors=detectors,
        score_bands=bands or (ScoreBand(50, "good"), ScoreBand(0, "poor")),
    )


class TestBuiltInSets:

    @pytest.mark.parametrize("rubric_set", list(RUBRIC_SETS.values()))
    def test_weights_sum_to_100(self, rubric_set):
        assert math.isclose(sum(r.weight_percent for r in rubric_set.rubrics), 100)

    def test_start_heart_shape(self):
        assert START_HEART.keys == ["start", "heart", "care", "wow"]
        assert all(r.max_points == 25 for r in START_HEART.rubrics)

    def test_sps_shape(self):
        assert [r.weight_percent for r in SPS.rubrics] == [20, 20, 20, 15, 15, 5, 5]
        assert all(r.max_points == 5 and r.default_score == 3 for r in SPS.rubrics)
        assert SPS.rubric("safety_red_flags").label == "SafetyRedFlags"

    def test_get_unknown_set(self):
        with pytest.raises(KeyError, match="Available"):
            get_rubric_set("nope")

    def test_score_bands_top_down(self):
        assert START_HEART.assessment_for(90).startswith("Excellent")
        assert START_HEART.assessment_for(89).startswith("Good")
        assert START_HEART.assessment_for(60).startswith("Your communication")
        assert START_HEART.assessment_for(0).startswith("Significant")


class TestValidation:
    """Inconsistent configuration is rejected at construction."""

    def test_valid(self):
        rs = _set(_rubric("a"), _rubric("b"))
        assert rs.keys == ["a", "b"]

    def test_weights_not_100(self):
        with pytest.raises(ConfigurationError, match="weights sum to 90"):
            _set(_rubric("a", weight=50), _rubric("b", weight=40))

    def test_criteria_points_mismatch(self):
        with pytest.raises(ConfigurationError, match="criteria points"):
            _set(_rubric("a", points=(3,)), _rubric("b"))

    def test_signal_points_mismatch(self):
        bad = RubricConfig("a", "A", "a", 5, 50, (
            Criterion("c", 5, (Signal("d", 3, "f", "m"),)),
        ))
        with pytest.raises(ConfigurationError, match="signal points"):
            _set(bad, _rubric("b"))

    def test_invalid_detector_regex(self):
        with pytest.raises(ConfigurationError, match="invalid pattern"):
            _set(_rubric("a"), _rubric("b"),
                 detectors=(Detector("d", regex="(hello"),))

    def test_invalid_regex_from_json(self):
        data = {
            "key": "custom",
            "detectors": [{"name": "d", "kind": "count", "regex": "[abc", "threshold": 2}],
            "rubrics": [
                {"key": "a", "max_points": 5, "weight_percent": 100, "criteria": [
                    {"label": "c", "max_points": 5,
                     "signals": [{"features": ["d"], "points": 5, "found": "f", "missing": "m"}]},
                ]},
            ],
            "score_bands": [[0, "done"]],
        }
        with pytest.raises(ConfigurationError, match="detector 'd' has an invalid pattern"):
            rubric_set_from_dict(data)

    def test_unknown_detector(self):
        with pytest.raises(ConfigurationError, match="unknown detector 'zzz'"):
            _set(_rubric("a", detector="zzz"), _rubric("b"))

    def test_duplicate_keys(self):
        with pytest.raises(ConfigurationError, match="duplicate"):
            _set(_rubric("a"), _rubric("a"))

    def test_default_out_of_range(self):
        with pytest.raises(ConfigurationError, match="default_score"):
            _set(_rubric("a", default=6), _rubric("b"))

    def test_bands_must_reach_zero(self):
        with pytest.raises(ConfigurationError, match="start at 0"):
            _set(_rubric("a"), _rubric("b"), bands=(ScoreBand(50, "x"),))

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)


class TestLoading:

    DEFINITION = {
        "key": "mini",
        "detectors": [{"name": "greet", "phrases": ["hello"], "scope": "first"}],
        "rubrics": [{
            "key": "opening",
            "label": "Opening",
            "max_points": 5,
            "weight_percent": 100,
            "default_score": 3,
            "criteria": [{
                "label": "Greeting",
                "max_points": 5,
                "signals": [{"features": "greet", "points": 5,
                             "found": "Greeted", "missing": "No greeting"}],
            }],
        }],
        "score_bands": [[80, "Great"], [0, "Keep going"]],
    }

    def test_from_dict(self):
        rs = rubric_set_from_dict(self.DEFINITION)
        assert rs.key == "mini"
        assert rs.rubric("opening").criteria[0].signals[0].features == ("greet",)
        assert rs.detectors[0].phrases == ("hello",)

    def test_missing_field(self):
        with pytest.raises(ConfigurationError, match="Malformed"):
            rubric_set_from_dict({"key": "x"})

    def test_load_file(self, tmp_path):
        path = tmp_path / "mini.json"
        path.write_text(json.dumps(self.DEFINITION), encoding="utf-8")
        assert load_rubric_set(str(path)).title == "mini"

    def test_load_unreadable_file_exits(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SystemExit):
            load_rubric_set(str(path))
