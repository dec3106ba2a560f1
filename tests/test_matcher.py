import numpy as np
import pytest

from presence_ai.face_module.embedding import l2_normalize
from presence_ai.face_module.matcher import MISMATCH_DISTANCE, TemplateMatcher, euclidean_distance, match


def _unit(seed, size=192):
    return l2_normalize(np.random.default_rng(seed).normal(size=size))


@pytest.mark.parametrize("threshold", [1e-6, 0.75, 1.0, 2.0])
def test_self_match(threshold):
    e = _unit(0)
    result = match(e, e, threshold)
    assert result.distance == pytest.approx(0.0, abs=1e-6)
    assert result.matched
    assert not result.invalid_capture


@pytest.mark.parametrize("threshold", [0.1, 10.0, 1000.0])
def test_length_mismatch_never_matches(threshold):
    result = match(_unit(0, 192), _unit(0, 128), threshold)
    assert not result.matched
    assert result.invalid_capture
    assert result.distance == MISMATCH_DISTANCE
    assert result.reason == "length_mismatch"


def test_zero_candidate_never_matches_even_a_zero_template():
    result = match(np.zeros(192), np.zeros(192), 1000.0)
    assert not result.matched
    assert result.invalid_capture
    assert result.reason == "zero_candidate"


def test_zero_template_is_reported():
    result = match(_unit(1), np.zeros(192), 1000.0)
    assert not result.matched
    assert result.reason == "degenerate_template"


def test_threshold_is_strict():
    a, b = _unit(1), _unit(2)
    distance = euclidean_distance(a, b)
    assert not match(a, b, distance).matched
    assert match(a, b, distance + 1e-3).matched


def test_unrelated_embeddings_do_not_match_at_default_threshold():
    assert not TemplateMatcher(0.75).match(_unit(3), _unit(4)).matched


def test_threshold_must_be_positive():
    with pytest.raises(ValueError):
        TemplateMatcher(0.0)
