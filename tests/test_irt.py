from __future__ import annotations

import math

from affect_core import irt


def test_probability_monotonic_in_theta():
    for a, b in [(0.5, -1.0), (1.0, 0.0), (2.0, 1.5)]:
        probs = [irt.p_2pl(t / 10.0, a, b) for t in range(-40, 41)]
        assert all(p2 > p1 for p1, p2 in zip(probs, probs[1:])), f"P not increasing for a={a} b={b}"


def test_probability_is_half_at_difficulty():
    assert math.isclose(irt.p_2pl(0.7, 1.3, 0.7), 0.5)


def test_sigma_handles_extremes():
    assert irt.sigma(1000.0) == 1.0
    assert irt.sigma(-1000.0) == 0.0


def test_item_info_peaks_at_difficulty():
    peak = irt.item_info(0.5, 1.5, 0.5)
    assert math.isclose(peak, 1.5 ** 2 / 4.0)
    assert irt.item_info(-1.0, 1.5, 0.5) < peak
    assert irt.item_info(2.0, 1.5, 0.5) < peak


def test_all_max_responses_raise_theta_and_shrink_sem():
    theta, sem, conf = 0.0, 1.0, 0.0
    for b in (-0.5, 0.0, 0.5, 1.0):
        est = irt.update(theta, sem, [irt.Observation(1.2, b, 1.0)], conf)
        assert est.theta >= theta, "theta should not drop after a max answer"
        assert est.sem <= sem, "SEM must not grow"
        theta, sem, conf = est.theta, est.sem, est.confidence
    assert theta > 0.0
    assert sem < 1.0


def test_all_min_responses_lower_theta():
    est = irt.update(0.0, 1.0, [irt.Observation(1.0, 0.0, 0.0), irt.Observation(1.0, -0.5, 0.0)])
    assert est.theta < 0.0


def test_zero_observations_return_prior():
    est = irt.update(0.4, 0.8, [], 0.3)
    assert est.theta == 0.4
    assert est.sem == 0.8
    assert est.confidence == 0.3


def test_fresh_prior_has_zero_confidence():
    assert irt.update(0.0, 1.0, []).confidence == 0.0


def test_step_is_capped():
    moved = irt.map_update(0.0, 3.0, -5.0, 0.0, prior_precision=1e-6)
    assert abs(moved) <= 0.5 + 1e-9


def test_confidence_tracks_sem():
    assert irt.confidence_from_se(0.0) == 1.0
    assert irt.confidence_from_se(1.0) == 0.5


def test_eap_prior_only_is_centered():
    mean, sd = irt.eap_estimate([])
    assert abs(mean) < 1e-9
    assert 1.0 < sd < 1.5


def test_eap_follows_high_answers():
    obs = [irt.Observation(1.5, b, 1.0) for b in (-1.0, 0.0, 1.0)]
    mean, sd = irt.eap_estimate(obs)
    assert mean > 0.5
    assert sd < 1.5
