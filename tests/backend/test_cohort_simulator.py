"""Tests for the cohort simulator"""
import math

import numpy as np
import pytest

from acquisition_planner.data.seeds import CHANNELS, DEFAULT_ASSUMPTIONS, get_segment
from acquisition_planner.models import PAYBACK_SENTINEL, OfferArchetype, Segment
from acquisition_planner.services.cohort import (
    channel_weights,
    monthly_contribution,
    net_adds,
    payback_months,
    reach_share,
    run_cohort,
    summarise_cohort,
    take_rate,
)
from acquisition_planner.services.cohort.cohort_simulator import REACH_BOUNDS, TAKE_RATE_BOUNDS


@pytest.fixture
def segment():
    return Segment(
        id='seg-test',
        name='Test Segment',
        size=300_000,
        price_sensitivity=0.5,
        value_sensitivity=0.5,
    )


@pytest.fixture
def offer():
    return OfferArchetype(
        id='offer-test',
        name='Test Offer',
        monthly_price=75.0,
        promo_months=3,
        promo_value=100.0,
        device_subsidy=150.0,
    )


@pytest.fixture
def equal_mix():
    # Search 65, Social 85, Email 40, Retail 90 -> $70 average CAC
    return {'ch-search': 1, 'ch-social': 1, 'ch-email': 1, 'ch-retail': 1}


class TestRegressionScenario:
    def test_cac_is_fully_loaded(self, segment, offer, equal_mix):
        result = run_cohort(segment, offer, equal_mix)
        assert result.breakdown.channel_cac == pytest.approx(70.0)
        assert result.breakdown.promo_cost == pytest.approx(300.0)
        assert result.breakdown.device_subsidy == pytest.approx(150.0)
        assert result.breakdown.execution_cost == pytest.approx(20.0)
        assert result.cac == pytest.approx(540.0)

    def test_monthly_contribution_series(self, segment, offer, equal_mix):
        result = run_cohort(segment, offer, equal_mix)
        assert len(result.monthly_contribution) == 24
        assert result.monthly_contribution[0] == pytest.approx(16.75)
        assert result.monthly_contribution[11] == pytest.approx(16.75)
        assert result.monthly_contribution[12] == pytest.approx(29.25)

    def test_payback_month(self, segment, offer, equal_mix):
        # 12 * 16.75 = 201; 201 + 11 * 29.25 = 522.75 < 540 <= 552
        result = run_cohort(segment, offer, equal_mix)
        assert result.payback_months == 24

    def test_reach_and_net_adds(self, segment, offer, equal_mix):
        result = run_cohort(segment, offer, equal_mix)
        expected_reach = 0.34 * 1.05
        expected_rate = 1 / (1 + math.exp(0.8925))
        assert result.reach == pytest.approx(expected_reach, abs=1e-4)
        assert result.take_rate == pytest.approx(expected_rate, abs=1e-4)
        assert result.net_adds == round(300_000 * expected_reach * expected_rate)

    def test_gm12_and_margin(self, segment, offer, equal_mix):
        result = run_cohort(segment, offer, equal_mix)
        assert result.gross_margin_12mo == pytest.approx(201.0 * result.net_adds, rel=1e-6)
        assert result.margin_pct == pytest.approx(22.3)

    def test_timeline_is_cumulative_net_of_cac(self, segment, offer, equal_mix):
        result = run_cohort(segment, offer, equal_mix)
        assert len(result.timeline) == 24
        assert result.timeline[0].month == 1
        assert result.timeline[0].cumulative_contribution == pytest.approx(16.75 - 540)
        assert result.timeline[-1].cumulative_contribution == pytest.approx(552 - 540)


class TestBuildingBlocks:
    def test_payback_sentinel_when_cac_unreachable(self):
        contributions = np.full(24, 10.0)
        assert payback_months(10_000.0, contributions) == PAYBACK_SENTINEL

    def test_payback_first_month(self):
        assert payback_months(5.0, np.full(24, 10.0)) == 1

    def test_run_cohort_returns_sentinel(self, segment, equal_mix):
        pricey = OfferArchetype(
            id='offer-pricey', name='Pricey', monthly_price=40.0,
            promo_months=24, promo_value=500.0, device_subsidy=0.0,
        )
        result = run_cohort(segment, pricey, equal_mix)
        assert result.payback_months == PAYBACK_SENTINEL

    def test_empty_mix_falls_back_to_equal_weights(self):
        weights = channel_weights({})
        assert len(weights) == len(CHANNELS)
        assert all(w == pytest.approx(1 / len(CHANNELS)) for w in weights.values())

    def test_unknown_channel_ids_ignored(self):
        weights = channel_weights({'ch-search': 1, 'ch-unknown': 5})
        assert weights['ch-search'] == pytest.approx(1.0)
        assert 'ch-unknown' not in weights

    def test_take_rate_clamped(self, offer):
        eager = Segment(id='s', name='s', size=1, price_sensitivity=0.0, value_sensitivity=1.0, growth_rate=5.0)
        weights = channel_weights({'ch-search': 1})
        assert take_rate(eager, offer, weights, CHANNELS) == TAKE_RATE_BOUNDS[1]

        reluctant = Segment(id='s', name='s', size=1, price_sensitivity=1.0, value_sensitivity=0.0, growth_rate=-5.0)
        assert take_rate(reluctant, offer, weights, CHANNELS) == TAKE_RATE_BOUNDS[0]

    def test_reach_clamped(self):
        seg = Segment(id='s', name='s', size=1, price_sensitivity=1.0, value_sensitivity=0.0)
        weights = channel_weights({'ch-field': 1})
        # 0.22 * 0.8 = 0.176 stays inside the band
        assert REACH_BOUNDS[0] <= reach_share(seg, weights, CHANNELS) <= REACH_BOUNDS[1]

    def test_net_adds_rounds(self):
        assert net_adds(1000, 0.5, 0.3) == 150

    def test_subsidy_amortised_over_assumption_window(self, offer):
        series = monthly_contribution(offer, DEFAULT_ASSUMPTIONS)
        assert np.allclose(series[:12], 16.75)
        assert np.allclose(series[12:], 29.25)


class TestSummariseCohort:
    def test_uses_segment_defaults(self):
        segment = get_segment('seg-value-seekers')
        result = summarise_cohort(segment)
        assert result.net_adds > 0
        assert result.cac > 0

    def test_deterministic(self):
        segment = get_segment('seg-urban-streamers')
        assert summarise_cohort(segment) == summarise_cohort(segment)
