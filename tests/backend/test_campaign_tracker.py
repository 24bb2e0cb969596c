"""Tests for the campaign tracker"""
import pytest

from acquisition_planner.errors import CampaignNotFoundError
from acquisition_planner.models import CampaignOffer, CohortRef
from acquisition_planner.services.execution import CampaignTracker, normalise_channels, score_impact
from acquisition_planner.services.execution.campaign_tracker import (
    BASE_OFFER,
    LAUNCH_SEED_POINTS,
    MAX_AGENT_ACTIONS,
)

NOW = 1_760_000_000_000


@pytest.fixture
def tracker():
    return CampaignTracker(seed=7)


@pytest.fixture
def launched(tracker):
    return tracker.launch_campaign(
        name='Spring switchers',
        cohorts=[CohortRef(id='seg-switch-prepaid', name='Switch Prepaid', size=270_000)],
        channels={'Search': 40, 'Social': 30, 'Email': 30},
        offer=CampaignOffer(price=70, promo_months=3, promo_value=100, device_subsidy=150),
        now=NOW,
    )


class TestScoreImpact:
    def test_base_offer_single_channel(self):
        kpis = score_impact({'Search': 1}, BASE_OFFER)
        assert kpis.cvr == pytest.approx(4.55)
        assert kpis.arpu_delta == pytest.approx(7.2)
        assert kpis.gm12 == 985_000
        assert kpis.net_adds == 4320
        assert kpis.payback_mo == pytest.approx(6.05)
        assert kpis.nps_delta == pytest.approx(5.85)

    def test_clamped(self):
        kpis = score_impact({'Search': 1}, CampaignOffer(price=1000, promo_months=0, promo_value=0, device_subsidy=0))
        assert kpis.cvr == 0.6
        assert kpis.net_adds == 420

    def test_price_increase_raises_arpu(self):
        base = score_impact({'Search': 1}, BASE_OFFER)
        pricier = score_impact({'Search': 1}, BASE_OFFER.model_copy(update={'price': 85}))
        assert pricier.arpu_delta > base.arpu_delta
        assert pricier.cvr < base.cvr


class TestNormaliseChannels:
    def test_fractions(self):
        mix = normalise_channels({'Search': 2, 'Social': 1, 'Email': 1})
        assert mix == {'Search': 0.5, 'Social': 0.25, 'Email': 0.25}

    def test_unknown_dropped(self):
        assert normalise_channels({'Search': 1, 'Billboards': 3}) == {'Search': 1.0}


class TestLaunch:
    def test_launch_registers_running_campaign(self, tracker, launched):
        assert tracker.campaigns[0].id == launched.id
        assert launched.status == 'Running'
        assert sum(launched.channels.values()) == pytest.approx(1.0, abs=1e-3)

    def test_launch_seeds_telemetry(self, tracker, launched):
        stream = tracker.stream(launched.id)
        assert len(stream) == LAUNCH_SEED_POINTS
        assert stream.latest().t == NOW

    def test_launch_logs_action(self, tracker, launched):
        actions = tracker.actions(launched.id)
        assert len(actions) == 1
        assert actions[0].summary == 'Campaign launched from Offering Designer hand-off.'
        assert tracker.auto_optimize_enabled(launched.id) is False

    def test_newest_first(self, tracker, launched):
        second = tracker.launch_campaign(
            name='Second', cohorts=[], channels={'Email': 1}, offer=BASE_OFFER, now=NOW,
        )
        assert [c.id for c in tracker.campaigns] == [second.id, launched.id]

    def test_explicit_kpis_kept(self, tracker):
        kpis = score_impact({'Retail': 1}, BASE_OFFER)
        campaign = tracker.launch_campaign(
            name='Retail push', cohorts=[], channels={'Search': 1}, offer=BASE_OFFER, kpis=kpis, now=NOW,
        )
        assert campaign.kpis == kpis


class TestDemoCampaign:
    def test_seed_demo(self, tracker):
        demo = tracker.seed_demo_campaign(now=NOW)
        assert demo.id == 'cmp_001'
        assert len(tracker.stream('cmp_001')) == 16
        assert tracker.actions('cmp_001')[0].lift == 0.6


class TestCampaignOperations:
    def test_unknown_id(self, tracker):
        with pytest.raises(CampaignNotFoundError):
            tracker.get_campaign('missing')
        with pytest.raises(CampaignNotFoundError):
            tracker.toggle_status('missing')
        with pytest.raises(CampaignNotFoundError):
            tracker.set_auto_optimize('missing', True)

    def test_toggle(self, tracker, launched):
        assert tracker.toggle_status(launched.id).status == 'Paused'
        assert tracker.toggle_status(launched.id).status == 'Running'

    def test_tune_rescores_and_emits_point(self, tracker, launched):
        before = len(tracker.stream(launched.id))
        tuned = tracker.tune_campaign(launched.id, channels={'Retail': 60}, offer={'price': 90})
        assert tuned.offer.price == 90
        assert 'Retail' in tuned.channels
        assert tuned.kpis != launched.kpis
        assert tracker.get_campaign(launched.id) == tuned
        assert len(tracker.stream(launched.id)) == before + 1

    def test_estimate_does_not_apply(self, tracker, launched):
        estimate = tracker.estimate_impact(launched.id, offer={'price': 95})
        assert estimate['delta']['arpu_delta'] > 0
        assert tracker.get_campaign(launched.id).offer.price == 70

    def test_update_campaign(self, tracker, launched):
        updated = tracker.update_campaign(launched.id, name='Renamed')
        assert updated.name == 'Renamed'
        assert tracker.get_campaign(launched.id).name == 'Renamed'


class TestActionsAndTicks:
    def test_action_log_capped(self, tracker, launched):
        for i in range(20):
            tracker.log_action(launched.id, summary=f"Action {i}", lift=0.1)
        actions = tracker.actions(launched.id)
        assert len(actions) == MAX_AGENT_ACTIONS
        assert actions[0].summary == 'Action 19'

    def test_tick_skips_paused(self, tracker, launched):
        other = tracker.launch_campaign(name='Other', cohorts=[], channels={'Search': 1}, offer=BASE_OFFER, now=NOW)
        tracker.toggle_status(other.id)
        assert tracker.tick(NOW + 1000) == 1
        assert len(tracker.stream(launched.id)) == LAUNCH_SEED_POINTS + 1
        assert len(tracker.stream(other.id)) == LAUNCH_SEED_POINTS

    def test_auto_optimize_tick(self, tracker, launched):
        assert tracker.auto_optimize_tick(NOW + 1000) == []
        tracker.set_auto_optimize(launched.id, True)
        assert tracker.auto_optimize_tick(NOW + 2000) == [launched.id]
        assert tracker.actions(launched.id)[0].summary.startswith('Auto-optimize nudged mix')
        assert len(tracker.stream(launched.id)) == LAUNCH_SEED_POINTS + 1
