
import asyncio

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock, patch

from acquisition_planner.app import _telemetry_loop, app, settings
from acquisition_planner.models import Objective
from acquisition_planner.services.planning import create_plan_from_objective

# Create a TestClient instance
client = TestClient(app)


@pytest.fixture(autouse=True)
def data_dir(tmp_path):
    with patch.object(settings, 'DATA_DIR', str(tmp_path)):
        yield tmp_path


@pytest.fixture
def plan_json():
    return create_plan_from_objective(Objective()).model_dump(mode='json')


def payload_json(payload_id='seg-payload-1'):
    return {
        'id': payload_id,
        'name': 'Urban switchers',
        'geoWindow': {'geo': 'US-West', 'window': '90d', 'grain': 'weekly'},
        'kpis': {'opportunityScore': 72.5, 'reachable': 120000, 'expectedCvr': [2.1, 3.4], 'paybackMonths': 7.5},
        'createdAt': '2025-03-01T10:00:00Z',
    }


class TestHealth:
    def test_health_ok(self):
        response = client.get('/health')
        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'healthy'
        assert data['checks']['data_directory'] == 'ok'

    def test_health_missing_data_dir(self, data_dir):
        with patch.object(settings, 'DATA_DIR', str(data_dir / 'missing')):
            response = client.get('/health')
        assert response.status_code == 503
        assert response.json()['checks']['data_directory'] == 'missing'

    def test_health_reports_stopped_ticker(self):
        finished = MagicMock()
        finished.done.return_value = True
        with patch('acquisition_planner.app._telemetry_task', finished):
            response = client.get('/health')
        assert response.status_code == 503
        data = response.json()
        assert data['status'] == 'degraded'
        assert data['checks']['telemetry'] == 'stopped'


class TestTelemetryLoop:
    def test_failing_tick_does_not_stop_loop(self):
        tracker = MagicMock()
        tracker.tick.side_effect = [RuntimeError('boom'), None, asyncio.CancelledError()]
        with patch('acquisition_planner.app.get_tracker', return_value=tracker):
            with pytest.raises(asyncio.CancelledError):
                asyncio.run(_telemetry_loop(0))
        assert tracker.tick.call_count == 3
        assert tracker.auto_optimize_tick.call_count == 1


class TestCatalogEndpoints:
    def test_catalog(self):
        response = client.get('/api/v1/catalog')
        assert response.status_code == 200
        data = response.json()
        assert len(data['segments']) == 6
        assert {c['id'] for c in data['channels']} == {'ch-search', 'ch-social', 'ch-email', 'ch-retail', 'ch-field'}
        assert data['assumptions']['gross_margin_rate'] == 0.55

    def test_cohort_run(self):
        response = client.post('/api/v1/cohort/run', json={'segment_id': 'seg-value-seekers'})
        assert response.status_code == 200
        data = response.json()
        assert len(data['monthly_contribution']) == 24
        assert data['net_adds'] > 0

    def test_cohort_run_unknown_segment(self):
        response = client.post('/api/v1/cohort/run', json={'segment_id': 'seg-nope'})
        assert response.status_code == 404
        data = response.json()
        assert data['error'] == 'Not found'
        assert 'seg-value-seekers' in data['details']['known']

    def test_cohort_run_unknown_offer(self):
        response = client.post('/api/v1/cohort/run', json={'segment_id': 'seg-value-seekers', 'offer_id': 'offer-x'})
        assert response.status_code == 404

    def test_cohort_blend(self):
        ids = ['seg-value-seekers-micro-0', 'seg-urban-streamers-micro-1']
        response = client.post('/api/v1/cohort/blend', json={'selected_micro_ids': ids})
        assert response.status_code == 200
        data = response.json()
        assert list(data['by_audience']) == ids
        assert data['blended']['net_adds'] == sum(r['net_adds'] for r in data['by_audience'].values())

    def test_cohort_blend_empty_selection(self):
        response = client.post('/api/v1/cohort/blend', json={'selected_micro_ids': []})
        assert response.status_code == 200
        assert response.json()['blended']['payback_months'] == '>24'

    def test_cohort_blend_unknown_micro(self):
        response = client.post('/api/v1/cohort/blend', json={'selected_micro_ids': ['seg-nope-micro-0']})
        assert response.status_code == 404
        assert response.json()['error'] == 'Not found'

    def test_micro_segments(self):
        response = client.get('/api/v1/segments/seg-urban-streamers/micro')
        assert response.status_code == 200
        data = response.json()
        assert data['segment']['id'] == 'seg-urban-streamers'
        assert len(data['micro_segments']) == 5
        assert 'recommendation' in data['micro_segments'][0]


class TestPlanEndpoints:
    def test_create_plan(self):
        response = client.post('/api/v1/plan', json={'goal': 'Margin-first'})
        assert response.status_code == 200
        data = response.json()
        assert data['plan']['inventory_hold'] is True
        assert data['confidence_label'] in ('Low', 'Medium', 'High')
        assert 'all_ok' in data['checklist']

    def test_create_plan_invalid_goal(self):
        response = client.post('/api/v1/plan', json={'goal': 'Chaos'})
        assert response.status_code == 422

    def test_simulate(self, plan_json):
        plan_json['price'] = 95.0
        response = client.post('/api/v1/plan/simulate', json={'plan': plan_json})
        assert response.status_code == 200
        assert response.json()['plan']['price'] == 95.0

    def test_simulate_rejects_bad_calendar(self, plan_json):
        plan_json['calendar'] = [[0] * 12 for _ in range(3)]
        response = client.post('/api/v1/plan/simulate', json={'plan': plan_json})
        assert response.status_code == 422

    def test_simulate_rejects_unknown_channel(self, plan_json):
        plan_json['channel_mix'] = {'Search': 50, 'Billboards': 50}
        response = client.post('/api/v1/plan/simulate', json={'plan': plan_json})
        assert response.status_code == 422

    @pytest.mark.parametrize('path', ['/api/v1/plan/simulate', '/api/v1/plan/checklist', '/api/v1/plan/export'])
    def test_negative_mix_weight_rejected(self, plan_json, path):
        plan_json['channel_mix'] = {'Search': -40, 'Social': 60, 'Email': 40, 'Retail': 40}
        response = client.post(path, json={'plan': plan_json})
        assert response.status_code == 422

    def test_negative_mix_weight_rejected_in_state(self, plan_json):
        plan_json['channel_mix'] = {'Search': -40, 'Social': 60, 'Email': 40, 'Retail': 40}
        response = client.put('/api/v1/state', json={'campaign_plan': plan_json})
        assert response.status_code == 422

    def test_simulate_renormalises_mix(self, plan_json):
        plan_json['channel_mix'] = {'Search': 30, 'Social': 30, 'Email': 30, 'Retail': 30}
        response = client.post('/api/v1/plan/simulate', json={'plan': plan_json})
        assert response.status_code == 200
        mix = response.json()['plan']['channel_mix']
        assert sum(mix.values()) == pytest.approx(100.0)
        assert all(weight >= 0 for weight in mix.values())

    def test_optimize(self, plan_json):
        response = client.post('/api/v1/plan/optimize', json={'plan': plan_json, 'objective': {'margin_target': 45}})
        assert response.status_code == 200
        data = response.json()
        assert data['iterations'] <= 14
        assert data['stop_reason'] in ('converged', 'fixed_point', 'iteration_cap')
        assert data['changes']
        assert set(data['changes'][0]) == {'field', 'from', 'to'}

    def test_checklist(self, plan_json):
        response = client.post('/api/v1/plan/checklist', json={'plan': plan_json})
        assert response.status_code == 200
        assert 'calendar_ok' in response.json()['checklist']

    def test_fix(self, plan_json):
        response = client.post('/api/v1/plan/fix', json={'plan': plan_json, 'issue': 'calendar'})
        assert response.status_code == 200
        calendar = response.json()['plan']['calendar']
        assert all(cell > 0 for row in calendar for cell in row)

    def test_fix_unknown_issue(self, plan_json):
        response = client.post('/api/v1/plan/fix', json={'plan': plan_json, 'issue': 'weather'})
        assert response.status_code == 422

    def test_export(self, plan_json):
        response = client.post('/api/v1/plan/export', json={'plan': plan_json, 'cohort_name': 'Value Seekers'})
        assert response.status_code == 200
        assert response.headers['content-type'].startswith('text/csv')
        assert 'attachment; filename=campaign-plan-' in response.headers['content-disposition']
        assert response.text.startswith('Cohort,Value Seekers')


class TestIntentEndpoint:
    def test_parse_only(self):
        response = client.post('/api/v1/intent/parse', json={'text': 'shift 10% budget from Retail to Search.'})
        assert response.status_code == 200
        data = response.json()
        assert data['actionable'] is True
        assert data['application'] is None
        assert data['intent']['deltas'] == [
            {'kind': 'channel_shift', 'from': 'ch-retail', 'to': 'ch-search', 'delta': 0.1}
        ]

    def test_no_action(self):
        response = client.post('/api/v1/intent/parse', json={'text': 'make it pop', 'apply': True})
        data = response.json()
        assert data['actionable'] is False
        assert data['intent']['notes'] == ['No actionable instructions detected']
        assert data['application'] is None

    def test_apply(self, plan_json):
        response = client.post('/api/v1/intent/parse', json={
            'text': 'shift 10% budget from Retail to Search and raise budget by $50k',
            'apply': True,
            'plan': plan_json,
        })
        data = response.json()
        application = data['application']
        assert application['plan']['channel_mix']['Search'] == pytest.approx(plan_json['channel_mix']['Search'] + 10)
        assert application['objective']['budget'] == 470_000

    def test_apply_with_segment(self):
        micro = client.get('/api/v1/segments/seg-value-seekers/micro').json()['micro_segments'][0]['micro']
        response = client.post('/api/v1/intent/parse', json={
            'text': f"include {micro['id']}",
            'segment_id': 'seg-value-seekers',
            'apply': True,
        })
        data = response.json()
        assert data['application']['selected_micro_ids'] == [micro['id']]

    def test_unknown_segment(self):
        response = client.post('/api/v1/intent/parse', json={'text': 'include everyone', 'segment_id': 'seg-nope'})
        assert response.status_code == 404


class TestStateEndpoints:
    def test_default_state(self):
        response = client.get('/api/v1/state')
        assert response.status_code == 200
        assert response.json()['active_segment_id'] is None

    def test_put_then_get(self):
        state = {'active_segment_id': 'seg-value-seekers', 'selected_micro_ids': ['seg-value-seekers-micro-2']}
        assert client.put('/api/v1/state', json=state).status_code == 200
        data = client.get('/api/v1/state').json()
        assert data['active_segment_id'] == 'seg-value-seekers'
        assert data['selected_micro_ids'] == ['seg-value-seekers-micro-2']

    def test_segment_payloads(self):
        assert client.get('/api/v1/segment-payloads').json() == []
        response = client.post('/api/v1/segment-payloads', json=payload_json())
        assert response.status_code == 200
        assert response.json()['geoWindow']['geo'] == 'US-West'
        listing = client.get('/api/v1/segment-payloads').json()
        assert [p['id'] for p in listing] == ['seg-payload-1']
        assert client.get('/api/v1/segment-payloads/seg-payload-1').json()['name'] == 'Urban switchers'

    def test_segment_payload_missing(self):
        response = client.get('/api/v1/segment-payloads/missing')
        assert response.status_code == 404

    def test_segment_payload_invalid(self):
        response = client.post('/api/v1/segment-payloads', json={'id': '', 'name': 'x'})
        assert response.status_code == 422


class TestCampaignEndpoints:
    def test_list_includes_demo(self):
        response = client.get('/api/v1/campaigns')
        assert response.status_code == 200
        data = response.json()
        assert 'cmp_001' in [c['id'] for c in data['campaigns']]
        assert data['auto_optimize']['cmp_001'] is False

    def test_launch(self):
        response = client.post('/api/v1/campaigns', json={
            'name': 'API launch',
            'cohorts': [{'id': 'seg-value-seekers', 'name': 'Value Seekers', 'size': 420000}],
            'channels': {'Search': 50, 'Social': 50},
            'offer': {'price': 72, 'promo_months': 3, 'promo_value': 110, 'device_subsidy': 160},
        })
        assert response.status_code == 201
        campaign = response.json()
        assert campaign['status'] == 'Running'
        assert campaign['channels'] == {'Search': 0.5, 'Social': 0.5}

        detail = client.get(f"/api/v1/campaigns/{campaign['id']}").json()
        assert len(detail['telemetry']) == 8
        assert detail['actions'][0]['summary'] == 'Campaign launched from Offering Designer hand-off.'

    def test_launch_requires_name(self):
        response = client.post('/api/v1/campaigns', json={
            'name': '',
            'channels': {'Search': 1},
            'offer': {'price': 72, 'promo_months': 3, 'promo_value': 110, 'device_subsidy': 160},
        })
        assert response.status_code == 422

    def test_tune_and_estimate(self):
        estimate = client.post('/api/v1/campaigns/cmp_001/estimate', json={'offer': {'price': 95}})
        assert estimate.status_code == 200
        assert estimate.json()['delta']['arpu_delta'] > 0

        tuned = client.post('/api/v1/campaigns/cmp_001/tune', json={'channels': {'Email': 0.3}})
        assert tuned.status_code == 200
        assert tuned.json()['id'] == 'cmp_001'

    def test_toggle_twice(self):
        first = client.post('/api/v1/campaigns/cmp_001/toggle').json()
        second = client.post('/api/v1/campaigns/cmp_001/toggle').json()
        assert {first['status'], second['status']} == {'Running', 'Paused'}
        assert second['status'] == 'Running'

    def test_auto_optimize(self):
        response = client.post('/api/v1/campaigns/cmp_001/auto-optimize', json={'enabled': True})
        assert response.json() == {'campaign_id': 'cmp_001', 'auto_optimize': True}
        client.post('/api/v1/campaigns/cmp_001/auto-optimize', json={'enabled': False})

    def test_unknown_campaign(self):
        for method, path in [
            ('get', '/api/v1/campaigns/missing'),
            ('post', '/api/v1/campaigns/missing/toggle'),
            ('get', '/api/v1/monitoring/missing/export'),
        ]:
            response = getattr(client, method)(path)
            assert response.status_code == 404
            assert response.json()['error'] == 'Not found'

    def test_monitoring(self):
        response = client.get('/api/v1/monitoring')
        assert response.status_code == 200
        data = response.json()
        assert 'cmp_001' in data['campaign_ids']
        assert data['points'] > 0

    def test_monitoring_export(self):
        response = client.get('/api/v1/monitoring/cmp_001/export')
        assert response.status_code == 200
        assert response.text.splitlines()[0] == 'time,cvr,arpu_delta,net_adds,churn_delta'
