"""Tests for JSON-file persistence"""
import json

import pytest

from acquisition_planner.models import Objective, SegmentPayload, SelectionState
from acquisition_planner.services.planning import create_plan_from_objective
from acquisition_planner.services.storage import SegmentPayloadStore, StateStore


def make_payload(payload_id='seg-payload-1', name='Urban switchers', version=1):
    return SegmentPayload.model_validate({
        'id': payload_id,
        'name': name,
        'chips': ['Urban', 'Price reactive'],
        'filters': {'region': ['urban']},
        'geoWindow': {'geo': 'US-West', 'window': '90d', 'grain': 'weekly'},
        'kpis': {'opportunityScore': 72.5, 'reachable': 120000, 'expectedCvr': [2.1, 3.4], 'paybackMonths': 7.5},
        'createdAt': '2025-03-01T10:00:00Z',
        'version': version,
    })


@pytest.fixture
def state_store(tmp_path):
    return StateStore(str(tmp_path / 'state.json'))


@pytest.fixture
def payload_store(tmp_path):
    return SegmentPayloadStore(str(tmp_path / 'payloads' / 'segments.json'))


class TestStateStore:
    def test_missing_file_returns_defaults(self, state_store):
        state = state_store.load()
        assert state == SelectionState()
        assert state.objective.goal == 'Balanced'

    def test_round_trip(self, state_store):
        plan = create_plan_from_objective(Objective(goal='Growth-first'))
        state = SelectionState(
            active_segment_id='seg-value-seekers',
            selected_micro_ids=['seg-value-seekers-micro-1'],
            campaign_plan=plan,
            objective=Objective(goal='Growth-first'),
        )
        state_store.save(state)
        loaded = state_store.load()
        assert loaded.active_segment_id == 'seg-value-seekers'
        assert loaded.selected_micro_ids == ['seg-value-seekers-micro-1']
        assert loaded.campaign_plan == plan
        assert loaded.objective.goal == 'Growth-first'

    def test_partial_file_merged_over_defaults(self, state_store):
        with open(state_store.path, 'w') as f:
            json.dump({'active_segment_id': 'seg-rural-seniors'}, f)
        state = state_store.load()
        assert state.active_segment_id == 'seg-rural-seniors'
        assert state.selected_micro_ids == []

    def test_corrupt_file_returns_defaults(self, state_store):
        with open(state_store.path, 'w') as f:
            f.write('{not json')
        assert state_store.load() == SelectionState()

    def test_invalid_state_returns_defaults(self, state_store):
        with open(state_store.path, 'w') as f:
            json.dump({'objective': {'goal': 'Chaos'}}, f)
        assert state_store.load() == SelectionState()

    def test_non_dict_returns_defaults(self, state_store):
        with open(state_store.path, 'w') as f:
            json.dump([1, 2, 3], f)
        assert state_store.load() == SelectionState()

    def test_clear(self, state_store):
        state_store.save(SelectionState(active_segment_id='seg-value-seekers'))
        state_store.clear()
        assert state_store.load().active_segment_id is None


class TestSegmentPayloadStore:
    def test_empty(self, payload_store):
        assert payload_store.load_all() == []
        assert payload_store.get_one('anything') is None

    def test_save_and_get(self, payload_store):
        payload_store.save_one(make_payload())
        loaded = payload_store.get_one('seg-payload-1')
        assert loaded is not None
        assert loaded.geo_window.geo == 'US-West'
        assert loaded.kpis.expected_cvr == (2.1, 3.4)

    def test_written_with_camel_case_keys(self, payload_store):
        payload_store.save_one(make_payload())
        with open(payload_store.path) as f:
            raw = json.load(f)
        assert 'geoWindow' in raw[0]
        assert 'opportunityScore' in raw[0]['kpis']

    def test_upsert_by_id(self, payload_store):
        payload_store.save_one(make_payload())
        payload_store.save_one(make_payload(name='Renamed', version=2))
        payload_store.save_one(make_payload(payload_id='seg-payload-2'))
        payloads = payload_store.load_all()
        assert [p.id for p in payloads] == ['seg-payload-1', 'seg-payload-2']
        assert payloads[0].name == 'Renamed'
        assert payloads[0].version == 2

    def test_invalid_items_skipped(self, payload_store):
        payload_store.save_one(make_payload())
        with open(payload_store.path) as f:
            raw = json.load(f)
        raw.append({'id': 'broken'})
        with open(payload_store.path, 'w') as f:
            json.dump(raw, f)
        assert [p.id for p in payload_store.load_all()] == ['seg-payload-1']

    def test_corrupt_file(self, payload_store, tmp_path):
        (tmp_path / 'payloads').mkdir(exist_ok=True)
        with open(payload_store.path, 'w') as f:
            f.write('[[[')
        assert payload_store.load_all() == []
