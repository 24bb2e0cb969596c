"""Tests for the plan checklist and canned fixes"""
import pytest

from acquisition_planner.models import Objective
from acquisition_planner.services.planning import (
    checklist_status,
    confidence_label,
    create_plan_from_objective,
    fix_issue,
)


@pytest.fixture
def objective():
    return Objective()


@pytest.fixture
def plan(objective):
    return create_plan_from_objective(objective)


class TestConfidenceLabel:
    @pytest.mark.parametrize('value,label', [(0.2, 'Low'), (0.45, 'Medium'), (0.69, 'Medium'), (0.7, 'High')])
    def test_thresholds(self, value, label):
        assert confidence_label(value) == label


class TestChecklistStatus:
    def test_keys(self, plan, objective):
        status = checklist_status(plan, objective)
        assert set(status) == {
            'budget_ok', 'cac_ok', 'payback_ok', 'margin_ok', 'calendar_ok', 'confidence_ok', 'all_ok',
        }
        assert status['all_ok'] == all(v for k, v in status.items() if k != 'all_ok')

    def test_base_calendar_has_gaps(self, plan, objective):
        # Retail runs only the first six weeks and the base grid covers 52/144
        assert checklist_status(plan, objective)['calendar_ok'] is False

    def test_full_calendar_passes(self, plan, objective):
        full = plan.model_copy(update={'calendar': [[2] * 12 for _ in range(4)]})
        assert checklist_status(full, objective)['calendar_ok'] is True

    def test_empty_week_fails(self, objective, plan):
        calendar = [[3] * 12 for _ in range(4)]
        for row in calendar:
            row[5] = 0
        assert checklist_status(plan.model_copy(update={'calendar': calendar}), objective)['calendar_ok'] is False

    def test_budget_flag(self, plan):
        assert checklist_status(plan, Objective(budget=0))['budget_ok'] is False
        assert checklist_status(plan, Objective(budget=10_000_000))['budget_ok'] is True


class TestFixIssue:
    def test_budget_fix(self, plan, objective):
        fixed = fix_issue(plan, objective, 'budget')
        assert fixed.promo_months == plan.promo_months - 1
        assert fixed.promo_depth_pct == pytest.approx(plan.promo_depth_pct - 1.5)

    def test_budget_fix_floors(self, plan, objective):
        floor = plan.model_copy(update={'promo_months': 1, 'promo_depth_pct': 8.0})
        fixed = fix_issue(floor, objective, 'budget')
        assert fixed.promo_months == 1
        assert fixed.promo_depth_pct == 8.0

    def test_cac_fix(self, plan, objective):
        fixed = fix_issue(plan, objective, 'cac')
        assert fixed.channel_mix['Search'] == pytest.approx(plan.channel_mix['Search'] + 4, abs=0.02)
        assert fixed.device_subsidy == plan.device_subsidy - 3

    def test_payback_fix(self, plan, objective):
        fixed = fix_issue(plan, objective, 'payback')
        assert fixed.channel_mix['Email'] == pytest.approx(plan.channel_mix['Email'] + 3, abs=0.02)
        assert fixed.promo_months == plan.promo_months + 1

    def test_margin_fix(self, plan, objective):
        fixed = fix_issue(plan, objective, 'margin')
        assert fixed.price == plan.price + 2
        assert fixed.promo_depth_pct == plan.promo_depth_pct - 2
        assert fixed.kpis.margin_pct > plan.kpis.margin_pct

    def test_calendar_fix_fills_gaps(self, plan, objective):
        fixed = fix_issue(plan, objective, 'calendar')
        assert all(cell > 0 for row in fixed.calendar for cell in row)
        # non-zero cells are untouched
        assert fixed.calendar[0][:8] == plan.calendar[0][:8]

    def test_confidence_fix_raises_intensity(self, plan, objective):
        fixed = fix_issue(plan, objective, 'confidence')
        for before, after in zip(plan.calendar, fixed.calendar):
            assert after == [min(3, cell + 1) for cell in before]
        assert fixed.confidence >= plan.confidence

    def test_unknown_issue(self, plan, objective):
        with pytest.raises(ValueError):
            fix_issue(plan, objective, 'weather')

    def test_fix_returns_new_plan(self, plan, objective):
        before = plan.model_dump()
        fix_issue(plan, objective, 'margin')
        assert plan.model_dump() == before
