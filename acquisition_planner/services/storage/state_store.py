"""
JSON-file persistence for planner selection state and Segment Studio payloads.

Reads never raise: a missing or unparseable file yields the defaults (or an
empty list) and a logged warning. Writes go to a temp file that replaces the
target in one step.
"""
import json
import os
from typing import Any, List, Optional

from pydantic import ValidationError

from acquisition_planner.logging_config import get_logger
from acquisition_planner.models import SegmentPayload, SelectionState

logger = get_logger(__name__)


def _load_json(path: str, default: Any) -> Any:
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read {path}: {e}")
        return default


def _save_json(path: str, data: Any) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w") as f:
        json.dump(data, f, indent=2)
    os.replace(tmp, path)


class StateStore:
    """Planner selection state (active segment, micro selection, plan, objective)."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> SelectionState:
        """Load state merged over defaults."""
        raw = _load_json(self.path, {})
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed selection state in {self.path}")
            return SelectionState()
        merged = {**SelectionState().model_dump(), **raw}
        try:
            return SelectionState.model_validate(merged)
        except ValidationError as e:
            logger.warning(f"Selection state in {self.path} failed validation: {e.error_count()} errors")
            return SelectionState()

    def save(self, state: SelectionState) -> SelectionState:
        _save_json(self.path, state.model_dump(mode="json"))
        logger.info(f"Saved selection state: segment={state.active_segment_id} micros={len(state.selected_micro_ids)}")
        return state

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)


class SegmentPayloadStore:
    """List of exported segment payloads keyed by id."""

    def __init__(self, path: str):
        self.path = path

    def load_all(self) -> List[SegmentPayload]:
        raw = _load_json(self.path, [])
        if not isinstance(raw, list):
            logger.warning(f"Ignoring malformed segment payload list in {self.path}")
            return []
        payloads = []
        for item in raw:
            try:
                payloads.append(SegmentPayload.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid segment payload in {self.path}: {e.error_count()} errors")
        return payloads

    def save_all(self, payloads: List[SegmentPayload]) -> None:
        _save_json(self.path, [p.model_dump(mode="json", by_alias=True) for p in payloads])

    def save_one(self, payload: SegmentPayload) -> SegmentPayload:
        """Insert or replace the payload with the same id."""
        payloads = self.load_all()
        for idx, existing in enumerate(payloads):
            if existing.id == payload.id:
                payloads[idx] = payload
                break
        else:
            payloads.append(payload)
        self.save_all(payloads)
        logger.info(f"Saved segment payload {payload.id} (v{payload.version})")
        return payload

    def get_one(self, payload_id: str) -> Optional[SegmentPayload]:
        for payload in self.load_all():
            if payload.id == payload_id:
                return payload
        return None
