"""
Storage module - JSON-file persistence for selection state and segment payloads
"""
from .state_store import SegmentPayloadStore, StateStore

__all__ = [
    'SegmentPayloadStore',
    'StateStore',
]
