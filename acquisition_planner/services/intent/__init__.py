"""
Intent module - rule-table parser for free-text plan commands
"""
from .intent_parser import (
    INTENT_RULES,
    NO_ACTION_NOTE,
    IntentRule,
    apply_intent,
    parse_intent,
)

__all__ = [
    'INTENT_RULES',
    'NO_ACTION_NOTE',
    'IntentRule',
    'apply_intent',
    'parse_intent',
]
