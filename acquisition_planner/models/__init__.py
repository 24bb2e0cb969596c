"""
Domain models - reference data, plans, intents, persisted state and campaigns
"""
from .validators import *  # noqa: F401,F403
from .validators import __all__  # noqa: F401
