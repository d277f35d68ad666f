"""
Head-unit usage analytics ingestion.
"""

from .store import BehaviorLog, behavior_codes
from .api import create_analytics_router

__all__ = ["BehaviorLog", "behavior_codes", "create_analytics_router"]
