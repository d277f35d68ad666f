"""
Network utilities: upstream origin config, one-shot cancellation guard, relay.
"""

from .cancel import OneShotGuard
from .proxy import UpstreamConfig
from .upstream import UpstreamProxy, UpstreamReply

__all__ = [
    "OneShotGuard",
    "UpstreamConfig",
    "UpstreamProxy",
    "UpstreamReply",
]
