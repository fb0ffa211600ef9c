"""
External service integrations.
"""

from integrations.order_feed import OrderSource, OrderFeedClient, StaticOrderSource

__all__ = ["OrderSource", "OrderFeedClient", "StaticOrderSource"]
