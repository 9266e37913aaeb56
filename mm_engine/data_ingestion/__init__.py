"""
Data Ingestion Module
====================

Order book snapshot model consumed by the decision engine. Feeding the
snapshots (file replay, websocket, simulator) is the caller's job.
"""

from .order_book import OrderBookLevel, OrderBookSnapshot

__all__ = [
    'OrderBookLevel',
    'OrderBookSnapshot'
]
