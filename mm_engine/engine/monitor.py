"""
Monitoring Hand-off
==================

Per-tick engine snapshots pushed to a display/monitoring consumer over a
bounded, lossy queue. Publishing never blocks the decision pipeline.
"""

import queue
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from loguru import logger


@dataclass(frozen=True)
class EngineSnapshot:
    """Per-tick state record for monitoring"""
    timestamp: float
    fair_price: Optional[float]
    imbalance: float
    reservation_price: Optional[float]
    half_spread: Optional[float]
    inventory_qty: float
    realized_pnl: float
    unrealized_pnl: float
    active_layers: int
    volatility_estimate: float
    toxic_flag: bool
    mid_price: Optional[float] = None
    equity: Optional[float] = None
    kappa: Optional[float] = None
    degraded: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)


class MonitorChannel:
    """
    Bounded queue between the engine and a monitoring consumer.

    When the consumer falls behind, new snapshots are dropped and counted.
    """

    def __init__(self, maxsize: int = 256):
        self._queue: "queue.Queue[EngineSnapshot]" = queue.Queue(maxsize=maxsize)
        self.published = 0
        self.dropped = 0

    def publish(self, snapshot: EngineSnapshot) -> bool:
        try:
            self._queue.put_nowait(snapshot)
        except queue.Full:
            self.dropped += 1
            if self.dropped % 1000 == 1:
                logger.debug(f"Monitor queue full, dropped {self.dropped} snapshots so far")
            return False
        self.published += 1
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[EngineSnapshot]:
        """Consumer side: next snapshot or None on timeout"""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[EngineSnapshot]:
        """Consumer side: everything currently queued"""
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def qsize(self) -> int:
        return self._queue.qsize()
