"""
Execution Collaborator Interface
===============================

Boundary to the venue or simulator that actually places orders.
"""

from abc import ABC, abstractmethod

from ..strategy.order_manager import OrderSide


class ExecutionClient(ABC):
    """
    Order placement surface.

    Both calls either return normally (accepted for processing) or raise
    ExecutionError. Fills and cancel confirmations come back through the
    engine's on_fill / on_cancel_confirmed callbacks.
    """

    @abstractmethod
    def submit_order(self, side: OrderSide, price: float, quantity: float, order_id: int) -> None:
        """Place a limit order under the engine-assigned id"""
        pass

    @abstractmethod
    def cancel_order(self, order_id: int) -> None:
        """Request cancellation of a resting order"""
        pass
