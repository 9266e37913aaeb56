"""
Inventory and PnL State
======================

Signed position, average entry price and realized PnL. Mutated only by
fills routed through the OrderTracker.
"""

from dataclasses import dataclass

from .order_manager import OrderSide

# Position residue below this is treated as flat
POSITION_EPSILON = 1e-12


@dataclass
class InventoryState:
    """Position and PnL accounting"""
    position: float = 0.0
    avg_entry_price: float = 0.0
    realized_pnl: float = 0.0
    buy_volume: float = 0.0
    sell_volume: float = 0.0
    fill_count: int = 0

    @property
    def is_flat(self) -> bool:
        return abs(self.position) < POSITION_EPSILON

    def unrealized_pnl(self, mark_price: float) -> float:
        if self.is_flat:
            return 0.0
        return self.position * (mark_price - self.avg_entry_price)

    def total_pnl(self, mark_price: float) -> float:
        return self.realized_pnl + self.unrealized_pnl(mark_price)

    def apply_fill(self, side: OrderSide, quantity: float, price: float) -> float:
        """
        Apply a fill and return the PnL it realized.

        Same-direction fills (or fills from flat) move the average entry to the
        quantity-weighted price. Opposite-direction fills realize PnL on the
        closed quantity; any excess flips the position at the fill price.
        """
        signed_qty = quantity if side == OrderSide.BID else -quantity
        realized = 0.0

        if side == OrderSide.BID:
            self.buy_volume += quantity
        else:
            self.sell_volume += quantity
        self.fill_count += 1

        if self.is_flat or (self.position > 0) == (signed_qty > 0):
            new_position = self.position + signed_qty
            self.avg_entry_price = (
                abs(self.position) * self.avg_entry_price + quantity * price
            ) / abs(new_position)
            self.position = new_position
            return realized

        closed_qty = min(quantity, abs(self.position))
        direction = 1.0 if self.position > 0 else -1.0
        realized = closed_qty * (price - self.avg_entry_price) * direction
        self.realized_pnl += realized

        new_position = self.position + signed_qty
        if abs(new_position) < POSITION_EPSILON:
            self.position = 0.0
            self.avg_entry_price = 0.0
        elif (new_position > 0) != (self.position > 0):
            # Flipped through flat, remainder opens at the fill price
            self.position = new_position
            self.avg_entry_price = price
        else:
            self.position = new_position

        return realized

    def reset(self) -> None:
        self.position = 0.0
        self.avg_entry_price = 0.0
        self.realized_pnl = 0.0
        self.buy_volume = 0.0
        self.sell_volume = 0.0
        self.fill_count = 0
