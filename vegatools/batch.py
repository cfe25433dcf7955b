"""Pending order commands for one user, sent together as a batch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BatchOrders:
    """Cancellations, amendments and submissions waiting to be sent."""

    cancels: list[dict[str, Any]] = field(default_factory=list)
    amends: list[dict[str, Any]] = field(default_factory=list)
    orders: list[dict[str, Any]] = field(default_factory=list)

    def message_count(self) -> int:
        """Number of messages waiting to be sent."""
        return len(self.cancels) + len(self.amends) + len(self.orders)

    def clear(self) -> None:
        """Drop every pending message."""
        self.cancels.clear()
        self.amends.clear()
        self.orders.clear()