"""
Read-only access to stored orders.

The reconciliation engine only needs two queries: one order by id within a
store, and a store's orders filtered by status. Backends implement
OrderRepository; the JSON backend reads an exported order list from disk.
"""

import json
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from .config import OrderStatus, logger
from .schemas import OrderRecord

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def is_valid_object_id(value: Optional[str]) -> bool:
    """Return True if value is a 24-character hexadecimal identifier."""
    if value is None:
        return False
    return bool(OBJECT_ID_PATTERN.match(str(value).strip()))


def _updated_key(order: OrderRecord) -> datetime:
    stamp = order.updated_at or order.created_at
    if stamp is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if stamp.tzinfo is None:
        return stamp.replace(tzinfo=timezone.utc)
    return stamp


class OrderRepository(ABC):
    """Abstract base class for order stores."""

    @abstractmethod
    def find_order(self, order_id: str, store_id: str) -> Optional[OrderRecord]:
        """Return the order with this id in this store, or None."""

    @abstractmethod
    def find_orders(self, store_id: str, status: OrderStatus) -> list[OrderRecord]:
        """Return a store's orders with the given status, newest update first."""


class InMemoryOrderRepository(OrderRepository):
    """Order store backed by a list held in memory."""

    def __init__(self, orders: Optional[Iterable[OrderRecord]] = None):
        self._orders: list[OrderRecord] = list(orders or [])

    def add(self, order: OrderRecord) -> None:
        self._orders.append(order)

    def find_order(self, order_id: str, store_id: str) -> Optional[OrderRecord]:
        order_id = order_id.lower()
        store_id = store_id.lower()
        for order in self._orders:
            if order.id.lower() == order_id and order.store_id.lower() == store_id:
                return order
        return None

    def find_orders(self, store_id: str, status: OrderStatus) -> list[OrderRecord]:
        store_id = store_id.lower()
        matches = [
            order for order in self._orders
            if order.store_id.lower() == store_id and order.status == status
        ]
        return sorted(matches, key=_updated_key, reverse=True)

    def __len__(self) -> int:
        return len(self._orders)


class JsonOrderRepository(InMemoryOrderRepository):
    """
    Order store loaded from a JSON file.

    The file holds a JSON array of order objects (or a single object) in the
    exported shape: camelCase keys, "_id" identifiers and decimals either as
    plain values or as {"$numberDecimal": "..."}.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> list[OrderRecord]:
        if not self.path.exists():
            raise FileNotFoundError(f"Order file not found: {self.path}")

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, list):
            data = [data]

        orders = [OrderRecord.model_validate(item) for item in data]
        logger.info(f"Loaded {len(orders)} orders from: {self.path}")
        return orders
