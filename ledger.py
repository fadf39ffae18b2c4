"""
Order ledger: the in-memory order sequence, its financial derivation and
the read-side projections used by the order list and the dashboard.

The ledger is flushed wholesale to its key-value store after every
mutation. New orders are prepended, updates keep their position.
"""
import math
import random
import threading
import uuid
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional, Set, Union

from pydantic import BaseModel, TypeAdapter
from pydantic.alias_generators import to_camel

from database import KeyValueStore
from exceptions import MalformedPersistedStateError, OrderNotFoundError
from logging_config import get_logger
from schemas import (
    AMOUNT_FIELDS,
    ChannelShare,
    ChartPoint,
    Dashboard,
    DashboardStats,
    Financials,
    Order,
    OrderInput,
    OrderStatus,
    SalesChannel,
    StatCard,
    coerce_amount,
)
from seed_data import sample_orders

logger = get_logger(__name__)

# Inputs whose change requires re-deriving total, COD and profit
DERIVATION_FIELDS = AMOUNT_FIELDS

ALL = "All"
CHART_WINDOW = 7

_ORDER_LIST = TypeAdapter(List[Order])
_INPUT_FIELDS = set(OrderInput.model_fields)
_DERIVED_FIELDS = set(Financials.model_fields)


def _raw_input(inputs: Union[BaseModel, Mapping[str, Any]], name: str) -> Any:
    if isinstance(inputs, BaseModel):
        return getattr(inputs, name, None)
    if name in inputs:
        return inputs[name]
    return inputs.get(to_camel(name))


def derive(inputs: Union[BaseModel, Mapping[str, Any]]) -> Financials:
    """Compute total, COD and profit from the six priced inputs.

    Accepts an OrderInput (or Order) or a plain mapping keyed by either the
    snake_case or camelCase field names. Missing or non-numeric values count
    as 0.
    """
    unit_price, quantity, discount, shipping_fee, deposit, cost_price = (
        coerce_amount(_raw_input(inputs, name)) for name in DERIVATION_FIELDS
    )
    total = unit_price * quantity - discount + shipping_fee
    return Financials(
        total_amount=total,
        cod_amount=total - deposit,
        profit=(unit_price - cost_price) * quantity - discount,
    )


def compute_stats(orders: Iterable[Order]) -> DashboardStats:
    revenue = 0
    profit = 0
    count = 0
    pending = 0
    for order in orders:
        revenue += order.total_amount
        profit += order.profit
        count += 1
        if order.status == OrderStatus.PENDING:
            pending += 1
    return DashboardStats(
        total_revenue=revenue,
        total_profit=profit,
        total_orders=count,
        pending_orders=pending,
    )


def _label(value: Union[str, Enum, None]) -> str:
    if isinstance(value, Enum):
        return value.value
    return value or ""


def filter_orders(
    orders: Iterable[Order],
    search_term: str = "",
    status_filter: Union[str, OrderStatus] = ALL,
    brand_filter: str = ALL,
) -> List[Order]:
    """Search by id/customer (case-insensitive) or phone, then narrow by status and brand."""
    term = search_term or ""
    folded = term.lower()
    status_label = _label(status_filter) or ALL
    brand_label = brand_filter or ALL

    matched = []
    for order in orders:
        matches_search = (
            folded in order.id.lower()
            or folded in order.customer_name.lower()
            or term in order.phone
        )
        matches_status = status_label == ALL or order.status.value == status_label
        matches_brand = brand_label == ALL or order.brand == brand_label
        if matches_search and matches_status and matches_brand:
            matched.append(order)
    return matched


def brands(orders: Iterable[Order]) -> List[str]:
    # distinct, first-seen order
    return list(dict.fromkeys(order.brand for order in orders))


def revenue_profit_series(orders: List[Order], window: int = CHART_WINDOW) -> List[ChartPoint]:
    return [
        ChartPoint(name=o.id, revenue=o.total_amount, profit=o.profit)
        for o in orders[-window:]
    ]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def channel_shares(orders: List[Order]) -> List[ChannelShare]:
    total = len(orders)
    shares = []
    for channel in SalesChannel:
        count = sum(1 for o in orders if o.channel == channel)
        percentage = _round_half_up(count / total * 100) if total else 0
        shares.append(ChannelShare(channel=channel, count=count, percentage=percentage))
    return shares


def format_vnd(value: Union[int, float]) -> str:
    """Format an amount the way vi-VN currency display does, e.g. 5.335.000 ₫"""
    grouped = f"{_round_half_up(value):,}".replace(",", ".")
    return f"{grouped}\u00a0₫"


def stat_cards(stats: DashboardStats) -> List[StatCard]:
    return [
        StatCard(label="Doanh thu (Revenue)", value=format_vnd(stats.total_revenue)),
        StatCard(label="Lợi nhuận (Profit)", value=format_vnd(stats.total_profit)),
        StatCard(label="Tổng đơn (Total Orders)", value=str(stats.total_orders)),
        StatCard(label="Đang xử lý (Pending)", value=str(stats.pending_orders)),
    ]


def build_dashboard(orders: List[Order]) -> Dashboard:
    stats = compute_stats(orders)
    return Dashboard(
        stats=stats,
        cards=stat_cards(stats),
        chart=revenue_profit_series(orders),
        channels=channel_shares(orders),
    )


def generate_order_id(existing: Set[str], attempts: int = 50) -> str:
    for _ in range(attempts):
        candidate = f"#DH{random.randint(1000, 9999)}"
        if candidate not in existing:
            return candidate
    # four-digit space is crowded; widen the suffix
    while True:
        candidate = f"#DH{uuid.uuid4().hex[:10].upper()}"
        if candidate not in existing:
            return candidate


def build_order(order_id: str, data: OrderInput) -> Order:
    fields = data.model_dump(include=_INPUT_FIELDS)
    return Order(id=order_id, **fields, **derive(data).model_dump())


def _with_derivations(order: Order) -> Order:
    # stored amounts are kept as written; only absent ones are derived
    if _DERIVED_FIELDS <= order.model_fields_set:
        return order
    return build_order(order.id, order)


def _as_input(data: Union[OrderInput, Mapping[str, Any]]) -> OrderInput:
    if isinstance(data, OrderInput):
        return data
    return OrderInput.model_validate(data)


class OrderLedger:
    """Process-wide order collection backed by a key-value store.

    Construct once at startup, call load(), then share the instance.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = "luxetrack_orders",
        recover_corrupt: bool = False,
        seed: Callable[[], List[Order]] = sample_orders,
    ):
        self.store = store
        self.key = key
        self.recover_corrupt = recover_corrupt
        self._seed = seed
        self._orders: List[Order] = []
        self._lock = threading.RLock()

    # -------------------- startup --------------------

    def load(self) -> List[Order]:
        """Read the persisted sequence, seeding sample orders when none exists.

        A value that is present but unreadable raises
        MalformedPersistedStateError, or falls back to the seed orders without
        overwriting the stored value when recover_corrupt is set. Stored
        total, COD and profit amounts are taken as written.
        """
        with self._lock:
            try:
                raw = self.store.get(self.key)
                parsed = None if raw is None else self._parse(raw)
            except ValueError as e:
                if not self.recover_corrupt:
                    raise MalformedPersistedStateError(self.key, str(e)) from e
                logger.warning("Persisted orders under %s are unreadable, starting from sample data: %s", self.key, e)
                self._orders = self._seed()
                return self.orders

            if parsed is None:
                logger.info("No persisted orders under %s, seeding sample data", self.key)
                seeded = self._seed()
                self._flush(seeded)
                self._orders = seeded
            else:
                self._orders = [_with_derivations(o) for o in parsed]
                logger.info("Loaded %d orders from %s", len(self._orders), self.key)
            return self.orders

    def _parse(self, raw: str) -> List[Order]:
        orders = _ORDER_LIST.validate_json(raw)
        seen: Set[str] = set()
        for order in orders:
            if order.id in seen:
                raise ValueError(f"duplicate order id {order.id}")
            seen.add(order.id)
        return orders

    def _flush(self, orders: List[Order]) -> None:
        self.store.set(self.key, _ORDER_LIST.dump_json(orders, by_alias=True).decode("utf-8"))

    # -------------------- reads --------------------

    @property
    def orders(self) -> List[Order]:
        with self._lock:
            return list(self._orders)

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)

    def _index_of(self, order_id: str) -> Optional[int]:
        for i, order in enumerate(self._orders):
            if order.id == order_id:
                return i
        return None

    def get(self, order_id: str) -> Order:
        with self._lock:
            idx = self._index_of(order_id)
            if idx is None:
                raise OrderNotFoundError(order_id)
            return self._orders[idx]

    def stats(self) -> DashboardStats:
        return compute_stats(self.orders)

    def filter(self, search_term: str = "", status_filter: str = ALL, brand_filter: str = ALL) -> List[Order]:
        return filter_orders(self.orders, search_term, status_filter, brand_filter)

    def brands(self) -> List[str]:
        return brands(self.orders)

    def dashboard(self) -> Dashboard:
        return build_dashboard(self.orders)

    # -------------------- mutations --------------------

    def create(self, data: Union[OrderInput, Mapping[str, Any]]) -> Order:
        data = _as_input(data)
        with self._lock:
            order_id = generate_order_id({o.id for o in self._orders})
            order = build_order(order_id, data)
            updated = [order] + self._orders
            self._flush(updated)
            self._orders = updated
        logger.info("Created order %s (%s, total=%s)", order.id, order.brand, order.total_amount)
        return order

    def update(self, order_id: str, data: Union[OrderInput, Mapping[str, Any]]) -> Order:
        data = _as_input(data)
        with self._lock:
            idx = self._index_of(order_id)
            if idx is None:
                raise OrderNotFoundError(order_id)
            order = build_order(order_id, data)
            updated = list(self._orders)
            updated[idx] = order
            self._flush(updated)
            self._orders = updated
        logger.info("Updated order %s (status=%s)", order_id, order.status.value)
        return order

    def delete(self, order_id: str) -> None:
        with self._lock:
            idx = self._index_of(order_id)
            if idx is None:
                raise OrderNotFoundError(order_id)
            updated = self._orders[:idx] + self._orders[idx + 1:]
            self._flush(updated)
            self._orders = updated
        logger.info("Deleted order %s", order_id)
