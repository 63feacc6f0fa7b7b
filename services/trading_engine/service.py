import asyncio
from typing import Dict, List, Optional

from core.logging import get_error_logger_safe, get_trading_logger_safe
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from core.trading.models import Execution, ExecutionOutcome, OrderRequest, Rejection, Trade
from core.utils.exceptions import ConcurrentModificationError, StoreFailureError
from services.account_store.interfaces import AccountStore
from .execution_engine import ExecutionEngine


class TradingService:
    """Places paper orders against the account store.

    Orders for the same account are serialized by a single-writer lock and
    the store additionally checks the account version on write, so two
    overlapping orders can never both apply against the same snapshot.
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        store: AccountStore,
        quote_provider,
        metrics: Optional[PrometheusMetricsCollector] = None,
        account_key: str = "default",
    ):
        self.engine = engine
        self.store = store
        self.quote_provider = quote_provider
        self.metrics = metrics
        self.account_key = account_key
        self.logger = get_trading_logger_safe("trading_service")
        self.error_logger = get_error_logger_safe("trading_service")

        # Concurrency control
        self._account_locks: Dict[str, asyncio.Lock] = {}
        self._account_locks_lock = asyncio.Lock()

    async def _get_account_lock(self, key: str) -> asyncio.Lock:
        async with self._account_locks_lock:
            if key not in self._account_locks:
                self._account_locks[key] = asyncio.Lock()
            return self._account_locks[key]

    async def place_order(self, order: OrderRequest) -> ExecutionOutcome:
        rejection = self.engine.validate(order)
        if rejection is not None:
            self._record_rejection(order, rejection)
            return rejection

        # Fetched outside the lock so a slow upstream does not block other orders
        quote = await self.quote_provider.quote(order.symbol)

        lock = await self._get_account_lock(self.account_key)
        async with lock:
            account = await self.store.get_account()
            position = await self.store.get_position(order.symbol)
            outcome = self.engine.execute(order, quote, account, position)

            if isinstance(outcome, Rejection):
                self._record_rejection(order, outcome)
                return outcome

            try:
                trade = await self.store.apply_execution(outcome, expected_version=account.version)
            except ConcurrentModificationError as e:
                self._record_fault(order, "concurrent_modification")
                self.logger.warning("Order not applied; account changed concurrently",
                                    symbol=order.symbol,
                                    expected_version=e.expected_version,
                                    actual_version=e.actual_version)
                raise
            except StoreFailureError as e:
                self._record_fault(order, "store_failure")
                self.error_logger.error("Order outcome unknown; store write failed",
                                        symbol=order.symbol,
                                        operation=e.operation,
                                        error=e.message)
                raise

        execution = outcome.model_copy(update={"trade": trade})
        self._record_fill(execution)
        self.logger.info("Order executed",
                         trade_id=trade.id,
                         symbol=trade.symbol,
                         side=trade.side.value,
                         quantity=str(trade.quantity),
                         price=str(trade.price),
                         cash_after=str(execution.account.cash))
        return execution

    async def get_history(self, limit: Optional[int] = None) -> List[Trade]:
        return await self.store.list_trades(limit=limit)

    def _record_rejection(self, order: OrderRequest, rejection: Rejection) -> None:
        self.logger.info("Order rejected",
                         symbol=order.symbol,
                         side=order.side.value if order.side else None,
                         kind=rejection.kind.value,
                         reason=rejection.message)
        if self.metrics:
            self.metrics.record_order(
                order.side.value if order.side else "unknown",
                order.order_type.value,
                rejection.kind.value,
            )

    def _record_fault(self, order: OrderRequest, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_order(order.side.value, order.order_type.value, outcome)
            self.metrics.record_error("trading_service", outcome)

    def _record_fill(self, execution: Execution) -> None:
        if self.metrics:
            order = execution.order
            self.metrics.record_order(order.side.value, order.order_type.value, "filled")
            self.metrics.record_fill(
                order.side.value,
                float(execution.trade.price * execution.trade.quantity),
                float(execution.account.cash),
            )
