import asyncio
from typing import Dict, Iterable, List, Optional

from core.config.settings import Settings
from core.logging import get_database_logger_safe
from core.trading.models import Account, Execution, Position, Trade
from core.utils.exceptions import ConcurrentModificationError
from .demo_data import demo_snapshot, empty_snapshot
from .interfaces import AccountStore


class InMemoryAccountStore(AccountStore):
    """Process-local store used when no database URL is configured.

    State lives on the instance; nothing is shared at module level. All
    mutations happen under one asyncio.Lock with no await between the
    version check and the writes, so an execution is applied completely or
    not at all.
    """

    def __init__(self, settings: Settings, seed_demo_data: Optional[bool] = None):
        self.settings = settings
        self.seed_demo_data = (
            settings.account.seed_demo_data if seed_demo_data is None else seed_demo_data
        )
        self.logger = get_database_logger_safe("memory_account_store")
        self._lock = asyncio.Lock()
        self._account: Optional[Account] = None
        self._positions: Dict[str, Position] = {}
        self._trades: List[Trade] = []  # append order, oldest first
        self._next_trade_id = 1

    async def initialize(self) -> None:
        if self._account is not None:
            return
        if self.seed_demo_data:
            account, positions, trades = demo_snapshot(self.settings.account)
        else:
            account, positions, trades = empty_snapshot(self.settings.account)
        await self.seed(account, positions, trades)
        self.logger.info("In-memory account store initialized",
                         demo_data=self.seed_demo_data,
                         positions=len(self._positions))

    async def close(self) -> None:
        self.logger.info("In-memory account store closed")

    async def get_account(self) -> Account:
        if self._account is None:
            await self.initialize()
        return self._account

    async def get_positions(self) -> List[Position]:
        if self._account is None:
            await self.initialize()
        return [self._positions[symbol] for symbol in sorted(self._positions)]

    async def get_position(self, symbol: str) -> Optional[Position]:
        if self._account is None:
            await self.initialize()
        return self._positions.get(symbol.upper())

    async def list_trades(self, limit: Optional[int] = None) -> List[Trade]:
        if self._account is None:
            await self.initialize()
        ordered = sorted(self._trades, key=lambda t: (t.timestamp, t.id or 0), reverse=True)
        return ordered[:limit] if limit is not None else ordered

    async def apply_execution(self, execution: Execution, expected_version: int) -> Trade:
        if self._account is None:
            await self.initialize()
        async with self._lock:
            current_version = self._account.version
            if current_version != expected_version:
                raise ConcurrentModificationError(
                    "Account changed since it was read",
                    expected_version=expected_version,
                    actual_version=current_version,
                )

            account = execution.account.model_copy(update={"version": current_version + 1})
            trade = execution.trade.model_copy(update={"id": self._next_trade_id})
            symbol = execution.symbol

            self._account = account
            if execution.position is None:
                self._positions.pop(symbol, None)
            else:
                self._positions[symbol] = execution.position
            self._trades.append(trade)
            self._next_trade_id += 1

        self.logger.debug("Execution applied",
                          symbol=symbol,
                          trade_id=trade.id,
                          version=account.version)
        return trade

    async def seed(
        self,
        account: Account,
        positions: Iterable[Position] = (),
        trades: Iterable[Trade] = (),
    ) -> None:
        async with self._lock:
            self._account = account
            self._positions = {p.symbol: p for p in positions if p.quantity > 0}
            stored: List[Trade] = []
            next_id = 1
            for trade in trades:
                trade_id = trade.id if trade.id is not None else next_id
                stored.append(trade.model_copy(update={"id": trade_id}))
                next_id = max(next_id, trade_id + 1)
            self._trades = stored
            self._next_trade_id = next_id
