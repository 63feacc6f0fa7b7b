from datetime import timezone
from typing import Iterable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.database.models import PortfolioPosition, TradeRecord, User
from core.logging import get_database_logger_safe
from core.trading.models import Account, Execution, OrderSide, Position, Trade
from core.utils.exceptions import ConcurrentModificationError, StoreFailureError
from .demo_data import demo_snapshot, empty_snapshot
from .interfaces import AccountStore


def _to_position(row: PortfolioPosition) -> Position:
    return Position(symbol=row.symbol, quantity=row.quantity, average_price=row.average_price)


def _to_trade(row: TradeRecord) -> Trade:
    timestamp = row.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return Trade(
        id=row.id,
        symbol=row.symbol,
        side=OrderSide(row.type),
        price=row.price,
        quantity=row.quantity,
        fee=row.fee,
        timestamp=timestamp,
    )


class SqlAccountStore(AccountStore):
    """Relational account store (Postgres via asyncpg in deployment).

    `apply_execution` runs in one transaction. The cash update is a
    compare-and-swap on `users.version`, so a writer in another process that
    committed first makes this one fail with ConcurrentModificationError and
    the transaction rolls back.
    """

    def __init__(self, settings: Settings, db_manager: DatabaseManager):
        self.settings = settings
        self.db_manager = db_manager
        self.user_id = settings.database.user_id
        self.logger = get_database_logger_safe("sql_account_store")

    async def initialize(self) -> None:
        try:
            await self.db_manager.init(create_schema=self.settings.database.create_schema)
            async with self.db_manager.get_session() as session:
                existing = await session.get(User, self.user_id)
        except SQLAlchemyError as e:
            raise StoreFailureError("Account store initialization failed",
                                    operation="initialize", details={"error": str(e)}) from e

        if existing is None:
            if self.settings.account.seed_demo_data:
                snapshot = demo_snapshot(self.settings.account)
            else:
                snapshot = empty_snapshot(self.settings.account)
            await self.seed(*snapshot)
            self.logger.info("Account row created", user_id=self.user_id,
                             demo_data=self.settings.account.seed_demo_data)
        self.logger.info("SQL account store initialized", user_id=self.user_id)

    async def close(self) -> None:
        await self.db_manager.shutdown()

    async def get_account(self) -> Account:
        try:
            async with self.db_manager.get_session() as session:
                user = await session.get(User, self.user_id)
        except SQLAlchemyError as e:
            raise StoreFailureError("Failed to read account", operation="get_account",
                                    details={"error": str(e)}) from e
        if user is None:
            raise StoreFailureError("Account row missing", operation="get_account",
                                    details={"user_id": self.user_id})
        return Account(cash=user.cash, currency=user.currency, email=user.email,
                       version=user.version)

    async def get_positions(self) -> List[Position]:
        stmt = (
            select(PortfolioPosition)
            .where(PortfolioPosition.user_id == self.user_id, PortfolioPosition.quantity > 0)
            .order_by(PortfolioPosition.symbol)
        )
        try:
            async with self.db_manager.get_session() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise StoreFailureError("Failed to read positions", operation="get_positions",
                                    details={"error": str(e)}) from e
        return [_to_position(row) for row in rows]

    async def get_position(self, symbol: str) -> Optional[Position]:
        stmt = select(PortfolioPosition).where(
            PortfolioPosition.user_id == self.user_id,
            PortfolioPosition.symbol == symbol.upper(),
        )
        try:
            async with self.db_manager.get_session() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreFailureError("Failed to read position", operation="get_position",
                                    details={"symbol": symbol, "error": str(e)}) from e
        if row is None or row.quantity <= 0:
            return None
        return _to_position(row)

    async def list_trades(self, limit: Optional[int] = None) -> List[Trade]:
        stmt = (
            select(TradeRecord)
            .where(TradeRecord.user_id == self.user_id)
            .order_by(TradeRecord.timestamp.desc(), TradeRecord.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self.db_manager.get_session() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise StoreFailureError("Failed to read trades", operation="list_trades",
                                    details={"error": str(e)}) from e
        return [_to_trade(row) for row in rows]

    async def apply_execution(self, execution: Execution, expected_version: int) -> Trade:
        symbol = execution.symbol
        try:
            async with self.db_manager.get_session() as session:
                async with session.begin():
                    result = await session.execute(
                        update(User)
                        .where(User.id == self.user_id, User.version == expected_version)
                        .values(cash=execution.account.cash, version=expected_version + 1)
                    )
                    if result.rowcount != 1:
                        raise ConcurrentModificationError(
                            "Account changed since it was read",
                            expected_version=expected_version,
                        )

                    existing = (await session.execute(
                        select(PortfolioPosition).where(
                            PortfolioPosition.user_id == self.user_id,
                            PortfolioPosition.symbol == symbol,
                        )
                    )).scalar_one_or_none()
                    if execution.position is None:
                        if existing is not None:
                            await session.delete(existing)
                    elif existing is None:
                        session.add(PortfolioPosition(
                            user_id=self.user_id,
                            symbol=symbol,
                            quantity=execution.position.quantity,
                            average_price=execution.position.average_price,
                        ))
                    else:
                        existing.quantity = execution.position.quantity
                        existing.average_price = execution.position.average_price

                    record = TradeRecord(
                        user_id=self.user_id,
                        symbol=symbol,
                        type=execution.trade.side.value,
                        price=execution.trade.price,
                        quantity=execution.trade.quantity,
                        fee=execution.trade.fee,
                        timestamp=execution.trade.timestamp,
                    )
                    session.add(record)
                    await session.flush()
                    trade_id = record.id
        except SQLAlchemyError as e:
            self.logger.error("Execution write failed; transaction rolled back",
                              symbol=symbol, error=str(e))
            raise StoreFailureError("Failed to apply execution", operation="apply_execution",
                                    details={"symbol": symbol, "error": str(e)}) from e

        self.logger.debug("Execution applied", symbol=symbol, trade_id=trade_id,
                          version=expected_version + 1)
        return execution.trade.model_copy(update={"id": trade_id})

    async def seed(
        self,
        account: Account,
        positions: Iterable[Position] = (),
        trades: Iterable[Trade] = (),
    ) -> None:
        try:
            async with self.db_manager.get_session() as session:
                async with session.begin():
                    await session.execute(delete(TradeRecord).where(TradeRecord.user_id == self.user_id))
                    await session.execute(
                        delete(PortfolioPosition).where(PortfolioPosition.user_id == self.user_id)
                    )
                    user = await session.get(User, self.user_id)
                    if user is None:
                        session.add(User(
                            id=self.user_id,
                            email=account.email,
                            cash=account.cash,
                            currency=account.currency,
                            version=account.version,
                        ))
                    else:
                        user.email = account.email
                        user.cash = account.cash
                        user.currency = account.currency
                        user.version = user.version + 1
                    # Parent row must exist before children reference it
                    await session.flush()
                    for position in positions:
                        if position.quantity > 0:
                            session.add(PortfolioPosition(
                                user_id=self.user_id,
                                symbol=position.symbol,
                                quantity=position.quantity,
                                average_price=position.average_price,
                            ))
                    for trade in trades:
                        session.add(TradeRecord(
                            user_id=self.user_id,
                            symbol=trade.symbol,
                            type=trade.side.value,
                            price=trade.price,
                            quantity=trade.quantity,
                            fee=trade.fee,
                            timestamp=trade.timestamp,
                        ))
        except SQLAlchemyError as e:
            raise StoreFailureError("Failed to seed account store", operation="seed",
                                    details={"error": str(e)}) from e
