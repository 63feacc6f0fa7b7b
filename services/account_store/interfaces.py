from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from core.trading.models import Account, Execution, Position, Trade


class AccountStore(ABC):
    """Abstract store for the single account, its positions and trade ledger.

    Implementations own all persisted state. The execution engine only reads
    snapshots from here and hands back an Execution to apply.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (schema, account row, demo seed)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        pass

    @abstractmethod
    async def get_account(self) -> Account:
        pass

    @abstractmethod
    async def get_positions(self) -> List[Position]:
        """Active positions (quantity > 0), ordered by symbol."""
        pass

    @abstractmethod
    async def get_position(self, symbol: str) -> Optional[Position]:
        pass

    @abstractmethod
    async def list_trades(self, limit: Optional[int] = None) -> List[Trade]:
        """Trades ordered most recent first."""
        pass

    @abstractmethod
    async def apply_execution(self, execution: Execution, expected_version: int) -> Trade:
        """Write cash, position and trade as one unit.

        Raises ConcurrentModificationError (no mutation) when the stored
        account version differs from `expected_version`, and
        StoreFailureError when the backend fails. Returns the stored trade
        with its assigned id.
        """
        pass

    @abstractmethod
    async def seed(
        self,
        account: Account,
        positions: Iterable[Position] = (),
        trades: Iterable[Trade] = (),
    ) -> None:
        """Replace all state with the given snapshot."""
        pass
