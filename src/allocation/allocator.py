"""
Fund allocators: move capital between the shadow pool and system accounts.

**Conceptual**: The portfolio keeps two accounts of its own. The master ledger
mirrors every trade made by the fleet. The shadow ledger (a clone of the master
taken at preparation) is the pool of unallocated capital. An allocator is the
only component that moves cash between the shadow pool and the systems'
sub-accounts. It is called once per tick, before the portfolio decides which
systems run, with:
  - the systems selected for the date,
  - the systems currently running (in execution order).

**Conservation**: every transfer is a withdrawal from one bound account and a
deposit of the same amount into another on the same date. Allocators never
create or destroy cash, which keeps
    shadow cash + sum(system cash + system holdings)
equal to the initial capital plus realized trading P&L.
"""

import logging
from typing import Optional, Sequence

from src.data.calendar import Query
from src.execution.ledger import TradeManager
from src.strategies.system import System
from src.utils.time import to_timestamp

logger = logging.getLogger(__name__)


class AllocationError(RuntimeError):
    """Raised when an allocator is used without bound ledgers."""
    pass


class AllocateFunds:
    """
    Base allocator: ledger binding, transfers, reset/clone plumbing.

    Subclasses implement `_allocate(date, selected, running)` and override
    `clone()` to copy their parameters.
    """

    name = "AF_Base"

    def __init__(self):
        self._master: Optional[TradeManager] = None
        self._shadow: Optional[TradeManager] = None
        self._query: Optional[Query] = None

    @property
    def master_ledger(self) -> Optional[TradeManager]:
        return self._master

    @property
    def shadow_ledger(self) -> Optional[TradeManager]:
        return self._shadow

    @property
    def query(self) -> Optional[Query]:
        return self._query

    def bind(self, master: TradeManager, shadow: TradeManager) -> None:
        self._master = master
        self._shadow = shadow

    def bind_query(self, query: Optional[Query]) -> None:
        self._query = query

    def reset(self) -> None:
        """Clear per-run state. Bound ledgers and query are kept."""
        pass

    def clone(self) -> "AllocateFunds":
        """Copy of the configuration, unbound."""
        return type(self)()

    def allocate(self, date, selected: Sequence[System], running: Sequence[System]) -> None:
        """
        Adjust the capital of `selected` (and possibly `running`) systems for `date`.

        Raises:
            AllocationError: If no ledgers are bound.
        """
        if self._shadow is None or self._master is None:
            raise AllocationError(f"{self.name}: allocate() called before bind().")
        self._allocate(to_timestamp(date), list(selected), list(running))

    def _allocate(self, date, selected: list[System], running: list[System]) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def _fund(self, system: System, date, amount: float) -> float:
        """Move up to `amount` from the shadow pool into `system`'s account. Returns the amount moved."""
        amount = min(amount, self._shadow.current_cash())
        if amount <= 0:
            return 0.0
        self._shadow.withdraw(date, amount)
        system.ledger.deposit(date, amount)
        logger.debug("%s: funded %s with %.2f on %s", self.name, system.name, amount, date.date())
        return amount

    def _recall(self, system: System, date, amount: float) -> float:
        """Move up to `amount` of `system`'s free cash back to the shadow pool. Returns the amount moved."""
        amount = min(amount, system.ledger.current_cash())
        if amount <= 0:
            return 0.0
        system.ledger.withdraw(date, amount)
        self._shadow.deposit(date, amount)
        logger.debug("%s: recalled %.2f from %s on %s", self.name, amount, system.name, date.date())
        return amount


class FixedGrantAllocator(AllocateFunds):
    """
    Grants a fixed amount the first time a system is selected, nothing afterwards.

    If the shadow pool holds less than `amount`, the remainder is granted.

    Args:
        amount: Cash granted per system (> 0).
    """

    name = "AF_FixedGrant"

    def __init__(self, amount: float):
        super().__init__()
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        self.amount = amount
        self._granted: set = set()

    def reset(self) -> None:
        self._granted = set()

    def clone(self) -> "FixedGrantAllocator":
        return FixedGrantAllocator(self.amount)

    def _allocate(self, date, selected: list[System], running: list[System]) -> None:
        for system in selected:
            if system in self._granted:
                continue
            self._granted.add(system)
            self._fund(system, date, self.amount)


class EqualWeightAllocator(AllocateFunds):
    """
    Splits free capital equally among newly selected systems.

    **Per tick**:
      1. If `recycle_unselected`, running systems that were not selected give
         their free cash back to the shadow pool. Their holdings stay with them
         until their own strategy sells; the cash comes back on a later tick.
      2. Selected systems with no cash and no holdings are "new". The pool's
         cash times `max_fraction` is split equally among them.

    Args:
        max_fraction: Fraction of the shadow pool handed out per tick (0, 1].
        recycle_unselected: Recall cash from deselected running systems.
    """

    name = "AF_EqualWeight"

    def __init__(self, max_fraction: float = 1.0, recycle_unselected: bool = True):
        super().__init__()
        if not 0 < max_fraction <= 1:
            raise ValueError(f"max_fraction must be in (0, 1], got {max_fraction}")
        self.max_fraction = max_fraction
        self.recycle_unselected = recycle_unselected

    def clone(self) -> "EqualWeightAllocator":
        return EqualWeightAllocator(self.max_fraction, self.recycle_unselected)

    def _allocate(self, date, selected: list[System], running: list[System]) -> None:
        if self.recycle_unselected:
            selected_ids = {id(s) for s in selected}
            for system in running:
                if id(system) not in selected_ids:
                    self._recall(system, date, system.ledger.current_cash())

        new_systems = []
        seen = set()
        for system in selected:
            if id(system) in seen:
                continue
            seen.add(id(system))
            ledger = system.ledger
            if ledger.current_cash() <= 0 and ledger.position(system.tradable).quantity == 0:
                new_systems.append(system)

        if not new_systems:
            return

        budget = self._shadow.current_cash() * self.max_fraction
        share = budget / len(new_systems)
        if share <= self._shadow.precision:
            return
        for system in new_systems:
            self._fund(system, date, share)
