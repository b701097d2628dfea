"""Credit ledger gating every paid operation."""

from threading import Lock
from typing import Dict, Optional

from ..utils.logger import get_logger
from ..utils.storage import KeyValueStore, MemoryStore

logger = get_logger(__name__)

BALANCE_KEY = "credits"

DEFAULT_COSTS = {"batch": 5, "video": 10, "default": 1}


class CreditLedger:
    """
    Usage balance plus a fixed cost table.

    The balance only changes through ``deduct`` and ``add``. Deduction is a
    single check-then-subtract under a lock, so it either succeeds in full or
    leaves the balance untouched.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        costs: Optional[Dict[str, int]] = None,
        initial_balance: int = 50,
    ):
        self.store = store if store is not None else MemoryStore()
        self.costs = {**DEFAULT_COSTS, **(costs or {})}
        self._lock = Lock()

        if self.store.get(BALANCE_KEY) is None:
            self.store.set(BALANCE_KEY, initial_balance)

    def balance(self) -> int:
        return int(self.store.get(BALANCE_KEY, 0))

    def cost_for(self, category: str) -> int:
        """
        Cost of an operation category.

        Batch categories cost more than single edits and video categories cost
        the most; everything else pays the default.
        """
        category = str(getattr(category, "value", category)).upper()
        if "BATCH" in category:
            return self.costs["batch"]
        if "VIDEO" in category:
            return self.costs["video"]
        return self.costs["default"]

    def can_afford(self, amount: int) -> bool:
        return self.balance() >= amount

    def deduct(self, amount: int) -> bool:
        """
        Subtract ``amount`` if the balance covers it.

        Returns:
            True if deducted, False (and no change) if insufficient
        """
        if amount < 0:
            raise ValueError("Deduction amount must not be negative")

        with self._lock:
            balance = self.balance()
            if balance < amount:
                logger.warning(
                    "Credit deduction rejected",
                    extra={"amount": amount, "balance": balance}
                )
                return False
            self.store.set(BALANCE_KEY, balance - amount)

        logger.info(
            f"Deducted {amount} credits",
            extra={"amount": amount, "balance": balance - amount}
        )
        return True

    def add(self, amount: int) -> int:
        """Credit ``amount`` to the balance and return the new balance."""
        if amount < 0:
            raise ValueError("Credit amount must not be negative")

        with self._lock:
            balance = self.balance() + amount
            self.store.set(BALANCE_KEY, balance)

        logger.info(f"Added {amount} credits", extra={"amount": amount, "balance": balance})
        return balance
