"""Credit deduction for accepted assistant replies."""

import asyncio
import logging
from typing import Optional

from memory.store import SessionStore, PersistenceError
from schemas.session import UsageAccount

logger = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """Whitespace token count used as the credit cost of a reply."""
    return len(text.split())


class UsageAccountant:
    """Deducts reply costs from a user's persisted credit balance."""

    def __init__(self, store: SessionStore, account: Optional[UsageAccount] = None):
        """
        Initialize accountant.

        Args:
            store: Persistence collaborator owning the balance
            account: In-memory mirror of the balance (None disables charging)
        """
        self.store = store
        self.account = account
        self._lock = asyncio.Lock()

    async def charge(self, text: str) -> bool:
        """
        Deduct the estimated cost of ``text``.

        The in-memory balance only changes after the persisted write succeeds.

        Returns:
            True if the deduction was persisted
        """
        if self.account is None:
            logger.debug("No usage account attached; skipping charge")
            return False

        cost = estimate_tokens(text)
        async with self._lock:
            new_balance = self.account.credits_remaining - cost
            try:
                updated = await asyncio.to_thread(
                    self.store.update_user_credits, self.account.user_id, new_balance
                )
            except PersistenceError as e:
                logger.error(f"Failed to update user credits: {e}")
                return False

            if updated is False:
                logger.error(f"Credit update rejected for user {self.account.user_id}")
                return False

            self.account = self.account.model_copy(update={"credits_remaining": new_balance})
            logger.info(f"Charged {cost} credits; {new_balance} remaining")
            return True
