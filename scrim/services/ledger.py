"""Virtual-currency ledger: per-user balance with an append-only transaction log.

Balances only move through ``credit`` and ``debit``. A debit is a conditional
``UPDATE ... WHERE balance >= amount`` so two concurrent debits can never take an
account below zero. Neither method commits: callers own the transaction so a
ledger movement and the record that caused it (a bet, a reward grant) land together.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scrim.errors import InsufficientFunds
from scrim.models import LedgerAccount, LedgerTransaction
from scrim.models.base import utcnow

logger = logging.getLogger("scrim.ledger")


class Ledger:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _find_account(self, user_id: str) -> Optional[LedgerAccount]:
        result = await self.session.execute(select(LedgerAccount).where(LedgerAccount.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_account(self, user_id: str) -> LedgerAccount:
        """Return the user's account, creating it with balance 0 on first touch."""
        account = await self._find_account(user_id)
        if account:
            return account
        account = LedgerAccount(user_id=user_id, balance=0)
        self.session.add(account)
        await self.session.flush()  # user_id is unique: a concurrent creation fails here
        return account

    async def balance(self, user_id: str) -> int:
        result = await self.session.execute(select(LedgerAccount.balance).where(LedgerAccount.user_id == user_id))
        return result.scalar_one_or_none() or 0

    async def history(self, user_id: str) -> list[LedgerTransaction]:
        """Transactions for the user, oldest first."""
        result = await self.session.execute(
            select(LedgerTransaction)
            .join(LedgerAccount, LedgerTransaction.account_id == LedgerAccount.id)
            .where(LedgerAccount.user_id == user_id)
            .order_by(LedgerTransaction.id)
        )
        return list(result.scalars().all())

    async def accounts(self) -> list[LedgerAccount]:
        result = await self.session.execute(select(LedgerAccount).order_by(LedgerAccount.balance.desc()))
        return list(result.scalars().all())

    async def credit(self, user_id: str, amount: int, description: str) -> LedgerTransaction:
        if amount <= 0:
            raise ValueError("Credit amount must be positive")
        account = await self.get_account(user_id)
        await self.session.execute(
            update(LedgerAccount)
            .where(LedgerAccount.id == account.id)
            .values(balance=LedgerAccount.balance + amount)
            .execution_options(synchronize_session="fetch")
        )
        return self._append(account, amount, description)

    async def debit(self, user_id: str, amount: int, description: str) -> LedgerTransaction:
        """Withdraw ``amount``. Raises InsufficientFunds rather than going negative."""
        if amount <= 0:
            raise ValueError("Debit amount must be positive")
        account = await self.get_account(user_id)
        result = await self.session.execute(
            update(LedgerAccount)
            .where(LedgerAccount.id == account.id, LedgerAccount.balance >= amount)
            .values(balance=LedgerAccount.balance - amount)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise InsufficientFunds(await self.balance(user_id), amount)
        return self._append(account, -amount, description)

    async def adjust(self, user_id: str, action: str, amount: int) -> LedgerAccount:
        """Admin correction: ``add`` or ``remove`` points. Commits."""
        if action == "add":
            await self.credit(user_id, amount, "admin")
        elif action == "remove":
            await self.debit(user_id, amount, "admin")
        else:
            raise ValueError(f"Unknown ledger action: {action}")
        await self.session.commit()
        logger.info("Admin ledger %s of %d for user %s", action, amount, user_id)
        return await self.get_account(user_id)

    def _append(self, account: LedgerAccount, amount: int, description: str) -> LedgerTransaction:
        tx = LedgerTransaction(account_id=account.id, amount=amount, date=utcnow(), description=description)
        self.session.add(tx)
        return tx
