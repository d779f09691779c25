"""Tests for the ledger: balances only move through credit and debit."""
import pytest

from scrim.errors import InsufficientFunds
from scrim.services.ledger import Ledger


@pytest.mark.asyncio
async def test_first_touch_creates_empty_account(session):
    ledger = Ledger(session)
    assert await ledger.balance("u1") == 0
    account = await ledger.get_account("u1")
    assert account.balance == 0
    assert account.user_id == "u1"


@pytest.mark.asyncio
async def test_credit_and_debit_append_transactions(session):
    ledger = Ledger(session)
    await ledger.credit("u1", 100, "dailyquiz | participation")
    await ledger.debit("u1", 30, "Bet | match 7")
    await session.commit()

    assert await ledger.balance("u1") == 70
    history = await ledger.history("u1")
    assert [(tx.amount, tx.description) for tx in history] == [
        (100, "dailyquiz | participation"),
        (-30, "Bet | match 7"),
    ]


@pytest.mark.asyncio
async def test_debit_never_goes_negative(session):
    ledger = Ledger(session)
    await ledger.credit("u1", 20, "admin")
    await session.commit()

    with pytest.raises(InsufficientFunds) as exc:
        await ledger.debit("u1", 21, "Bet | match 1")
    assert exc.value.balance == 20
    assert exc.value.amount == 21
    await session.rollback()

    assert await ledger.balance("u1") == 20
    assert len(await ledger.history("u1")) == 1


@pytest.mark.asyncio
async def test_non_positive_amounts_rejected(session):
    ledger = Ledger(session)
    with pytest.raises(ValueError):
        await ledger.credit("u1", 0, "admin")
    with pytest.raises(ValueError):
        await ledger.debit("u1", -5, "admin")


@pytest.mark.asyncio
async def test_admin_adjust(session):
    ledger = Ledger(session)
    account = await ledger.adjust("u1", "add", 50)
    assert account.balance == 50
    account = await ledger.adjust("u1", "remove", 20)
    assert account.balance == 30
    assert [tx.description for tx in await ledger.history("u1")] == ["admin", "admin"]

    with pytest.raises(InsufficientFunds):
        await ledger.adjust("u1", "remove", 31)
    with pytest.raises(ValueError):
        await ledger.adjust("u1", "steal", 1)


@pytest.mark.asyncio
async def test_concurrent_debits_cannot_overdraw(session_factory):
    async with session_factory() as s:
        await Ledger(s).credit("u1", 50, "admin")
        await s.commit()

    async with session_factory() as a, session_factory() as b:
        await Ledger(a).get_account("u1")
        await Ledger(b).get_account("u1")
        await Ledger(a).debit("u1", 40, "Bet | match 1")
        await a.commit()
        with pytest.raises(InsufficientFunds):
            await Ledger(b).debit("u1", 40, "Bet | match 2")

    async with session_factory() as s:
        assert await Ledger(s).balance("u1") == 10
