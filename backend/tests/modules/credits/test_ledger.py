"""Tests for the in-memory credit ledger."""

import asyncio
import threading

import pytest

from modules.credits.exceptions import (
    IdempotencyConflictError,
    InsufficientCreditsError,
    InvalidAmountError,
)
from modules.credits.interfaces import ICreditLedger
from modules.credits.models import LedgerReason
from modules.credits.service import CreditLedger
from shared.memory import MemoryStore


@pytest.fixture
def ledger():
    return CreditLedger(MemoryStore())


async def fund(ledger, user_id="user-1", amount=100, key="topup-1"):
    return await ledger.credit(user_id, amount, key)


class TestCreditLedger:
    def test_implements_interface(self, ledger):
        assert isinstance(ledger, ICreditLedger)

    @pytest.mark.asyncio
    async def test_new_user_has_zero_balance(self, ledger):
        account = await ledger.get_balance("nobody")
        assert account.balance == 0
        assert account.updated_at is None

    @pytest.mark.asyncio
    async def test_credit_then_debit(self, ledger):
        await fund(ledger)
        entry = await ledger.debit("user-1", 30, "job-1:debit", reference_id="job-1")

        assert entry.delta == -30
        assert entry.reason == LedgerReason.JOB_DEBIT
        assert entry.balance_after == 70
        assert entry.reference_id == "job-1"
        assert (await ledger.get_balance("user-1")).balance == 70

    @pytest.mark.asyncio
    async def test_debit_to_exactly_zero(self, ledger):
        await fund(ledger, amount=20)
        await ledger.debit("user-1", 20, "job-1:debit")
        assert (await ledger.get_balance("user-1")).balance == 0

    @pytest.mark.asyncio
    async def test_insufficient_credits_leaves_no_trace(self, ledger):
        await fund(ledger, amount=10)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await ledger.debit("user-1", 11, "job-1:debit")

        assert exc_info.value.details["required"] == 11
        assert exc_info.value.details["available"] == 10
        assert exc_info.value.details["shortfall"] == 1
        assert (await ledger.get_balance("user-1")).balance == 10
        assert await ledger.get_entry("job-1:debit") is None

    @pytest.mark.asyncio
    async def test_replayed_key_applies_once(self, ledger):
        first = await fund(ledger, amount=50, key="order-1")
        second = await fund(ledger, amount=50, key="order-1")

        assert second.id == first.id
        assert (await ledger.get_balance("user-1")).balance == 50
        assert len(await ledger.get_entries("user-1")) == 1

    @pytest.mark.asyncio
    async def test_key_reused_with_different_amount(self, ledger):
        await fund(ledger, amount=50, key="order-1")
        with pytest.raises(IdempotencyConflictError):
            await fund(ledger, amount=60, key="order-1")

    @pytest.mark.asyncio
    async def test_key_reused_by_another_user(self, ledger):
        await fund(ledger, user_id="user-1", key="order-1")
        with pytest.raises(IdempotencyConflictError):
            await fund(ledger, user_id="user-2", key="order-1")

    @pytest.mark.asyncio
    async def test_key_reused_for_a_different_reason(self, ledger):
        await fund(ledger, amount=5, key="job-1")
        with pytest.raises(IdempotencyConflictError):
            await ledger.credit("user-1", 5, "job-1", reason=LedgerReason.JOB_REFUND)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, 1.5, True, "10"])
    async def test_rejects_invalid_amounts(self, ledger, amount):
        with pytest.raises(InvalidAmountError):
            await ledger.debit("user-1", amount, "k")
        with pytest.raises(InvalidAmountError):
            await ledger.credit("user-1", amount, "k")

    @pytest.mark.asyncio
    async def test_credit_rejects_debit_reason(self, ledger):
        with pytest.raises(ValueError):
            await ledger.credit("user-1", 5, "k", reason=LedgerReason.JOB_DEBIT)

    @pytest.mark.asyncio
    async def test_entries_newest_first_and_paginated(self, ledger):
        await fund(ledger, amount=100, key="a")
        await ledger.debit("user-1", 10, "b")
        await ledger.debit("user-1", 20, "c")

        entries = await ledger.get_entries("user-1")
        assert [e.idempotency_key for e in entries] == ["c", "b", "a"]
        page = await ledger.get_entries("user-1", limit=1, offset=1)
        assert [e.idempotency_key for e in page] == ["b"]

    @pytest.mark.asyncio
    async def test_balance_equals_sum_of_entries(self, ledger):
        await fund(ledger, amount=100, key="a")
        await ledger.debit("user-1", 7, "b")
        await ledger.credit("user-1", 7, "c", reason=LedgerReason.JOB_REFUND)
        await ledger.debit("user-1", 40, "d")
        with pytest.raises(InsufficientCreditsError):
            await ledger.debit("user-1", 1000, "e")

        entries = await ledger.get_entries("user-1")
        balance = (await ledger.get_balance("user-1")).balance
        assert balance == sum(e.delta for e in entries) == 60
        assert entries[0].balance_after == balance

    def test_apply_entry_joins_outer_transaction(self):
        store = MemoryStore()
        ledger = CreditLedger(store)

        with pytest.raises(RuntimeError):
            with store.transaction():
                ledger.apply_entry("user-1", 10, LedgerReason.PAYMENT_CREDIT, "order-1")
                raise RuntimeError("settlement failed")

        assert store.get("ledger_entries", "order-1") is None
        assert store.get("credit_accounts", "user-1") is None


class TestConcurrency:
    def test_threads_cannot_overdraw(self):
        ledger = CreditLedger(MemoryStore())
        asyncio.run(ledger.credit("user-1", 50, "seed"))
        failures = []

        def spend(worker: int):
            for i in range(20):
                try:
                    asyncio.run(ledger.debit("user-1", 1, f"w{worker}-{i}"))
                except InsufficientCreditsError:
                    failures.append(1)

        threads = [threading.Thread(target=spend, args=(n,)) for n in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        balance = asyncio.run(ledger.get_balance("user-1")).balance
        assert balance == 0
        assert len(failures) == 100 - 50

    @pytest.mark.asyncio
    async def test_concurrent_replays_apply_once(self):
        ledger = CreditLedger(MemoryStore())
        await asyncio.gather(*(ledger.credit("user-1", 25, "order-1") for _ in range(10)))
        assert (await ledger.get_balance("user-1")).balance == 25
