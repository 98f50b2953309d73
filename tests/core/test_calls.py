# tests/core/test_calls.py
"""
Тесты для реестра вызовов.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pydantic import ValidationError

from src.common.constants import ActorRole, CallStatus
from src.common.exceptions import InvalidInputError, InvalidTransitionError, NotFoundError
from src.core.calls import Call, CallRegistry, CallStateMachine
from src.infra.memory_store import MemoryDocumentStore


class TestCallModel:
    """Тесты для модели Call."""

    def test_defaults(self, sample_call: Call) -> None:
        assert sample_call.status is CallStatus.OPEN
        assert sample_call.initiator_role is ActorRole.CUSTOMER
        assert sample_call.transaction_id is None
        assert sample_call.has_destination is True

    def test_destination_requires_both_coordinates(self, sample_call_data: dict[str, Any]) -> None:
        with pytest.raises(ValidationError):
            Call(**{**sample_call_data, "dest_lon": None})

    def test_transaction_id_requires_accepted_status(self, sample_call_data: dict[str, Any]) -> None:
        with pytest.raises(ValidationError):
            Call(**{**sample_call_data, "transaction_id": "tx-1", "accepted_by": "driver-1"})

    def test_accepted_requires_transaction_id(self, sample_call_data: dict[str, Any]) -> None:
        with pytest.raises(ValidationError):
            Call(**{**sample_call_data, "status": CallStatus.ACCEPTED, "accepted_by": "driver-1"})

    @pytest.mark.parametrize("price", [0, -5])
    def test_non_positive_price(self, sample_call_data: dict[str, Any], price: float) -> None:
        with pytest.raises(ValidationError):
            Call(**{**sample_call_data, "offer_price": price})


class TestCallStateMachine:
    """Тесты для CallStateMachine."""

    @pytest.mark.parametrize(
        ("current", "new", "allowed"),
        [
            ("Open", "Accepted", True),
            ("Open", "Cancelled", True),
            ("Accepted", "Completed", True),
            ("Accepted", "Cancelled", True),
            ("Open", "Completed", False),
            ("Completed", "Cancelled", False),
            ("Cancelled", "Open", False),
            ("Unknown", "Open", False),
        ],
    )
    def test_transitions(self, current: str, new: str, allowed: bool) -> None:
        assert CallStateMachine.can_transition(current, new) is allowed


class TestOpenCalls:
    """Тесты создания и листинга вызовов."""

    @pytest.mark.asyncio
    async def test_open_call_writes_document(
        self,
        calls: CallRegistry,
        memory_store: MemoryDocumentStore,
        sample_call: Call,
    ) -> None:
        await calls.open_call(sample_call)

        stored = await memory_store.get("calls", "call-1")
        assert stored["status"] == "Open"
        assert stored["offer_price"] == 50.0
        assert await calls.get_call("call-1") == sample_call

    @pytest.mark.asyncio
    async def test_open_call_requires_customer(self, calls: CallRegistry, sample_call_data: dict[str, Any]) -> None:
        call = Call(**{**sample_call_data, "initiator_role": ActorRole.DRIVER})

        with pytest.raises(InvalidInputError):
            await calls.open_call(call)

    @pytest.mark.asyncio
    async def test_list_excludes_stale_open_calls(
        self,
        calls: CallRegistry,
        clock,
        base_time,
        sample_call_data: dict[str, Any],
    ) -> None:
        """Вызов старше 12 часов не попадает в листинг, даже если он Open."""
        clock.advance(hours=13)
        await calls.open_call(Call(**sample_call_data))
        await calls.open_call(Call(**{**sample_call_data, "call_id": "call-2", "created_at": clock()}))

        async with await calls.list_open_calls() as listing:
            snapshot = await listing.get(timeout=1)

        assert [call.call_id for call in snapshot] == ["call-2"]

    @pytest.mark.asyncio
    async def test_list_excludes_accepted(
        self,
        calls: CallRegistry,
        sample_call: Call,
    ) -> None:
        await calls.open_call(sample_call)

        async with await calls.list_open_calls() as listing:
            assert len(await listing.get(timeout=1)) == 1
            await calls.claim_call("call-1", "driver-1", "tx-1")
            assert await listing.get(timeout=1) == []

    @pytest.mark.asyncio
    async def test_list_sorted_by_creation(
        self,
        calls: CallRegistry,
        clock,
        sample_call_data: dict[str, Any],
    ) -> None:
        clock.advance(minutes=5)
        await calls.open_call(Call(**{**sample_call_data, "call_id": "newer", "created_at": clock()}))
        await calls.open_call(Call(**sample_call_data))

        async with await calls.list_open_calls() as listing:
            snapshot = await listing.get(timeout=1)

        assert [call.call_id for call in snapshot] == ["call-1", "newer"]


class TestClaimCall:
    """Тесты захвата вызова."""

    @pytest.mark.asyncio
    async def test_claim_open_call(self, calls: CallRegistry, sample_call: Call) -> None:
        await calls.open_call(sample_call)

        assert await calls.claim_call("call-1", "driver-1", "tx-1") is True

        call = await calls.get_call("call-1")
        assert call.status is CallStatus.ACCEPTED
        assert call.accepted_by == "driver-1"
        assert call.transaction_id == "tx-1"

    @pytest.mark.asyncio
    async def test_claim_lost(self, calls: CallRegistry, sample_call: Call) -> None:
        await calls.open_call(sample_call)
        await calls.claim_call("call-1", "driver-1", "tx-1")

        assert await calls.claim_call("call-1", "driver-2", "tx-2") is False
        assert (await calls.get_call("call-1")).accepted_by == "driver-1"

    @pytest.mark.asyncio
    async def test_claim_missing_call(self, calls: CallRegistry) -> None:
        assert await calls.claim_call("missing", "driver-1", "tx-1") is False

    @pytest.mark.asyncio
    async def test_concurrent_atomic_claims_single_winner(
        self,
        calls: CallRegistry,
        sample_call: Call,
    ) -> None:
        """С атомарным захватом ровно один водитель получает True."""
        await calls.open_call(sample_call)

        results = await asyncio.gather(
            calls.claim_call("call-1", "driver-1", "tx-1"),
            calls.claim_call("call-1", "driver-2", "tx-2"),
        )

        assert sorted(results) == [False, True]
        call = await calls.get_call("call-1")
        winner = "driver-1" if results[0] else "driver-2"
        assert call.status is CallStatus.ACCEPTED
        assert call.accepted_by == winner

    @pytest.mark.asyncio
    async def test_concurrent_legacy_claims_consistent(
        self,
        memory_store: MemoryDocumentStore,
        clock,
        sample_call: Call,
    ) -> None:
        """Чтение-затем-запись: оба могут победить, но вызов остаётся согласованным."""
        registry = CallRegistry(memory_store, clock=clock, staleness_hours=12, atomic_claims=False)
        await registry.open_call(sample_call)

        results = await asyncio.gather(
            registry.claim_call("call-1", "driver-1", "tx-1"),
            registry.claim_call("call-1", "driver-2", "tx-2"),
        )

        assert any(results)
        call = await registry.get_call("call-1")
        assert call.status is CallStatus.ACCEPTED
        assert (call.accepted_by, call.transaction_id) in {("driver-1", "tx-1"), ("driver-2", "tx-2")}


class TestCallLifecycle:
    """Тесты отмены, завершения и поиска активного вызова."""

    @pytest.mark.asyncio
    async def test_cancel_clears_transaction(self, calls: CallRegistry, sample_call: Call) -> None:
        await calls.open_call(sample_call)
        await calls.claim_call("call-1", "driver-1", "tx-1")

        await calls.cancel_call("call-1")

        call = await calls.get_call("call-1")
        assert call.status is CallStatus.CANCELLED
        assert call.transaction_id is None

    @pytest.mark.asyncio
    async def test_cancel_idempotent(self, calls: CallRegistry, sample_call: Call) -> None:
        await calls.open_call(sample_call)

        await calls.cancel_call("call-1")
        await calls.cancel_call("call-1")
        await calls.cancel_call("missing")

        assert (await calls.get_call("call-1")).status is CallStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_completed_is_noop(self, calls: CallRegistry, sample_call: Call) -> None:
        await calls.open_call(sample_call)
        await calls.claim_call("call-1", "driver-1", "tx-1")
        await calls.complete_call("call-1")

        await calls.cancel_call("call-1")

        assert (await calls.get_call("call-1")).status is CallStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_complete_requires_accepted(self, calls: CallRegistry, sample_call: Call) -> None:
        await calls.open_call(sample_call)

        with pytest.raises(InvalidTransitionError):
            await calls.complete_call("call-1")
        with pytest.raises(NotFoundError):
            await calls.complete_call("missing")

    @pytest.mark.asyncio
    async def test_observe_call(self, calls: CallRegistry, sample_call: Call) -> None:
        """Точечная подписка видит все статусы, без фильтра листинга."""
        await calls.open_call(sample_call)

        async with await calls.observe_call("call-1") as observed:
            assert (await observed.get(timeout=1)).status is CallStatus.OPEN
            await calls.cancel_call("call-1")
            assert (await observed.get(timeout=1)).status is CallStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_find_active_call(self, calls: CallRegistry, sample_call: Call) -> None:
        await calls.open_call(sample_call)
        assert (await calls.find_active_call("customer-1", ActorRole.CUSTOMER)).call_id == "call-1"
        assert await calls.find_active_call("driver-1", ActorRole.DRIVER) is None

        await calls.claim_call("call-1", "driver-1", "tx-1")
        assert (await calls.find_active_call("driver-1", ActorRole.DRIVER)).call_id == "call-1"

        await calls.cancel_call("call-1")
        assert await calls.find_active_call("customer-1", ActorRole.CUSTOMER) is None
