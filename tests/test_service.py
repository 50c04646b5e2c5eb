"""Integration tests: availability + admission + lifecycle through BookingService."""

import asyncio
import gc
import secrets
from datetime import datetime, timedelta
from itertools import count

import pytest

from tablebook.errors import (
    AdvanceWindowViolation,
    CapacityViolation,
    ConstraintViolation,
    FormatError,
    InvalidTransition,
    NotFoundError,
    SlotNoLongerAvailable,
)
from tablebook.schemas.booking_schema import BookingStatus
from tablebook.service import BookingService
from tablebook.storage.memory import InMemoryBookingStore
from tests.conftest import (
    DAY,
    RESTAURANT_ID,
    TOMORROW,
    make_booking,
    make_request,
    make_restaurant,
    make_table,
)


def _slot(slots, time):
    return next(s for s in slots if s.time == time)


class TestExampleScenarios:
    """One table (capacity 4), walked through book, re-query, cancel."""

    @pytest.fixture(autouse=True)
    def _one_table(self, store):
        store.add_table(make_table("t-1", capacity=4))

    @pytest.mark.asyncio
    async def test_free_table_is_available(self, service):
        slots = await service.get_availability(RESTAURANT_ID, DAY, party_size=2)
        slot = _slot(slots, "19:00")
        assert slot.available_tables == 1
        assert slot.is_available

    @pytest.mark.asyncio
    async def test_booking_blocks_overlapping_slots(self, service):
        await service.book_slot(make_request("19:00"))
        slots = await service.get_availability(RESTAURANT_ID, DAY, party_size=2)
        assert _slot(slots, "19:30").available_tables == 0
        assert _slot(slots, "17:30").available_tables == 0
        assert _slot(slots, "21:00").available_tables == 1

    @pytest.mark.asyncio
    async def test_second_booking_loses(self, service):
        await service.book_slot(make_request("19:00"))
        with pytest.raises(SlotNoLongerAvailable):
            await service.book_slot(make_request("19:30"))

    @pytest.mark.asyncio
    async def test_cancellation_frees_capacity(self, service):
        booking = await service.book_slot(make_request("19:00"))
        await service.change_status(booking.id, "confirm")
        await service.change_status(booking.id, "cancel", reason="Changed plans")
        slots = await service.get_availability(RESTAURANT_ID, DAY, party_size=2)
        assert _slot(slots, "19:30").available_tables == 1

    @pytest.mark.asyncio
    async def test_rebook_after_cancellation(self, service):
        booking = await service.book_slot(make_request("19:00"))
        await service.change_status(booking.id, "cancel")
        again = await service.book_slot(make_request("19:30"))
        assert again.time_slot == "19:30"

    @pytest.mark.asyncio
    async def test_advance_window_violation(self, store, clock):
        store.add_restaurant(make_restaurant(min_advance_booking_hours=48))
        service = BookingService(store, clock=clock)
        with pytest.raises(AdvanceWindowViolation):
            await service.book_slot(make_request(date=TOMORROW))

    @pytest.mark.asyncio
    async def test_confirm_cancelled_booking_fails(self, service):
        booking = await service.book_slot(make_request("19:00"))
        await service.change_status(booking.id, "cancel")
        with pytest.raises(InvalidTransition):
            await service.change_status(booking.id, "confirm")


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_bookings_only_one_wins(self, store, service):
        store.add_table(make_table("t-1", capacity=4))
        requests = [make_request(t) for t in ["18:00", "18:30", "19:00", "19:30", "19:00"]]
        results = await asyncio.gather(
            *(service.book_slot(r) for r in requests), return_exceptions=True,
        )
        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(r, SlotNoLongerAvailable) for r in losers)

    @pytest.mark.asyncio
    async def test_concurrent_bookings_on_different_tables(self, store, service):
        store.add_table(make_table("t-1"))
        store.add_table(make_table("t-2"))
        results = await asyncio.gather(
            service.book_slot(make_request("19:00", table_id="t-1")),
            service.book_slot(make_request("19:00", table_id="t-2")),
        )
        assert {b.table_id for b in results} == {"t-1", "t-2"}

    @pytest.mark.asyncio
    async def test_storage_constraint_surfaces_as_slot_lost(self, clock):
        class RacingStore(InMemoryBookingStore):
            async def insert_booking(self, booking):
                raise ConstraintViolation("overlap")

        racing = RacingStore()
        racing.add_restaurant(make_restaurant())
        racing.add_table(make_table("t-1"))
        service = BookingService(racing, clock=clock)
        with pytest.raises(SlotNoLongerAvailable):
            await service.book_slot(make_request())

    @pytest.mark.asyncio
    async def test_lock_alone_prevents_double_booking(self, clock):
        class UnguardedStore(InMemoryBookingStore):
            async def insert_booking(self, booking):
                await asyncio.sleep(0)
                self._bookings[booking.id] = booking.model_copy()
                return booking.model_copy()

        store = UnguardedStore()
        store.add_restaurant(make_restaurant())
        store.add_table(make_table("t-1"))
        service = BookingService(store, clock=clock)
        requests = [make_request(t) for t in ["18:30", "19:00", "19:30"]]
        results = await asyncio.gather(
            *(service.book_slot(r) for r in requests), return_exceptions=True,
        )
        assert len([r for r in results if not isinstance(r, Exception)]) == 1
        assert len(await store.list_bookings(RESTAURANT_ID, DAY)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_dates_get_distinct_codes(self, store, service, monkeypatch):
        store.add_table(make_table("t-1"))
        calls = count()
        # Both admissions draw AAAAAA; every later draw is B
        monkeypatch.setattr(secrets, "choice", lambda alphabet: "A" if next(calls) < 12 else "B")
        results = await asyncio.gather(
            service.book_slot(make_request("19:00", date=DAY)),
            service.book_slot(make_request("19:00", date=TOMORROW)),
        )
        assert {b.confirmation_code for b in results} == {"AAAAAA", "BBBBBB"}


class TestAvailabilityReads:
    @pytest.mark.asyncio
    async def test_idempotent_reads(self, store, service):
        store.add_table(make_table("t-1"))
        store.add_table(make_table("t-2", capacity=6))
        await service.book_slot(make_request("19:00"))
        first = await service.get_availability(RESTAURANT_ID, DAY, party_size=2)
        second = await service.get_availability(RESTAURANT_ID, DAY, party_size=2)
        assert first == second

    @pytest.mark.asyncio
    async def test_cached_view_invalidated_by_mutations(self, store, service):
        store.add_table(make_table("t-1"))
        before = await service.get_availability(RESTAURANT_ID, DAY, party_size=2)
        assert _slot(before, "19:30").is_available

        booking = await service.book_slot(make_request("19:00"))
        booked = await service.get_availability(RESTAURANT_ID, DAY, party_size=2)
        assert not _slot(booked, "19:30").is_available

        await service.change_status(booking.id, "cancel")
        freed = await service.get_availability(RESTAURANT_ID, DAY, party_size=2)
        assert _slot(freed, "19:30").is_available

    @pytest.mark.asyncio
    async def test_table_edits_reflected_between_reads(self, store, service):
        store.add_table(make_table("t-1"))
        first = _slot(await service.get_availability(RESTAURANT_ID, DAY, party_size=2), "19:00")
        assert first.free_table_ids == ["t-1"]

        store.add_table(make_table("t-1", is_active=False))
        store.add_table(make_table("t-9", capacity=8))
        second = _slot(await service.get_availability(RESTAURANT_ID, DAY, party_size=2), "19:00")
        assert second.total_tables == 1
        assert second.free_table_ids == ["t-9"]

    @pytest.mark.asyncio
    async def test_booking_written_elsewhere_reflected(self, store, service):
        store.add_table(make_table("t-1"))
        await service.get_availability(RESTAURANT_ID, DAY)
        await store.insert_booking(make_booking("19:00", "t-1", booking_id="elsewhere"))
        slot = _slot(await service.get_availability(RESTAURANT_ID, DAY), "19:00")
        assert slot.available_tables == 0

    @pytest.mark.asyncio
    async def test_restaurant_edit_reflected(self, store, service):
        from tablebook.schemas.restaurant_schema import WorkingHours

        store.add_table(make_table("t-1"))
        assert await service.get_availability(RESTAURANT_ID, DAY)
        store.add_restaurant(make_restaurant(
            hours=WorkingHours.every_day("12:00", "23:00", closed=("wednesday",)),
        ))
        assert await service.get_availability(RESTAURANT_ID, DAY) == []

    @pytest.mark.asyncio
    async def test_capacity_bounds(self, store, service):
        for i in range(3):
            store.add_table(make_table(f"t-{i}"))
        await service.book_slot(make_request("19:00", table_id="t-0"))
        for slot in await service.get_availability(RESTAURANT_ID, DAY):
            assert 0 <= slot.available_tables <= slot.total_tables == 3

    @pytest.mark.asyncio
    async def test_closed_day_has_no_slots(self, store, clock):
        from tablebook.schemas.restaurant_schema import WorkingHours

        store.add_restaurant(make_restaurant(
            hours=WorkingHours.every_day("12:00", "23:00", closed=("wednesday",)),
        ))
        store.add_table(make_table("t-1"))
        service = BookingService(store, clock=clock)
        assert await service.get_availability(RESTAURANT_ID, DAY) == []

    @pytest.mark.asyncio
    async def test_invalid_party_size(self, service):
        with pytest.raises(CapacityViolation):
            await service.get_availability(RESTAURANT_ID, DAY, party_size=0)

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, service):
        with pytest.raises(NotFoundError):
            await service.get_availability("missing", DAY)

    @pytest.mark.asyncio
    async def test_returned_slots_are_copies(self, store, service):
        store.add_table(make_table("t-1"))
        slots = await service.get_availability(RESTAURANT_ID, DAY)
        slots[0].available_tables = 99
        fresh = await service.get_availability(RESTAURANT_ID, DAY)
        assert fresh[0].available_tables == 1


class TestHolds:
    @pytest.fixture(autouse=True)
    def _two_tables(self, store):
        store.add_table(make_table("t-big", capacity=6))
        store.add_table(make_table("t-small", capacity=2))

    @pytest.mark.asyncio
    async def test_hold_picks_smallest_fitting_table(self, service):
        hold = await service.reserve_slot(RESTAURANT_ID, DAY, "19:00", party_size=2)
        assert hold["table_id"] == "t-small"
        assert hold["expires_in"] == 600
        assert hold["reservation_token"].startswith("HOLD-")

    @pytest.mark.asyncio
    async def test_held_table_hidden_from_others(self, service):
        await service.reserve_slot(RESTAURANT_ID, DAY, "19:00", party_size=2)
        slot = _slot(await service.get_availability(RESTAURANT_ID, DAY, party_size=2), "19:00")
        assert slot.free_table_ids == ["t-big"]

    @pytest.mark.asyncio
    async def test_other_customer_cannot_book_held_table(self, service):
        await service.reserve_slot(RESTAURANT_ID, DAY, "19:00", party_size=2)
        with pytest.raises(SlotNoLongerAvailable):
            await service.book_slot(make_request("19:00", table_id="t-small"))

    @pytest.mark.asyncio
    async def test_holder_can_book_and_hold_is_consumed(self, service):
        hold = await service.reserve_slot(RESTAURANT_ID, DAY, "19:00", party_size=2)
        booking = await service.book_slot(make_request(
            "19:00", table_id="t-small", reservation_token=hold["reservation_token"],
        ))
        assert booking.table_id == "t-small"
        assert not await service.release_hold(hold["reservation_token"])

    @pytest.mark.asyncio
    async def test_expired_hold_frees_table(self, service, clock):
        await service.reserve_slot(RESTAURANT_ID, DAY, "19:00", party_size=2)
        clock.now += timedelta(minutes=11)
        booking = await service.book_slot(make_request("19:00", table_id="t-small"))
        assert booking.table_id == "t-small"

    @pytest.mark.asyncio
    async def test_release_hold(self, service):
        hold = await service.reserve_slot(RESTAURANT_ID, DAY, "19:00", party_size=2)
        assert await service.release_hold(hold["reservation_token"])
        slot = _slot(await service.get_availability(RESTAURANT_ID, DAY, party_size=2), "19:00")
        assert slot.free_table_ids == ["t-big", "t-small"]

    @pytest.mark.asyncio
    async def test_no_table_left_to_hold(self, service):
        await service.reserve_slot(RESTAURANT_ID, DAY, "19:00", party_size=5)
        with pytest.raises(SlotNoLongerAvailable):
            await service.reserve_slot(RESTAURANT_ID, DAY, "19:30", party_size=5)


class TestLifecycleThroughService:
    @pytest.fixture(autouse=True)
    def _one_table(self, store):
        store.add_table(make_table("t-1"))

    @pytest.mark.asyncio
    async def test_confirm_persists_timestamp(self, service, clock):
        booking = await service.book_slot(make_request())
        confirmed = await service.change_status(booking.id, "confirm")
        assert confirmed.status == BookingStatus.CONFIRMED
        assert confirmed.confirmed_at == clock.now
        assert (await service.get_booking(booking.id)).status == BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_complete_after_the_meal(self, service, clock):
        booking = await service.book_slot(make_request())
        await service.change_status(booking.id, "confirm")
        clock.now = datetime(2026, 10, 21, 21, 30)
        done = await service.change_status(booking.id, "complete")
        assert done.status == BookingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_event_rejected(self, service):
        booking = await service.book_slot(make_request())
        with pytest.raises(InvalidTransition, match="Valid events"):
            await service.change_status(booking.id, "teleport")

    @pytest.mark.asyncio
    async def test_unknown_booking(self, service):
        with pytest.raises(NotFoundError):
            await service.change_status("nope", "confirm")

    @pytest.mark.asyncio
    async def test_reason_persisted_as_notes(self, service):
        booking = await service.book_slot(make_request())
        confirmed = await service.change_status(booking.id, "confirm", reason="Called to confirm")
        assert confirmed.notes == "Called to confirm"
        assert (await service.get_booking(booking.id)).notes == "Called to confirm"


class TestMalformedRequests:
    @pytest.fixture(autouse=True)
    def _one_table(self, store):
        store.add_table(make_table("t-1"))

    def _payload(self, **overrides):
        payload = {
            "restaurant_id": RESTAURANT_ID,
            "date": DAY,
            "time_slot": "19:00",
            "table_id": "t-1",
            "party_size": 2,
            "customer": {"name": "Ivan", "phone": "8 900 111 22 33"},
        }
        payload.update(overrides)
        return payload

    @pytest.mark.asyncio
    async def test_malformed_time(self, service):
        with pytest.raises(FormatError, match="time_slot"):
            await service.book_slot(self._payload(time_slot="25:00"))

    @pytest.mark.asyncio
    async def test_malformed_date(self, service):
        with pytest.raises(FormatError, match="date"):
            await service.book_slot(self._payload(date="21.10.2026"))

    @pytest.mark.asyncio
    async def test_implausible_email(self, service):
        customer = {"name": "Ivan", "phone": "8 900 111 22 33", "email": "ivan@"}
        with pytest.raises(FormatError):
            await service.book_slot(self._payload(customer=customer))
        assert (await service.restaurant_stats(RESTAURANT_ID)).total_bookings == 0


class TestHousekeeping:
    @pytest.mark.asyncio
    async def test_locks_released_after_use(self, store, service):
        store.add_table(make_table("t-1"))
        await service.book_slot(make_request())
        gc.collect()
        assert len(service._locks) == 0

    @pytest.mark.asyncio
    async def test_past_dates_evicted_from_cache(self, store, service, clock):
        store.add_table(make_table("t-1"))
        await service.get_availability(RESTAURANT_ID, DAY)
        clock.now += timedelta(days=3)
        await service.get_availability(RESTAURANT_ID, "2026-10-25")
        assert all(key[1] != DAY for key in service._cache)


class TestLookupsAndStats:
    @pytest.fixture(autouse=True)
    def _tables(self, store):
        store.add_table(make_table("t-1"))
        store.add_table(make_table("t-2"))

    @pytest.mark.asyncio
    async def test_find_by_confirmation_code(self, service):
        booking = await service.book_slot(make_request())
        found = await service.find_by_confirmation_code(
            RESTAURANT_ID, booking.confirmation_code.lower(),
        )
        assert found.id == booking.id

    @pytest.mark.asyncio
    async def test_find_by_unknown_code(self, service):
        with pytest.raises(NotFoundError):
            await service.find_by_confirmation_code(RESTAURANT_ID, "ZZZZZZ")

    @pytest.mark.asyncio
    async def test_restaurant_stats(self, service):
        first = await service.book_slot(make_request("19:00", table_id="t-1"))
        await service.book_slot(make_request("19:00", table_id="t-2"))
        await service.change_status(first.id, "cancel")
        stats = await service.restaurant_stats(RESTAURANT_ID)
        assert stats.total_bookings == 2
        assert stats.cancelled_bookings == 1
        assert stats.pending_bookings == 1

    @pytest.mark.asyncio
    async def test_book_slot_accepts_dict(self, service):
        booking = await service.book_slot({
            "restaurant_id": RESTAURANT_ID,
            "date": DAY,
            "time_slot": "13:00",
            "table_id": "t-2",
            "party_size": 3,
            "customer": {"name": "Ivan", "phone": "8 900 111 22 33"},
        })
        assert booking.customer_phone == "89001112233"
