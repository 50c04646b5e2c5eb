"""
Console entry point for exploring the booking core against a seeded
in-memory restaurant.

Usage:
    python main.py availability --date 2026-10-21 --party 4
    python main.py book --date 2026-10-21 --time 19:00 --table t-2 --party 4
    python main.py demo
"""

import argparse
import asyncio
import logging
import sys
from datetime import date, timedelta

from tablebook.config import settings
from tablebook.errors import TableBookError
from tablebook.schemas.booking_schema import BookingRequest, CustomerContact, TimeSlot
from tablebook.schemas.restaurant_schema import (
    BookingSettings,
    DayHours,
    Restaurant,
    Table,
    TableType,
    WorkingHours,
)
from tablebook.service import BookingService
from tablebook.storage.memory import InMemoryBookingStore

logger = logging.getLogger(__name__)

DEMO_RESTAURANT_ID = "demo"


def build_demo_store() -> InMemoryBookingStore:
    """A small bistro: five tables, closed Mondays, an afternoon break on weekdays."""
    store = InMemoryBookingStore()
    hours = WorkingHours.every_day("12:00", "23:00", closed=("monday",))
    for weekday in ("tuesday", "wednesday", "thursday", "friday"):
        setattr(hours, weekday, DayHours(
            is_open=True, open_time="12:00", close_time="23:00",
            break_start="15:30", break_end="17:00",
        ))
    store.add_restaurant(Restaurant(
        id=DEMO_RESTAURANT_ID,
        name="Bistro Demo",
        working_hours=hours,
        booking_settings=BookingSettings(max_party_size=8, min_advance_booking_hours=1),
    ))
    for table_id, capacity, kind in [
        ("t-1", 2, TableType.BAR),
        ("t-2", 4, TableType.INDOOR),
        ("t-3", 4, TableType.INDOOR),
        ("t-4", 6, TableType.OUTDOOR),
        ("t-5", 8, TableType.PRIVATE),
    ]:
        store.add_table(Table(
            id=table_id, restaurant_id=DEMO_RESTAURANT_ID,
            number=table_id[2:], capacity=capacity, type=kind,
        ))
    return store


def format_slots(slots: list[TimeSlot]) -> str:
    if not slots:
        return "No bookable slots on this date."
    lines = []
    for slot in slots:
        mark = "open " if slot.is_available else "full "
        tables = ", ".join(slot.free_table_ids) or "-"
        lines.append(
            f"{slot.time}  {mark} {slot.available_tables}/{slot.total_tables}  [{tables}]"
        )
    return "\n".join(lines)


async def _run_demo(service: BookingService, day: str) -> None:
    sys.stdout.write(f"Availability on {day} for 4 guests:\n")
    sys.stdout.write(format_slots(await service.get_availability(DEMO_RESTAURANT_ID, day, 4)) + "\n\n")

    booking = await service.book_slot(BookingRequest(
        restaurant_id=DEMO_RESTAURANT_ID, date=day, time_slot="19:00", table_id="t-2",
        party_size=4, customer=CustomerContact(name="Demo Guest", phone="+7 900 000-00-00"),
    ))
    sys.stdout.write(f"Booked t-2 at 19:00, code {booking.confirmation_code} ({booking.status.value})\n")

    await service.change_status(booking.id, "confirm")
    slots = await service.get_availability(DEMO_RESTAURANT_ID, day, 4)
    sys.stdout.write("After booking:\n" + format_slots(slots) + "\n\n")

    await service.change_status(booking.id, "cancel", reason="Plans changed")
    slots = await service.get_availability(DEMO_RESTAURANT_ID, day, 4)
    sys.stdout.write("After cancellation:\n" + format_slots(slots) + "\n")


async def _main(args: argparse.Namespace) -> int:
    service = BookingService(build_demo_store())
    day = args.date or (date.today() + timedelta(days=2)).isoformat()

    try:
        if args.command == "availability":
            slots = await service.get_availability(DEMO_RESTAURANT_ID, day, args.party)
            sys.stdout.write(format_slots(slots) + "\n")
        elif args.command == "book":
            booking = await service.book_slot({
                "restaurant_id": DEMO_RESTAURANT_ID, "date": day, "time_slot": args.time,
                "table_id": args.table, "party_size": args.party,
                "customer": {"name": args.name, "phone": args.phone},
            })
            sys.stdout.write(
                f"Booking {booking.confirmation_code}: table {booking.table_id} "
                f"at {booking.time_slot} on {booking.date} ({booking.status.value})\n"
            )
        else:
            await _run_demo(service, day)
    except TableBookError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Query availability and book tables at a demo restaurant."
    )
    parser.add_argument(
        "command",
        choices=["availability", "book", "demo"],
        help="What to do.",
    )
    parser.add_argument("--date", type=str, default=None, help="YYYY-MM-DD (default: in two days).")
    parser.add_argument("--party", type=int, default=2, help="Party size.")
    parser.add_argument("--time", type=str, default="19:00", help="Slot to book (HH:MM).")
    parser.add_argument("--table", type=str, default="t-2", help="Table ID to book.")
    parser.add_argument("--name", type=str, default="Walk-in Guest", help="Customer name.")
    parser.add_argument("--phone", type=str, default="+70000000000", help="Customer phone.")
    args = parser.parse_args()

    logger.debug("Slot window %s-%s", settings.slots.window_start, settings.slots.window_end)
    sys.exit(asyncio.run(_main(args)))


if __name__ == "__main__":
    main()
