"""Time-slot generation for a locality.

There is no slot table: the bookable day is a fixed grid of half-hour slots
with a few locality specific exclusions. Availability figures are drawn from a
generator seeded on locality and date, so repeated calls agree with each other.
"""
import random
from datetime import date as date_cls

MORNING = ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
AFTERNOON = ["12:00", "12:30", "13:00", "13:30", "14:00", "14:30"]
EVENING = ["15:00", "15:30", "16:00", "16:30", "17:00", "17:30", "18:00"]

# locality substring -> start times not offered there
EXCLUDED_SLOTS = {
    "sodala": {"14:00"},
}

MAX_CAPACITY = 5


def period_of(start: str) -> str:
    hour = int(start.split(":")[0])
    if hour < 12:
        return "morning"
    if hour < 15:
        return "afternoon"
    return "evening"


def end_of(start: str) -> str:
    hours, minutes = (int(p) for p in start.split(":"))
    if minutes == 30:
        return f"{hours + 1:02d}:00"
    return f"{hours:02d}:30"


def generate_slots(locality: str, target_date: date_cls) -> list[dict]:
    excluded = set()
    for key, times in EXCLUDED_SLOTS.items():
        if key in locality.lower():
            excluded |= times

    rng = random.Random(f"{locality.lower()}|{target_date.isoformat()}")
    slots = []
    for start in MORNING + AFTERNOON + EVENING:
        if start in excluded:
            continue
        slots.append({
            "id": f"slot-{locality}-{start}-{target_date.isoformat()}",
            "startTime": start,
            "endTime": end_of(start),
            "date": target_date.isoformat(),
            "locality": locality,
            "isAvailable": rng.random() > 0.2,
            "maxCapacity": MAX_CAPACITY,
            "currentBookings": rng.randrange(3),
            "period": period_of(start),
        })
    return slots
