"""Load shop documents (config, staff roster, product catalog, jobs) from JSON.

Document layout::

    {
      "config": {"horizon_days": 90, "allow_overbooking": false},
      "staff": [
        {"id": "S1", "name": "Dana", "daily_capacity_minutes": 480,
         "working_hours": {"monday": ["08:00", "17:00"], ...},
         "blocked": [{"start": "2024-01-15T12:00", "end": "2024-01-15T13:00"}]}
      ],
      "products": [
        {"id": "P1", "name": "Banner", "job_type": "Wide Format",
         "production_time": 90, "setup_time": 15, "finishing_time": 15}
      ],
      "jobs": [
        {"id": "J1", "title": "Trade show banners", "customer": "Acme",
         "priority": "High", "due_date": "2024-01-19T17:00",
         "products": [{"product_id": "P1"}, {"production_time": 60}]}
      ]
    }

Staff without "working_hours" get the shop default week (08:00-17:00,
Monday-Friday). All times are local and timezone-naive.
"""

import json
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, time
from pathlib import Path
from typing import Iterator, Optional, Union

from pressplan.domain.models import (
    Job,
    JobPhaseBreakdown,
    JobPriority,
    JobStatus,
    JobType,
    Product,
    StaffMember,
    WorkingWindow,
)
from pressplan.domain.timemodel import TimeInterval, TimePoint, from_datetime
from pressplan.scheduling.scheduler import SchedulerConfig

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


@dataclass
class ShopDocument:
    """Everything a scheduling run needs, parsed from one document.

    Attributes:
        config: Scheduler configuration.
        staff: The staff roster.
        products: Product catalog keyed by product ID.
        jobs: Jobs in document order.
    """

    config: SchedulerConfig = field(default_factory=SchedulerConfig)
    staff: list[StaffMember] = field(default_factory=list)
    products: dict[str, Product] = field(default_factory=dict)
    jobs: list[Job] = field(default_factory=list)


def parse_time(value: str) -> time:
    """Parse "HH:MM"."""
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid time of day {value!r}; expected HH:MM") from exc


def parse_timestamp(value: str) -> TimePoint:
    """Parse an ISO-8601 local datetime into epoch minutes."""
    try:
        return from_datetime(datetime.fromisoformat(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid timestamp {value!r}; expected ISO format") from exc


def parse_working_hours(data: dict) -> dict[int, WorkingWindow]:
    """Parse {"monday": ["08:00", "17:00"], ...}; missing days are days off."""
    windows = {}
    for day_name, hours in data.items():
        weekday = WEEKDAYS.get(day_name.lower())
        if weekday is None:
            raise ValueError(f"Unknown weekday {day_name!r}")
        if hours is None:
            continue
        start, end = hours
        windows[weekday] = WorkingWindow.from_times(parse_time(start), parse_time(end))
    return windows


def parse_staff(data: dict, default_capacity: int = 480) -> StaffMember:
    """Parse one staff roster entry."""
    if "working_hours" in data:
        windows = parse_working_hours(data["working_hours"])
    else:
        windows = WorkingWindow.standard_week()

    blocked = [
        TimeInterval(parse_timestamp(b["start"]), parse_timestamp(b["end"]))
        for b in data.get("blocked", [])
    ]
    return StaffMember(
        id=str(data["id"]),
        name=data.get("name", ""),
        daily_capacity_minutes=int(data.get("daily_capacity_minutes", default_capacity)),
        working_windows=windows,
        blocked_intervals=blocked,
        active=bool(data.get("active", True)),
        department=data.get("department", ""),
    )


def parse_product(data: dict) -> Product:
    """Parse one product catalog entry."""
    return Product(
        id=str(data["id"]),
        name=data.get("name", ""),
        job_type=JobType(data["job_type"]),
        production_time=int(data["production_time"]),
        setup_time=int(data.get("setup_time", 0)),
        finishing_time=int(data.get("finishing_time", 0)),
    )


def parse_phase(data: dict, products: dict[str, Product]) -> JobPhaseBreakdown:
    """Parse a job line: a catalog reference or explicit phase minutes."""
    product_id = data.get("product_id")
    if product_id is not None:
        product = products.get(product_id)
        if product is None:
            raise ValueError(f"Unknown product {product_id!r}")
        return JobPhaseBreakdown.from_product(product)
    return JobPhaseBreakdown(
        setup_minutes=int(data.get("setup_time", 0)),
        production_minutes=int(data.get("production_time", 0)),
        finishing_minutes=int(data.get("finishing_time", 0)),
    )


def parse_job(data: dict, products: Optional[dict[str, Product]] = None) -> Job:
    """Parse one job record."""
    products = products or {}
    due = data.get("due_date")
    return Job(
        id=str(data["id"]),
        phases=tuple(parse_phase(p, products) for p in data.get("products", [])),
        priority=JobPriority(data.get("priority", JobPriority.MEDIUM.value)),
        due_date=parse_timestamp(due) if due else None,
        preferred_staff_id=data.get("preferred_staff_id"),
        status=JobStatus(data.get("status", JobStatus.NOT_STARTED.value)),
        title=data.get("title", ""),
        customer=data.get("customer", ""),
    )


def parse_document(data: dict) -> ShopDocument:
    """Parse a whole shop document.

    Raises:
        ValueError: If any entry is malformed, naming the entry.
    """
    config = SchedulerConfig.from_dict(data.get("config", {}))
    document = ShopDocument(config=config)

    # Products first so job lines can reference the catalog
    for index, entry in enumerate(data.get("products", [])):
        with _entry_context("products", index):
            product = parse_product(entry)
            document.products[product.id] = product

    for index, entry in enumerate(data.get("staff", [])):
        with _entry_context("staff", index):
            document.staff.append(parse_staff(entry, config.default_daily_capacity_minutes))

    for index, entry in enumerate(data.get("jobs", [])):
        with _entry_context("jobs", index):
            document.jobs.append(parse_job(entry, document.products))

    return document


@contextmanager
def _entry_context(section: str, index: int) -> Iterator[None]:
    """Re-raise parse errors as ValueError naming the offending entry."""
    try:
        yield
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid {section} entry #{index}: {exc}") from exc


def load_document(path: Union[str, Path]) -> ShopDocument:
    """Read and parse a shop document from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return parse_document(data)
