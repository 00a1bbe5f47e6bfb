"""Command-line interface for the PressPlan production scheduler."""

import argparse
import logging
import sys
from datetime import date, datetime, time, timedelta
from typing import Optional

from pressplan.domain.models import (
    Job,
    JobPhaseBreakdown,
    JobPriority,
    JobType,
    Product,
    StaffMember,
    WorkingWindow,
)
from pressplan.domain.timemodel import TimeInterval, TimePoint, from_date, from_datetime
from pressplan.output.calendar import CalendarProjection
from pressplan.output.text_renderer import TextRenderer
from pressplan.scheduling.cpsat_planner import CPSATBatchPlanner, PlannerConfig, PlannerMode
from pressplan.scheduling.scheduler import Scheduler, ScheduleResult
from pressplan.storage.assignment_log import AssignmentLog, restore_store
from pressplan.storage.loader import ShopDocument, load_document


def create_sample_staff(count: int = 4, start: Optional[date] = None) -> list[StaffMember]:
    """Create a sample production team.

    Args:
        count: Number of staff members to create.
        start: First day of the demo; used to place blocked time.
    """
    if start is None:
        start = date.today()

    names = [
        "Alice", "Bob", "Carol", "David", "Eve", "Frank", "Grace", "Henry",
        "Ivy", "Jack", "Kate", "Leo",
    ]
    departments = ["Digital", "Wide Format", "Screen", "Finishing"]

    staff = []
    for i in range(count):
        name = names[i % len(names)]
        if i >= len(names):
            name = f"{name}{i // len(names) + 1}"

        if i % 4 == 1:
            # Early shift: 7 AM - 3 PM
            windows = WorkingWindow.standard_week(start=time(7, 0), end=time(15, 0))
        elif i % 4 == 2:
            # Part-time: Monday, Wednesday, Friday
            windows = WorkingWindow.standard_week(working_days=(0, 2, 4))
        else:
            windows = WorkingWindow.standard_week()

        blocked = []
        if i % 3 == 0:
            # Weekly team meeting on the first day
            meeting = datetime.combine(start, time(9, 0))
            blocked.append(TimeInterval.from_datetimes(meeting, meeting + timedelta(hours=1)))

        staff.append(
            StaffMember(
                id=f"S{i + 1:02d}",
                name=name,
                daily_capacity_minutes=360 if i % 4 == 2 else 480,
                working_windows=windows,
                blocked_intervals=blocked,
                department=departments[i % len(departments)],
            )
        )

    return staff


def create_sample_products() -> list[Product]:
    """Create a small product catalog."""
    return [
        Product("P-BC", "Business cards", JobType.DIGITAL_PRINTING, 45, 15, 20),
        Product("P-BN", "Vinyl banner", JobType.WIDE_FORMAT, 90, 20, 30),
        Product("P-TS", "Screen printed tees", JobType.SCREEN_PRINTING, 150, 45, 30),
        Product("P-DTF", "DTF transfers", JobType.DTF, 60, 10, 15),
        Product("P-EMB", "Embroidered caps", JobType.EMBROIDERY, 120, 30, 10),
    ]


def create_sample_jobs(
    count: int = 12,
    start: Optional[date] = None,
    products: Optional[list[Product]] = None,
) -> list[Job]:
    """Create sample jobs with varied products, priorities and due dates."""
    if start is None:
        start = date.today()
    if products is None:
        products = create_sample_products()

    customers = ["Acme Corp", "Bluebird Cafe", "City Marathon", "Dune Surf Co"]
    priorities = [JobPriority.MEDIUM, JobPriority.HIGH, JobPriority.LOW]

    jobs = []
    for i in range(count):
        product = products[i % len(products)]
        phases = [JobPhaseBreakdown.from_product(product)]
        if i % 4 == 3:
            # Second product line on some orders
            extra = products[(i + 2) % len(products)]
            phases.append(JobPhaseBreakdown.from_product(extra))

        due_date = None
        if i % 5 != 4:
            due_day = start + timedelta(days=2 + i % 6)
            due_date = from_date(due_day, at=time(17, 0))

        jobs.append(
            Job(
                id=f"J{i + 1:03d}",
                phases=tuple(phases),
                priority=priorities[i % len(priorities)],
                due_date=due_date,
                title=f"{product.name} #{i + 1}",
                customer=customers[i % len(customers)],
            )
        )

    return jobs


def build_scheduler(
    document: ShopDocument,
    now: Optional[TimePoint] = None,
    log_path: Optional[str] = None,
) -> tuple[Scheduler, list]:
    """Create a scheduler for a document, restoring persisted assignments.

    Returns:
        Tuple of (scheduler, audit conflicts found while restoring).
    """
    clock = (lambda: now) if now is not None else None
    conflicts = []
    scheduler = Scheduler(staff=document.staff, config=document.config, clock=clock)
    if log_path:
        jobs = {job.id: job for job in document.jobs}
        store, conflicts = restore_store(
            AssignmentLog(log_path),
            jobs=jobs,
            availability=scheduler.availability,
            detector=scheduler.detector,
        )
        scheduler.store = store
        scheduler.register_jobs(document.jobs)
    return scheduler, conflicts


def run_batch(
    scheduler: Scheduler,
    jobs: list[Job],
    planner: str,
    time_limit: float = 10.0,
) -> list[ScheduleResult]:
    """Place jobs with the chosen planner and print the outcome."""
    mode = PlannerMode(planner)
    plan = CPSATBatchPlanner(
        scheduler, PlannerConfig(mode=mode, time_limit_seconds=time_limit)
    ).plan(jobs)

    print(f"\nPlanner: {mode.value} (status: {plan.status})")
    if mode != PlannerMode.GREEDY:
        print(f"  Solve time: {plan.solve_time_seconds:.2f}s, objective: {plan.objective_value}")
        if plan.fallback_job_ids:
            print(f"  Greedy fallback: {', '.join(plan.fallback_job_ids)}")

    print(f"  Placed: {len(plan.placed)}/{len(plan.results)} jobs")
    for result in plan.results:
        if result.is_success:
            flag = "  (due date at risk)" if result.due_date_at_risk else ""
            print(f"    {result.assignment}{flag}")
        else:
            print(f"    {result.error}")
    return plan.results


def print_stats(scheduler: Scheduler) -> None:
    stats = scheduler.stats()
    print(f"\nAssignments: {stats['total_assignments']}, "
          f"total work hours: {stats['total_assigned_minutes'] / 60:.1f}")
    for staff_id, minutes in sorted(stats["assigned_minutes_by_staff"].items()):
        print(f"  {staff_id}: {minutes / 60:.1f} h")
    if stats["due_date_at_risk"]:
        print(f"  Due date at risk: {', '.join(stats['due_date_at_risk'])}")


def print_conflicts(conflicts: list) -> None:
    if not conflicts:
        print("\n  Audit: PASSED")
        return
    print(f"\n  Audit: FAILED ({len(conflicts)} conflicts)")
    for conflict in conflicts[:10]:
        print(f"    - {conflict}")
    if len(conflicts) > 10:
        print(f"    ... and {len(conflicts) - 10} more conflicts")


def run_demo(
    staff_count: int = 4,
    job_count: int = 12,
    planner: str = "greedy",
    start: Optional[date] = None,
) -> int:
    """Run a demo scheduling session."""
    if start is None:
        start = date.today()
    # Plan from the Monday of the given week
    monday = start - timedelta(days=start.weekday())
    print(f"Scheduling {job_count} demo jobs on {staff_count} staff from {monday}...")

    products = create_sample_products()
    document = ShopDocument(
        staff=create_sample_staff(staff_count, monday),
        products={p.id: p for p in products},
        jobs=create_sample_jobs(job_count, monday, products),
    )
    scheduler, _ = build_scheduler(document, now=from_date(monday))

    run_batch(scheduler, document.jobs, planner)
    print_stats(scheduler)
    print_conflicts(scheduler.audit())

    projection = CalendarProjection(scheduler.store, scheduler.jobs, scheduler.availability)
    print()
    print(TextRenderer().generate_to_string(projection, monday, "week"))
    return 0


def run_schedule(args: argparse.Namespace) -> int:
    document = load_document(args.input)
    scheduler, conflicts = build_scheduler(document, _parse_now(args.now), args.log)
    if conflicts:
        print_conflicts(conflicts)

    pending = [job for job in document.jobs if job.id not in scheduler.store]
    print(f"Loaded {len(document.staff)} staff, {len(document.jobs)} jobs "
          f"({len(pending)} unscheduled)")
    results = run_batch(scheduler, pending, args.planner, args.time_limit)
    print_stats(scheduler)

    if args.log and args.compact:
        AssignmentLog(args.log).compact(scheduler.store.snapshot())
    return 0 if all(r.is_success for r in results) else 2


def run_audit(args: argparse.Namespace) -> int:
    document = load_document(args.input)
    scheduler, conflicts = build_scheduler(document, _parse_now(args.now), args.log)
    print(f"Audited {len(scheduler.store)} assignments")
    print_conflicts(conflicts)
    return 0 if not conflicts else 2


def run_cancel(args: argparse.Namespace) -> int:
    document = load_document(args.input)
    scheduler, _ = build_scheduler(document, _parse_now(args.now), args.log)
    removed = scheduler.cancel(args.job)
    if removed is None:
        print(f"Job {args.job} has no assignment")
    else:
        print(f"Cancelled {removed}")
    return 0


def run_calendar(args: argparse.Namespace) -> int:
    document = load_document(args.input)
    scheduler, conflicts = build_scheduler(document, _parse_now(args.now), args.log)
    start = date.fromisoformat(args.date) if args.date else date.today()
    if args.view == "week":
        start = start - timedelta(days=start.weekday())

    jobs = {job.id: job for job in document.jobs}
    projection = CalendarProjection(scheduler.store, jobs, scheduler.availability)
    renderer = TextRenderer()
    if args.output:
        renderer.generate(projection, start, args.view, args.output, conflicts)
        print(f"Calendar written to {args.output}")
    else:
        print(renderer.generate_to_string(projection, start, args.view, conflicts))
    return 0


def _parse_now(value: Optional[str]) -> Optional[TimePoint]:
    if not value:
        return None
    return from_datetime(datetime.fromisoformat(value))


def _add_document_args(parser: argparse.ArgumentParser, log_required: bool = False) -> None:
    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Shop document (JSON) with config, staff, products and jobs",
    )
    parser.add_argument(
        "--log", "-l",
        type=str,
        required=log_required,
        help="Assignment log (JSON lines) to restore from and append to",
    )
    parser.add_argument(
        "--now",
        type=str,
        help="Override the current time (ISO format, e.g. 2024-01-15T08:00)",
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="PressPlan - Print Shop Production Scheduler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo                              Schedule 12 demo jobs on 4 staff
  %(prog)s demo --planner cpsat              Use the CP-SAT batch planner
  %(prog)s schedule -i shop.json -l plan.jsonl
  %(prog)s audit -i shop.json -l plan.jsonl  Check persisted assignments
  %(prog)s calendar -i shop.json -l plan.jsonl --view week --date 2024-01-15
  %(prog)s cancel -i shop.json -l plan.jsonl --job J001
        """,
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Log scheduler activity (-v info, -vv debug)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run a demo scheduling session")
    demo_parser.add_argument(
        "--staff", "-s",
        type=int,
        default=4,
        help="Number of staff members to generate (default: 4)",
    )
    demo_parser.add_argument(
        "--jobs", "-j",
        type=int,
        default=12,
        help="Number of jobs to generate (default: 12)",
    )
    demo_parser.add_argument(
        "--planner", "-p",
        type=str,
        default="greedy",
        choices=[m.value for m in PlannerMode],
        help="Planner: greedy (default), cpsat (optimal), hybrid",
    )
    demo_parser.add_argument(
        "--start",
        type=str,
        help="Demo week (YYYY-MM-DD, default: this week)",
    )

    # Schedule command
    schedule_parser = subparsers.add_parser(
        "schedule",
        help="Schedule the unscheduled jobs of a shop document",
    )
    _add_document_args(schedule_parser)
    schedule_parser.add_argument(
        "--planner", "-p",
        type=str,
        default="hybrid",
        choices=[m.value for m in PlannerMode],
        help="Planner: greedy, cpsat, hybrid (default)",
    )
    schedule_parser.add_argument(
        "--time-limit", "-t",
        type=float,
        default=10.0,
        help="CP-SAT solver time limit in seconds (default: 10)",
    )
    schedule_parser.add_argument(
        "--compact",
        action="store_true",
        help="Compact the assignment log afterwards",
    )

    # Audit command
    audit_parser = subparsers.add_parser("audit", help="Audit persisted assignments")
    _add_document_args(audit_parser, log_required=True)

    # Cancel command
    cancel_parser = subparsers.add_parser("cancel", help="Cancel a job's assignment")
    _add_document_args(cancel_parser, log_required=True)
    cancel_parser.add_argument("--job", "-J", type=str, required=True, help="Job ID")

    # Calendar command
    calendar_parser = subparsers.add_parser("calendar", help="Print a calendar view")
    _add_document_args(calendar_parser, log_required=True)
    calendar_parser.add_argument(
        "--view",
        type=str,
        default="week",
        choices=["day", "week", "month"],
        help="Calendar view (default: week)",
    )
    calendar_parser.add_argument(
        "--date", "-d",
        type=str,
        help="Day, week or month to show (YYYY-MM-DD, default: today)",
    )
    calendar_parser.add_argument(
        "--output", "-o",
        type=str,
        help="Write the calendar to a text file",
    )

    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.command == "demo":
        start = date.fromisoformat(args.start) if args.start else None
        return run_demo(args.staff, args.jobs, args.planner, start)
    elif args.command == "schedule":
        return run_schedule(args)
    elif args.command == "audit":
        return run_audit(args)
    elif args.command == "cancel":
        return run_cancel(args)
    elif args.command == "calendar":
        return run_calendar(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
