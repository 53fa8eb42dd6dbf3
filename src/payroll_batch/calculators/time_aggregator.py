"""Groups raw timesheet punches into per-employee hours."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Iterable

from payroll_batch.calculators.types import ZERO, DailyHours, EmployeeError, EmployeeHours

if TYPE_CHECKING:
    from payroll_batch.models import Employee, TimeEntry

logger = logging.getLogger(__name__)

MINUTES_PER_HOUR = Decimal(60)


class InvalidTimeValueError(Exception):
    """Raised when a duration string cannot be parsed."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Malformed time value '{value}'")


class EmployeeNotMatchedError(Exception):
    """Raised when timesheet rows cannot be tied to a directory employee."""

    def __init__(self, match_key: str):
        self.match_key = match_key
        super().__init__(
            f"Employee '{match_key}' not found in directory; cannot process payroll"
        )


def parse_duration(value: str | None) -> Decimal:
    """Parse an ingested duration into decimal hours.

    Accepted forms: "HH:MM", ":MM" (minutes only) and plain decimal hours
    ("7.5"). Blank values are zero hours.
    """
    if value is None:
        return ZERO
    text = value.strip()
    if not text:
        return ZERO

    try:
        if ":" in text:
            hours_part, _, minutes_part = text.partition(":")
            hours = int(hours_part) if hours_part else 0
            minutes = int(minutes_part) if minutes_part else 0
            if hours < 0 or minutes < 0 or minutes >= 60:
                raise InvalidTimeValueError(value)
            return Decimal(hours) + Decimal(minutes) / MINUTES_PER_HOUR

        hours = Decimal(text)
    except (ValueError, InvalidOperation) as e:
        raise InvalidTimeValueError(value) from e

    if not hours.is_finite() or hours < 0:
        raise InvalidTimeValueError(value)
    return hours


def hours_between(time_in: time, time_out: time) -> Decimal:
    """Hours between two punches, wrapping past midnight."""
    start = datetime.combine(date.min, time_in)
    end = datetime.combine(date.min, time_out)
    if end < start:
        end += timedelta(days=1)
    seconds = Decimal(int((end - start).total_seconds()))
    return seconds / Decimal(3600)


def entry_hours(entry: TimeEntry) -> Decimal:
    """Hours for one entry: the recorded duration, else the punch span."""
    if entry.duration is not None and entry.duration.strip():
        return parse_duration(entry.duration)
    if entry.time_in is not None and entry.time_out is not None:
        return hours_between(entry.time_in, entry.time_out)
    return ZERO


def name_key(first_name: str | None, last_name: str | None) -> str:
    """Degraded match key built from a name pair."""
    return f"{(last_name or '').strip().lower()}_{(first_name or '').strip().lower()}"


@dataclass
class AggregationResult:
    """Per-employee hours plus the groups that could not be used."""

    employees: list[EmployeeHours] = field(default_factory=list)
    errors: list[EmployeeError] = field(default_factory=list)


class _EmployeeDirectory:
    """Lookup of directory employees by code and by name key."""

    def __init__(self, employees: Iterable[Employee]):
        self.by_code: dict[str, Employee] = {}
        self.by_name: dict[str, list[Employee]] = {}
        for employee in employees:
            if employee.employee_code:
                self.by_code[employee.employee_code.strip()] = employee
            self.by_name.setdefault(employee.name_key, []).append(employee)

    def resolve(self, entry: TimeEntry) -> Employee | None:
        code = (entry.employee_code or "").strip()
        if code and code in self.by_code:
            return self.by_code[code]

        # Fall back to the name only when it identifies exactly one employee.
        candidates = self.by_name.get(name_key(entry.first_name, entry.last_name), [])
        if len(candidates) == 1:
            if code:
                logger.warning(
                    "Employee code %r unknown; matched %s by name",
                    code,
                    candidates[0].full_name,
                )
            return candidates[0]
        return None


def _display_name(entry: TimeEntry) -> str:
    name = " ".join(p for p in (entry.first_name, entry.last_name) if p)
    return name or entry.employee_code or "unknown"


def aggregate_time_entries(
    entries: Iterable[TimeEntry],
    employees: Iterable[Employee],
) -> AggregationResult:
    """Group time entries by employee and total their hours.

    Entries are keyed by the resolved employee; entries that resolve to
    nobody are grouped by their code (or name key) and reported once as an
    unmatched employee. A malformed duration drops that employee from the
    result with an error, without affecting anyone else.
    """
    directory = _EmployeeDirectory(employees)
    grouped: dict[object, EmployeeHours] = {}
    unmatched: dict[str, str] = {}
    malformed: dict[object, EmployeeError] = {}

    for entry in entries:
        employee = directory.resolve(entry)
        if employee is None:
            key = (entry.employee_code or "").strip() or name_key(
                entry.first_name, entry.last_name
            )
            unmatched.setdefault(key, _display_name(entry))
            continue

        group_key = employee.employee_id
        if group_key in malformed:
            continue

        try:
            hours = entry_hours(entry)
        except InvalidTimeValueError as e:
            logger.warning("Skipping %s: %s", employee.full_name, e)
            malformed[group_key] = EmployeeError(
                employee_name=employee.full_name,
                employee_id=employee.employee_id,
                error=str(e),
            )
            grouped.pop(group_key, None)
            continue

        bucket = grouped.get(group_key)
        if bucket is None:
            bucket = EmployeeHours(
                employee_id=employee.employee_id,
                employee_name=employee.full_name,
            )
            grouped[group_key] = bucket

        bucket.total_hours += hours
        day = bucket.days.get(entry.work_date)
        if day is None:
            bucket.days[entry.work_date] = DailyHours(
                work_date=entry.work_date,
                hours=hours,
                first_time_in=entry.time_in,
            )
        else:
            first_in = day.first_time_in
            if entry.time_in is not None and (first_in is None or entry.time_in < first_in):
                first_in = entry.time_in
            bucket.days[entry.work_date] = DailyHours(
                work_date=entry.work_date,
                hours=day.hours + hours,
                first_time_in=first_in,
            )

    result = AggregationResult(
        employees=sorted(grouped.values(), key=lambda h: h.employee_name),
    )
    for key, display_name in unmatched.items():
        result.errors.append(
            EmployeeError(
                employee_name=display_name,
                error=str(EmployeeNotMatchedError(key)),
            )
        )
    result.errors.extend(malformed.values())
    return result
