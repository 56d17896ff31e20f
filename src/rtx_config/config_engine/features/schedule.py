"""Scheduled commands: ``schedule at``.

Three forms, chosen by the startup keyword and token shape::

    schedule at 1 startup <command>
    schedule at 2 12:00 <command>
    schedule at 3 2024/01/15 12:00 <command>
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .base import FeatureCodec

SCHEDULE_LINE = re.compile(r"^schedule\s+at\s+(\d+)\s+(.+)$")
HEAD_TOKEN = re.compile(r"^(\S+)\s*(.*)$")
TIME_TOKEN = re.compile(r"^(\*|\d{1,2}):(\*|\d{2})(?::(\d{2}))?$")
WEEKDAYS = r"(?:sun|mon|tue|wed|thu|fri|sat)"
DATE_TOKEN = re.compile(
    r"^(?:\d{4}/)?(?:\*|\d{1,2})/(?:\*|\d{1,2}|" + WEEKDAYS + r"(?:[-,]" + WEEKDAYS + r")*)$"
)


class ScheduleForm(str, Enum):
    """Which ``schedule at`` form is used."""
    STARTUP = "startup"
    TIME = "time"
    DATE_TIME = "date_time"


@dataclass
class Schedule:
    """One scheduled command."""
    id: int
    command: str
    form: ScheduleForm = ScheduleForm.TIME
    time: Optional[str] = None
    date: Optional[str] = None


class ScheduleCodec(FeatureCodec):
    """Codec for ``schedule at`` entries."""

    name = "schedule"
    prefix = re.compile(r"^schedule\s+at\s")

    def parse_line(self, line: str) -> Schedule:
        m = SCHEDULE_LINE.match(line)
        if not m:
            raise ValueError("expected: schedule at <id> [startup | [date] time] <command>")
        schedule_id = int(m.group(1))
        first, rest = _split_head(m.group(2))

        if first == "startup":
            form, date, time, text = ScheduleForm.STARTUP, None, None, rest
        elif TIME_TOKEN.match(first):
            form, date, time, text = ScheduleForm.TIME, None, first, rest
        elif DATE_TOKEN.match(first):
            second, text = _split_head(rest)
            if not TIME_TOKEN.match(second):
                raise ValueError(f"date {first!r} must be followed by a time")
            form, date, time = ScheduleForm.DATE_TIME, first, second
        else:
            raise ValueError(f"expected startup, a date or a time, got {first!r}")

        # The command keeps its own spacing
        text = text.rstrip()
        if not text:
            raise ValueError("command is required")

        return Schedule(id=schedule_id, command=text, form=form, time=time, date=date)

    def create_commands(self, record: Schedule) -> list[str]:
        parts = ["schedule", "at", str(record.id)]
        if record.form == ScheduleForm.STARTUP:
            parts.append("startup")
        elif record.form == ScheduleForm.DATE_TIME:
            parts += [record.date, record.time]
        else:
            parts.append(record.time)
        parts.append(record.command)
        return [" ".join(parts)]

    def delete_commands(self, record: Schedule) -> list[str]:
        return [f"no schedule at {record.id}"]

    def identity(self, record: Schedule) -> int:
        return record.id

    def fallback_key(self, record: Schedule) -> tuple:
        return (ScheduleForm(record.form).value, record.date, record.time, record.command)

    def validate(self, record: Schedule) -> list[str]:
        errors = []
        if not 1 <= record.id <= 65535:
            errors.append(f"schedule id must be between 1 and 65535, got {record.id}")
        if not record.command or not record.command.strip():
            errors.append("command is required")

        form = ScheduleForm(record.form)
        if form == ScheduleForm.STARTUP:
            if record.time or record.date:
                errors.append("startup schedules take no date or time")
            return errors

        errors.extend(_time_errors(record.time))
        if form == ScheduleForm.DATE_TIME:
            if not record.date or not DATE_TOKEN.match(record.date):
                errors.append(f"invalid date {record.date!r}")
        elif record.date:
            errors.append("time schedules take no date; use form date_time")
        return errors

    def show_command(self) -> str:
        return 'show config | grep "schedule at"'

    def from_dict(self, data: dict[str, Any]) -> Schedule:
        if data.get("form"):
            form = ScheduleForm(data["form"])
        elif data.get("startup"):
            form = ScheduleForm.STARTUP
        elif data.get("date"):
            form = ScheduleForm.DATE_TIME
        else:
            form = ScheduleForm.TIME
        return Schedule(
            id=int(data["id"]),
            command=str(data.get("command", "")),
            form=form,
            time=_time_text(data.get("time")),
            date=data.get("date"),
        )


def _split_head(text: str) -> tuple[str, str]:
    """First token and the untouched remainder."""
    m = HEAD_TOKEN.match(text)
    return (m.group(1), m.group(2)) if m else ("", "")


def _time_text(value: Any) -> Optional[str]:
    """YAML 1.1 reads unquoted 12:00 as 720 and 12:00:30 as 43230 (base 60)."""
    if isinstance(value, int):
        if value >= 3600:
            hours, rest = divmod(value, 3600)
            return f"{hours:02d}:{rest // 60:02d}:{rest % 60:02d}"
        return f"{value // 60:02d}:{value % 60:02d}"
    return None if value is None else str(value)


def _time_errors(time: Optional[str]) -> list[str]:
    m = TIME_TOKEN.match(time or "")
    if not m:
        return [f"invalid time {time!r}, expected HH:MM or HH:MM:SS"]
    errors = []
    hour, minute, second = m.groups()
    if hour != "*" and not 0 <= int(hour) <= 23:
        errors.append(f"hour must be between 0 and 23, got {hour}")
    if minute != "*" and not 0 <= int(minute) <= 59:
        errors.append(f"minute must be between 0 and 59, got {minute}")
    if second is not None and not 0 <= int(second) <= 59:
        errors.append(f"second must be between 0 and 59, got {second}")
    return errors
