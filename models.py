#models.py:
# Contains the Reminder class and the small pure helpers around it.
# Times are kept as zero-padded 'HH:MM' strings so they compare directly.

import re
import uuid
from datetime import datetime

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


def validate_time(time_str):
    if not isinstance(time_str, str) or not TIME_PATTERN.match(time_str):
        raise ValueError(f"Time must be a 24-hour 'HH:MM' string, got {time_str!r}")
    return time_str


def validate_name(name):
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Medication name must not be empty")
    return name.strip()


class Reminder:
    def __init__(self, name, time, notified=False, reminder_id=None):
        self.id = reminder_id or uuid.uuid4().hex
        self.name = validate_name(name)
        self.time = validate_time(time)
        self.notified = notified

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'time': self.time,
            'notified': self.notified,
        }

    @classmethod
    def from_dict(cls, data):
        # older records carry no id and get a fresh one
        if not isinstance(data, dict):
            raise ValueError(f"Reminder record must be an object, got {type(data).__name__}")
        notified = data.get('notified', False)
        if not isinstance(notified, bool):
            raise ValueError(f"'notified' must be a boolean, got {notified!r}")
        return cls(
            name=data.get('name'),
            time=data.get('time'),
            notified=notified,
            reminder_id=data.get('id'),
        )

    def __eq__(self, other):
        if not isinstance(other, Reminder):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"<Reminder(id={self.id}, name='{self.name}', time='{self.time}', notified={self.notified})>"


def sort_for_display(reminders):
    # sorted() is stable, so equal times keep insertion order
    return sorted(reminders, key=lambda reminder: reminder.time)


def current_time(now=None):
    now = now or datetime.now()
    return now.strftime('%H:%M')


def is_due(current, reminder):
    """Exact-minute match: a reminder fires only when the poll lands inside its minute."""
    return not reminder.notified and reminder.time == current
