"""ASCII visualisation for development-time verification.

This module is dev-only and not imported by production code.
"""

from __future__ import annotations

from datetime import date

from exam_scheduling.occupancy import SessionReader
from exam_scheduling.resolution import parse_date, to_minutes


def show_day(store: SessionReader, day: date | str) -> str:
    """Print ASCII occupancy view of every classroom for one date.

    Legend: '-' = free, 'A'-'Z' = booked (by session), 'x' = cancelled.
    Each row is one classroom, each char = 30 minutes (48 chars per day).
    Returns the string and also prints to stdout.
    """
    day = parse_date(day)
    lines: list[str] = []

    chars_per_day = 48
    minutes_per_char = 30

    # Header
    header_hours = "".join(f"{h:02d}" if h % 3 == 0 else "  " for h in range(24))
    lines.append(f"{day.strftime('%a %d %b'):>16s}  {header_hours}")

    session_labels: dict[str, str] = {}
    label_chars = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

    for classroom in store.list_classrooms():
        row = list("-" * chars_per_day)
        for session in store.sessions_for_classroom(classroom.classroom_id, day):
            if session.is_cancelled:
                mark = "x"
            else:
                if session.session_id not in session_labels:
                    idx = len(session_labels) % len(label_chars)
                    session_labels[session.session_id] = label_chars[idx]
                mark = session_labels[session.session_id]

            start_char = to_minutes(session.start) // minutes_per_char
            # Partial trailing blocks count as booked.
            end_char = -(-to_minutes(session.end) // minutes_per_char)
            for i in range(start_char, min(end_char, chars_per_day)):
                # Cancelled marks never cover a live booking.
                if row[i] in "-x":
                    row[i] = mark

        lines.append(f"{classroom.classroom_id:>16s}  {''.join(row)}")

    # Legend
    if session_labels:
        legend_parts = [f"{v}={k}" for k, v in session_labels.items()]
        lines.append(f"\nLegend: - = free, x = cancelled, {', '.join(legend_parts)}")

    result = "\n".join(lines)
    print(result)
    return result
