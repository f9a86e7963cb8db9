"""SchedulerSettings: tunables for availability fan-out, locking and generation."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping

ENV_PREFIX = "EXAM_SCHEDULING_"


@dataclass(frozen=True)
class SchedulerSettings:
    """Immutable settings, set once when the service is built.

    generation_deadline is in seconds; None lets generation run to completion.
    week_starts_on uses Monday = 0, so the default 6 gives Sunday-Saturday weeks.
    """

    max_workers: int = 8
    lock_timeout: float = 5.0
    generation_deadline: float | None = 30.0
    min_exam_duration: int = 15
    supervisors_per_session: int = 1
    skip_weekends: bool = False
    week_starts_on: int = 6

    def merged(self, overrides: Mapping[str, object]) -> SchedulerSettings:
        """Copy with the given fields replaced. Keys must already be validated."""
        return replace(self, **dict(overrides))


DEFAULT_SETTINGS = SchedulerSettings()


def _coerce(name: str, raw: str) -> object:
    """Convert an environment string to the type of the named field."""
    if name == "skip_weekends":
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if name == "generation_deadline" and raw.strip().lower() in ("", "none", "off"):
        return None
    if name in ("lock_timeout", "generation_deadline"):
        return float(raw)
    return int(raw)


def settings_from_env(
    base: SchedulerSettings = DEFAULT_SETTINGS,
    environ: Mapping[str, str] | None = None,
) -> SchedulerSettings:
    """Apply EXAM_SCHEDULING_<FIELD> environment overrides on top of base.

    Raises ValueError if a variable cannot be converted.
    """
    environ = os.environ if environ is None else environ
    overrides: dict[str, object] = {}
    for f in fields(SchedulerSettings):
        key = ENV_PREFIX + f.name.upper()
        if key in environ:
            try:
                overrides[f.name] = _coerce(f.name, environ[key])
            except ValueError as e:
                raise ValueError(f"{key}: {e}") from e
    return base.merged(overrides) if overrides else base
