"""Outcrop ground motion input.

The dynamic stage injects the outcrop motion at the compliant base as an
equivalent nodal force proportional to the outcrop VELOCITY history. Motions
may be supplied as acceleration or velocity; acceleration is integrated with
the trapezoid rule.

Each motion carries an explicit time vector (non-uniform steps allowed) and an
``is_initialized`` predicate. A run needs at least one initialized horizontal
motion, otherwise model construction fails.

Units: m/s (velocity), m/s² (acceleration), s (time).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from siteresponse.errors import ConfigurationError

VELOCITY = "velocity"
ACCELERATION = "acceleration"


@dataclass(frozen=True)
class OutcropMotion:
    """A recorded (or synthetic) outcrop motion in one horizontal direction.

    Attributes:
        times:   Strictly increasing time stamps (s).
        values:  Motion ordinates, same length as ``times``.
        kind:    "velocity" or "acceleration".
        name:    Label for logs and the generated script.
    """
    times: Tuple[float, ...] = ()
    values: Tuple[float, ...] = ()
    kind: str = VELOCITY
    name: str = "motion"

    def __post_init__(self):
        object.__setattr__(self, "times", tuple(float(t) for t in self.times))
        object.__setattr__(self, "values", tuple(float(v) for v in self.values))
        if self.kind not in (VELOCITY, ACCELERATION):
            raise ConfigurationError(
                f"Motion '{self.name}': kind must be '{VELOCITY}' or "
                f"'{ACCELERATION}', got '{self.kind}'."
            )
        if len(self.times) != len(self.values):
            raise ConfigurationError(
                f"Motion '{self.name}': {len(self.times)} time stamps but "
                f"{len(self.values)} values."
            )
        for t0, t1 in zip(self.times, self.times[1:]):
            if t1 <= t0:
                raise ConfigurationError(
                    f"Motion '{self.name}': time stamps must increase "
                    f"(found {t0} followed by {t1})."
                )

    @classmethod
    def empty(cls, name: str = "none") -> "OutcropMotion":
        """An uninitialized motion (direction not excited)."""
        return cls(name=name)

    @classmethod
    def uniform(cls, dt: float, values: Sequence[float], kind: str = VELOCITY,
                name: str = "motion") -> "OutcropMotion":
        """Build a motion sampled at a constant step ``dt`` starting at t = 0."""
        if dt <= 0.0:
            raise ConfigurationError(f"Motion '{name}': dt must be positive, got {dt}.")
        times = [i * dt for i in range(len(values))]
        return cls(times=tuple(times), values=tuple(values), kind=kind, name=name)

    @property
    def is_initialized(self) -> bool:
        return len(self.times) >= 2

    @property
    def duration(self) -> float:
        if not self.is_initialized:
            return 0.0
        return self.times[-1] - self.times[0]

    def dt_vector(self) -> List[float]:
        """Time increments of the record."""
        return [t1 - t0 for t0, t1 in zip(self.times, self.times[1:])]

    def min_dt(self) -> float:
        steps = self.dt_vector()
        return min(steps) if steps else 0.0

    def velocity(self) -> Tuple[Tuple[float, ...], Tuple[float, ...]]:
        """Return (times, velocities); acceleration is integrated (trapezoid)."""
        if self.kind == VELOCITY:
            return self.times, self.values
        vel = [0.0]
        for i in range(1, len(self.times)):
            dt = self.times[i] - self.times[i - 1]
            vel.append(vel[-1] + 0.5 * dt * (self.values[i] + self.values[i - 1]))
        return self.times, tuple(vel)


def load_motion_file(path: str | Path, kind: str = VELOCITY,
                     dt: Optional[float] = None, scale: float = 1.0,
                     name: Optional[str] = None) -> OutcropMotion:
    """Read a motion from a plain text file.

    Two layouts are accepted: two columns (time, value) per line, or one value
    per token with a constant ``dt``. Blank lines and lines starting with
    ``#`` are skipped.

    Args:
        path:   Text file.
        kind:   "velocity" or "acceleration".
        dt:     Constant step for single-column files.
        scale:  Factor applied to every value (e.g. 9.81 for records in g).
        name:   Motion label (defaults to the file stem).

    Raises:
        ConfigurationError: missing file, malformed numbers, or a single-column
            file without ``dt``.
    """
    path = Path(path)
    label = name or path.stem
    try:
        text = path.read_text()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read motion file {path}: {exc}") from exc

    rows = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            rows.append([float(tok) for tok in line.replace(",", " ").split()])
        except ValueError as exc:
            raise ConfigurationError(f"Malformed line in {path}: '{line}'") from exc

    if rows and all(len(r) == 2 for r in rows):
        times = [r[0] for r in rows]
        values = [r[1] * scale for r in rows]
        return OutcropMotion(times=tuple(times), values=tuple(values),
                             kind=kind, name=label)

    if dt is None:
        raise ConfigurationError(
            f"Motion file {path} is not two-column (time, value); supply dt."
        )
    values = [v * scale for row in rows for v in row]
    return OutcropMotion.uniform(dt, values, kind=kind, name=label)
