"""Level resolution from cumulative points. Pure functions, no side effects."""

from __future__ import annotations

from bisect import bisect_right

from faith_rank.catalog import Catalog, Level, default_catalog
from faith_rank.errors import InvalidArgument, InvariantViolation


def resolve_level(points: int, catalog: Catalog | None = None) -> Level:
    """Return the level band containing `points`.

    Band edges belong to the higher band: with bands 0-99 and 100-299,
    100 points resolves to the second band.
    """
    if points < 0:
        raise InvalidArgument(f"points must be >= 0, got {points}")
    catalog = catalog or default_catalog()
    levels = catalog.levels_in_order()
    position = bisect_right(catalog.level_floors, points) - 1
    if position < 0 or not levels[position].contains(points):
        raise InvariantViolation(f"no level covers {points} points")
    return levels[position]


def progress_to_next(points: int, level: int, catalog: Catalog | None = None) -> float:
    """Percentage (0-100) of the way from `level` to the next one.

    The top tier saturates at 100.
    """
    catalog = catalog or default_catalog()
    current = catalog.level_by_number(level)
    upcoming = catalog.next_level(level)
    if upcoming is None:
        return 100.0
    span = upcoming.min_points - current.min_points
    ratio = (points - current.min_points) / span * 100
    return max(0.0, min(100.0, ratio))


def points_to_next(points: int, catalog: Catalog | None = None) -> int:
    """Points still needed to reach the next level. 0 at the top tier."""
    catalog = catalog or default_catalog()
    current = resolve_level(points, catalog)
    upcoming = catalog.next_level(current.level)
    if upcoming is None:
        return 0
    return upcoming.min_points - points


def level_up_between(before: int, after: int, catalog: Catalog | None = None) -> Level | None:
    """Return the new level if moving from `before` to `after` points crosses a band, else None."""
    catalog = catalog or default_catalog()
    old = resolve_level(before, catalog)
    new = resolve_level(after, catalog)
    if new.level > old.level:
        return new
    return None
