"""Rich terminal rendering of progression state, for hosts that want it.

The engine modules never import this; hosts call it with the values the
engine returns.
"""

from __future__ import annotations

from datetime import datetime

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from faith_rank.achievements import AchievementStatus
from faith_rank.catalog import Catalog, default_catalog
from faith_rank.challenges import Challenge, challenge_state
from faith_rank.levels import points_to_next, progress_to_next, resolve_level
from faith_rank.stats import UserStats

console = Console()

# Level number -> Rich color
_LEVEL_COLORS: dict[int, str] = {
    1: "#27AE60",
    2: "#6BBBDD",
    3: "#F498B6",
    4: "#B8A0D9",
    5: "#E6C78C",
    6: "#F39C12",
    7: "#8E44AD",
    8: "#E74C3C",
    9: "#9B59B6",
    10: "#FFD700",
}

_CATEGORY_COLORS: dict[str, str] = {
    "prayer": "medium_purple1",
    "reading": "light_pink1",
    "community": "green3",
    "service": "red1",
    "growth": "magenta",
    "connection": "hot_pink",
}

_STATE_COLORS: dict[str, str] = {
    "pending": "grey50",
    "active": "cyan",
    "completed": "green",
    "expired": "red",
}


def level_color(level: int) -> str:
    return _LEVEL_COLORS.get(level, "white")


def format_number(n: float) -> str:
    """Format large numbers: 421543 -> '421.5K', 1200 -> '1,200', 1234567 -> '1.2M'."""
    n = int(n)
    if n >= 1_000_000:
        value = n / 1_000_000
        if value >= 100:
            return f"{value:.0f}M"
        return f"{value:.1f}M"
    if n >= 10_000:
        value = n / 1_000
        if value >= 1000:
            return f"{value:.0f}K"
        return f"{value:.1f}K"
    return f"{n:,}"


def _progress_bar(current: float, total: float, width: int = 20) -> str:
    """Render a progress bar as text: [████████░░░░░░░░░░░░]."""
    if total <= 0:
        return "[" + "█" * width + "]"
    ratio = max(0.0, min(current / total, 1.0))
    filled = int(ratio * width)
    empty = width - filled
    return "[" + "█" * filled + "░" * empty + "]"


def level_card_lines(stats: UserStats, catalog: Catalog | None = None) -> list[str]:
    """Markup lines for the level card: title, progress bar, streaks."""
    catalog = catalog or default_catalog()
    level = resolve_level(stats.total_points, catalog)
    color = level_color(level.level)
    pct = progress_to_next(stats.total_points, level.level, catalog)
    remaining = points_to_next(stats.total_points, catalog)

    lines: list[str] = [""]
    lines.append(f"  [bold {color}]Level {level.level} - {level.title}[/]")
    if stats.current_title and stats.current_title != level.title:
        lines.append(f"  Title: {stats.current_title}")

    bar = _progress_bar(pct, 100)
    if remaining > 0:
        lines.append(f"  {bar} {int(pct)}%  ({format_number(remaining)} to go)")
    else:
        lines.append(f"  {bar} MAX LEVEL")
    lines.append(f"  Total: [bold]{format_number(stats.total_points)}[/] points")

    lines.append("")
    lines.append(
        f"  \U0001f64f Prayer: {stats.streaks.prayer}d  |  "
        f"\U0001f4d6 Reading: {stats.streaks.reading}d  |  "
        f"\U0001f91d Community: {stats.streaks.community}d"
    )
    if level.perks:
        lines.append("")
        lines.append("  [bold]Perks:[/]")
        for perk in level.perks:
            lines.append(f"  ✨ {perk}")
    lines.append("")
    return lines


def print_level_card(
    stats: UserStats, catalog: Catalog | None = None, out: Console | None = None
) -> None:
    """Print the level panel for a user."""
    catalog = catalog or default_catalog()
    level = resolve_level(stats.total_points, catalog)
    panel = Panel(
        "\n".join(level_card_lines(stats, catalog)),
        title="[bold]FAITH RANK[/]",
        box=box.ROUNDED,
        border_style=level_color(level.level),
        width=60,
    )
    (out or console).print(panel)


def print_achievements(statuses: list[AchievementStatus], out: Console | None = None) -> None:
    """Print all achievements with progress bars, unlocked first (newest first)."""
    unlocked = [s for s in statuses if s.unlocked]
    locked = [s for s in statuses if not s.unlocked]
    unlocked.sort(key=lambda s: s.unlocked_at.isoformat() if s.unlocked_at else "", reverse=True)
    locked.sort(key=lambda s: s.progress, reverse=True)

    table = Table(
        title="Achievements",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold",
    )
    table.add_column("", width=2)
    table.add_column("Achievement", min_width=20)
    table.add_column("Category", width=11)
    table.add_column("Progress", min_width=18)
    table.add_column("Points", justify="right", width=6)
    table.add_column("Date", width=12)

    for status in unlocked + locked:
        definition = status.definition
        icon = "✅" if status.unlocked else "⏳"
        category = definition.category.value
        color = _CATEGORY_COLORS.get(category, "white")
        name_text = f"[bold]{definition.title}[/]\n{definition.description}"
        category_text = f"[{color}]{category.upper()}[/{color}]"
        bar = _progress_bar(status.progress, 100, width=10)
        progress_text = f"{bar} {int(status.progress)}%"
        date_text = status.unlocked_at.date().isoformat() if status.unlocked_at else ""
        table.add_row(icon, name_text, category_text, progress_text, str(definition.points), date_text)

    (out or console).print(table)


def print_challenge(
    challenge: Challenge, now: datetime | None = None, out: Console | None = None
) -> None:
    """Print a challenge card with per-task progress."""
    state = challenge_state(challenge, now).value
    color = _STATE_COLORS.get(state, "white")

    lines: list[str] = [""]
    lines.append(f"  [bold]{challenge.title}[/]  [{color}]{state.upper()}[/{color}]")
    if challenge.description:
        lines.append(f"  {challenge.description}")
    lines.append(
        f"  {challenge.difficulty.value.title()}  |  "
        f"{challenge.start_date:%Y-%m-%d} to {challenge.end_date:%Y-%m-%d}"
    )
    lines.append("")
    for task in challenge.tasks:
        icon = "✅" if task.completed else "⏳"
        bar = _progress_bar(task.progress, task.target, width=15)
        lines.append(
            f"  {icon} {task.title:<20s} {bar} "
            f"{format_number(task.progress)}/{format_number(task.target)}"
        )
    lines.append("")
    lines.append(f"  Overall: {_progress_bar(challenge.progress, 100)} {int(challenge.progress)}%")
    if challenge.rewards:
        lines.append("")
        lines.append("  [bold]Rewards:[/]")
        for reward in challenge.rewards:
            lines.append(f"  \U0001f381 {reward.description or reward.value}")
    lines.append("")

    panel = Panel(
        "\n".join(lines),
        title="[bold]Challenge[/]",
        box=box.ROUNDED,
        border_style=color,
        width=60,
    )
    (out or console).print(panel)


def print_unlocked(statuses: list[AchievementStatus], out: Console | None = None) -> None:
    """Print a celebration panel for newly unlocked achievements. Prints nothing if empty."""
    if not statuses:
        return
    lines: list[str] = [""]
    for status in statuses:
        definition = status.definition
        lines.append(f"  \U0001f3c6 [bold]{definition.title}[/] (+{definition.points})")
        if definition.blessing:
            lines.append(f"     {definition.blessing}")
    lines.append("")
    panel = Panel(
        "\n".join(lines),
        title="[bold]New Achievements[/]",
        box=box.ROUNDED,
        border_style="green",
        width=60,
    )
    (out or console).print(panel)
