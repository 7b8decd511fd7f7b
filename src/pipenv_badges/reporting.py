"""
Console output for badges.

Provides color-coded console output using the Rich library.
"""

from typing import Any, List, Optional, Type

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .badges import BadgeData

BADGE_STYLES = {
    "brightgreen": "bold green",
    "green": "green",
    "blue": "bold blue",
    "orange": "bold dark_orange",
    "red": "bold red",
    "lightgrey": "grey70",
}


def badge_text(badge: BadgeData) -> Text:
    """Render a badge as ``label | message`` with the message in its color."""
    text = Text()
    text.append(f" {badge.label} ", style="white on grey23")
    text.append(f" {badge.message} ", style=BADGE_STYLES.get(badge.color, "bold"))
    return text


class BadgeReporter:
    """Formats and displays badges and service examples."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_badge(self, badge: BadgeData, title: Optional[str] = None) -> None:
        border = "red" if badge.is_error else "blue"
        self.console.print(
            Panel(
                badge_text(badge),
                title=f"[bold]{title}[/bold]" if title else None,
                border_style=border,
                expand=False,
            )
        )
        if badge.is_error:
            self.console.print(f"❌ {badge.message}", style="red")

    def print_examples(self, services: List[Type[Any]]) -> None:
        """Print every service's documented examples with static previews."""
        table = Table(
            title="📛 Badge Examples", box=box.ROUNDED, title_style="bold cyan"
        )
        table.add_column("Service", style="bold")
        table.add_column("Example")
        table.add_column("Path", style="cyan")
        table.add_column("Preview")

        for service in services:
            for example in service.examples():
                table.add_row(
                    service.category,
                    example.title,
                    service.route.url(**example.named_params),
                    badge_text(example.static_preview),
                )

        self.console.print(table)
