"""Nord-themed console output shared by the command-line interface."""

import shutil
from typing import List

import pyfiglet
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from hostconf import __version__

APP_NAME: str = "hostconf"


# ----------------------------------------------------------------
# Nord-Themed Colors and Theme Setup
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette definitions for consistent UI styling."""

    POLAR_NIGHT_3: str = "#434C5E"
    SNOW_STORM_1: str = "#D8DEE9"
    SNOW_STORM_2: str = "#E5E9F0"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"

    @classmethod
    def get_frost_gradient(cls, steps: int = 4) -> List[str]:
        """Returns a gradient using the frost color palette."""
        frosts = [cls.FROST_1, cls.FROST_2, cls.FROST_3, cls.FROST_4]
        return frosts[:steps]


nord_theme = Theme(
    {
        "banner": f"bold {NordColors.FROST_2}",
        "header": f"bold {NordColors.FROST_2}",
        "info": NordColors.FROST_2,
        "warning": NordColors.YELLOW,
        "error": NordColors.RED,
        "debug": NordColors.POLAR_NIGHT_3,
        "success": NordColors.GREEN,
    }
)

console = Console(theme=nord_theme)


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def create_header(title: str = APP_NAME) -> Panel:
    """ASCII art banner whose font adapts to the terminal width."""
    term_width, _ = shutil.get_terminal_size((80, 24))
    font = "slant" if term_width >= 60 else "small"
    try:
        fig = pyfiglet.Figlet(font=font, width=min(term_width - 10, 120))
        ascii_art = fig.renderText(title)
    except Exception:
        ascii_art = f"  {title}  "
    lines = [line for line in ascii_art.splitlines() if line.strip()]
    colors = NordColors.get_frost_gradient(4)
    combined = Text()
    for i, line in enumerate(lines):
        combined.append(Text(line, style=f"bold {colors[i % len(colors)]}"))
        if i < len(lines) - 1:
            combined.append("\n")
    return Panel(
        combined,
        border_style=NordColors.FROST_1,
        padding=(1, 2),
        title=Text(f"v{__version__}", style=f"bold {NordColors.SNOW_STORM_2}"),
        title_align="right",
        box=box.ROUNDED,
    )


def print_message(text: str, style: str = "info", prefix: str = "•") -> None:
    console.print(f"[{style}]{prefix} {escape(text)}[/{style}]")


def print_success(message: str) -> None:
    print_message(message, "success", "✓")


def print_warning(message: str) -> None:
    print_message(message, "warning", "⚠")


def print_error(message: str) -> None:
    print_message(message, "error", "✗")


def print_step(message: str) -> None:
    print_message(message, "info", "→")


def summary_table(title: str, rows: List[tuple]) -> Table:
    table = Table(title=title, box=box.ROUNDED, show_lines=False)
    table.add_column("Setting", style=f"bold {NordColors.FROST_2}")
    table.add_column("Value", style=NordColors.SNOW_STORM_1)
    for key, value in rows:
        table.add_row(escape(str(key)), escape(str(value)))
    return table
