"""
rtrace CLI — styled output primitives built on Click.

    success(), error(), warning(), info(), dim()
    banner()   — file header between heavy rules
    kv()       — aligned key-value pair
    table()    — minimal aligned table
    bullet()   — bulleted list item

click.style handles NO_COLOR / TERM=dumb.
"""

from __future__ import annotations

import shutil
from typing import Optional, Sequence

import click

_TERM_WIDTH: Optional[int] = None

_H_RULE = "\u2550"   # ═
_L_H = "\u2500"      # ─
_BULLET = "\u2022"   # •
_CHECK = "\u2714"    # ✔


def _tw() -> int:
    """Terminal width, cached and clamped to a sane range."""
    global _TERM_WIDTH
    if _TERM_WIDTH is None:
        _TERM_WIDTH = max(40, min(shutil.get_terminal_size((80, 24)).columns, 120))
    return _TERM_WIDTH


def success(message: str) -> None:
    """Print success message in green with a check mark."""
    click.echo(click.style(f"{_CHECK} {message}", fg="green"))


def error(message: str) -> None:
    click.echo(click.style(message, fg="red"))


def warning(message: str) -> None:
    click.echo(click.style(message, fg="yellow"))


def info(message: str) -> None:
    click.echo(click.style(message, fg="cyan"))


def dim(message: str) -> None:
    click.echo(click.style(message, dim=True))


def banner(title: str, *, width: Optional[int] = None, fg: str = "cyan") -> None:
    """
    Print a title between two heavy rules.

        ═══════════════════════════════════════════
        route-trace-checkout-2026-10-19-142501.json
        ═══════════════════════════════════════════
    """
    w = width or min(_tw(), 60)
    click.echo()
    click.echo(_H_RULE * w)
    click.echo(click.style(title, fg=fg, bold=True))
    click.echo(_H_RULE * w)


def kv(key: str, value: object, *, key_width: int = 14, indent: int = 2) -> None:
    """
    Print an aligned key-value pair.

        Control:      logs/traces/control.json
    """
    prefix = " " * indent
    k = click.style(f"{key}:", fg="white")
    padding = " " * max(1, key_width - len(key) - 1)
    click.echo(f"{prefix}{k}{padding}{click.style(str(value), fg='cyan')}")


def bullet(text: str, *, indent: int = 2) -> None:
    click.echo(f"{' ' * indent}{click.style(_BULLET, fg='cyan')} {text}")


def table(
    headers: Sequence[str],
    rows: Sequence[Sequence[object]],
    *,
    header_fg: str = "cyan",
    indent: int = 2,
) -> None:
    """
    Print a minimal aligned table.

        Metric          Value
        ─────────────── ────────────────
        Route           checkout.store
    """
    prefix = " " * indent
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row[:len(headers)]):
            widths[i] = max(widths[i], len(str(cell)))
    widths = [w + 2 for w in widths]

    hdr = "".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    click.echo(f"{prefix}{click.style(hdr, fg=header_fg, bold=True)}")
    click.echo(f"{prefix}{click.style(''.join(_L_H * w for w in widths), dim=True)}")
    for row in rows:
        line = "".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row[:len(headers)]))
        click.echo(f"{prefix}{line}")
