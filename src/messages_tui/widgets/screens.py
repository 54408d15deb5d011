"""Full-window views shown before the client is connected."""
from __future__ import annotations

import logging

import segno
from rich.markup import escape as escape_markup
from textual.widgets import Static

logger = logging.getLogger(__name__)

_CENTERED_CSS = """
    {name} {{
        width: 100%;
        height: 1fr;
        content-align: center middle;
        text-align: center;
    }}
"""


# Room left around the code for the title, the instructions and borders.
QR_MARGIN_WIDTH = 10
QR_MARGIN_HEIGHT = 12


def render_qr(data: str, border: int = 4) -> list[str]:
    """Encode ``data`` and draw it with half blocks, two modules per line.

    Dark modules are left blank and light ones are filled, so the code reads
    correctly on a dark terminal background. Raises ``ValueError`` when the
    data does not fit in a QR code.
    """
    qr = segno.make(data, error="m", micro=False)
    matrix = [[bool(module) for module in row] for row in qr.matrix_iter(border=border)]
    rows: list[str] = []
    for y in range(0, len(matrix), 2):
        top = matrix[y]
        bottom = matrix[y + 1] if y + 1 < len(matrix) else None
        chars = []
        for x, dark in enumerate(top):
            if bottom is None:
                chars.append(" " if dark else "▀")
            elif dark == bottom[x]:
                chars.append(" " if dark else "█")
            else:
                chars.append("▄" if dark else "▀")
        rows.append("".join(chars))
    return rows


def qr_fits(rows: list[str], width: int | None, height: int | None) -> bool:
    if width is not None and rows and len(rows[0]) > width - QR_MARGIN_WIDTH:
        return False
    if height is not None and len(rows) > height - QR_MARGIN_HEIGHT:
        return False
    return True


class LoadingView(Static):
    DEFAULT_CSS = _CENTERED_CSS.format(name="LoadingView")

    def __init__(self, **kwargs: object) -> None:
        super().__init__("[bold]Messages TUI[/]\n\n[dim]Loading...[/dim]", **kwargs)


class PairingView(Static):
    """Pairing instructions plus the QR code the phone has to scan.

    ``_display_text`` mirrors what is rendered.
    """

    DEFAULT_CSS = _CENTERED_CSS.format(name="PairingView")

    def __init__(self, **kwargs: object) -> None:
        super().__init__("", **kwargs)
        self._display_text = ""
        self.show(None)

    def show(self, url: str | None, width: int | None = None, height: int | None = None) -> None:
        lines = ["[bold]Scan QR with Google Messages[/]", ""]
        if url:
            try:
                rows = render_qr(url)
            except ValueError:
                logger.exception("QR encoding failed")
                lines.append("Failed to generate QR code")
            else:
                if not qr_fits(rows, width, height):
                    lines.append("[dim](Resize terminal for better view)[/dim]")
                lines.extend(rows)
            lines.append(f"[dim]{escape_markup(url)}[/dim]")
        else:
            lines.append("[dim]Waiting for QR code...[/dim]")
        lines.extend(
            [
                "",
                "Open Google Messages on your phone",
                "Tap ⋮ → Device Pairing → QR Scanner",
            ]
        )
        text = "\n".join(lines)
        self._display_text = text
        self.update(text)


class ErrorView(Static):
    DEFAULT_CSS = _CENTERED_CSS.format(name="ErrorView") + """
    ErrorView {
        color: $error;
    }
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__("", **kwargs)
        self._display_text = ""

    def show(self, error: str | None, quit_key: str = "q") -> None:
        message = escape_markup(error or "An error occurred")
        text = (
            f"[bold]Error[/]\n\n{message}\n\n"
            f"[dim]Press {escape_markup(quit_key)} to quit[/dim]"
        )
        self._display_text = text
        self.update(text)
