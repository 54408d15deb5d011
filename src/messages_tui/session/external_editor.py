"""Compose a message in the user's $EDITOR."""
from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from ..config import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_EDITOR = "nvim"
_SCRATCH_PREFIX = "messages-tui-compose-"


class EditorError(Exception):
    """The editor could not be started, failed, or its file could not be read."""


@contextmanager
def scratch_file(initial: str = "") -> Iterator[Path]:
    """Temp file pre-filled with ``initial``; removed on every exit path."""
    try:
        fd, name = tempfile.mkstemp(prefix=_SCRATCH_PREFIX, suffix=".txt")
    except OSError as exc:
        raise EditorError(f"failed to create temp file: {exc}") from exc
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(initial)
        yield path
    finally:
        path.unlink(missing_ok=True)


def resolve_editor(configured: str | None) -> str:
    if configured and configured.strip():
        return configured.strip()
    return os.environ.get("EDITOR", "").strip() or DEFAULT_EDITOR


class ExternalEditor:
    """Runs ``{editor} {*args} {scratch file}`` attached to the terminal.

    :meth:`compose` blocks until the editor exits; call it from a worker
    thread while the UI is suspended.
    """

    def __init__(
        self,
        command: str | None = None,
        args: Sequence[str] = (),
        *,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.command = resolve_editor(command)
        self.args = list(args)
        self._run = runner

    @classmethod
    def from_config(cls, config: AppConfig) -> ExternalEditor:
        return cls(config.editor, config.editor_args)

    def argv(self, path: Path) -> list[str]:
        return [*shlex.split(self.command), *self.args, str(path)]

    def compose(self, initial: str = "") -> str | None:
        """Return the edited text stripped of surrounding whitespace.

        ``None`` means the user left the file blank (treated as cancel).
        Raises EditorError when the editor cannot run or exits non-zero.
        """
        with scratch_file(initial) as path:
            argv = self.argv(path)
            logger.info("Launching editor: %s", argv[0])
            try:
                completed = self._run(argv, check=False)
            except OSError as exc:
                raise EditorError(f"editor failed: {exc}") from exc
            if completed.returncode != 0:
                raise EditorError(f"editor failed: exit status {completed.returncode}")
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise EditorError(f"failed to read temp file: {exc}") from exc

        text = content.strip()
        return text or None
