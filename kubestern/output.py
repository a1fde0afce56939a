"""
Synchronized terminal output.

All stream workers and the discovery loop print through one OutputWriter.
Each call to ``emit`` holds the writer's lock for exactly one formatted line,
so lines coming from different pods never mix, and no caller ever holds the
lock while waiting on the network.

Colors come out as terminal colors rendered by ``rich``, which also decides
whether the sink supports them. The text itself is written as is: no markup
parsing, highlighting, wrapping or tab expansion touches log content.

Key Components:
- OutputWriter: Thread-safe single sink for every printed line
- format_log_line: Build the "<label>:<padding> [timestamp] text" line

Example:
    ```python
    writer = OutputWriter(color_mode="always")
    writer.set_padding(12)
    writer.emit_log("web-1", "GET / 200", palette.assign(key))
    writer.error("failed to list pods: connection refused")
    ```
"""

import logging
import sys
import threading
from typing import Callable, Optional, TextIO

from rich.color import Color as RichColor
from rich.console import Console
from rich.style import Style

from .constants import DEFAULT_COLOR_MODE
from .exceptions import ConfigError, WriteError
from .models import Color

log = logging.getLogger('kubestern.output')


def format_log_line(label: str, text: str, padding: int = 0, timestamp: Optional[str] = None) -> str:
    """
    Format a log line with its instance label.

    Args:
        label: Instance label (pod, pod/container or namespace/pod)
        text: Line content
        padding: Width the label column is padded to
        timestamp: Optional timestamp printed between label and text

    Returns:
        str: The formatted line, without trailing newline
    """
    pad = " " * max(padding - len(label), 0)
    if timestamp:
        return f"{label}:{pad} {timestamp} {text}"
    return f"{label}:{pad} {text}"


def _make_console(stream: TextIO, color_mode: str) -> Console:
    if color_mode == "always":
        return Console(file=stream, force_terminal=True, color_system="truecolor", no_color=False)
    if color_mode == "never":
        return Console(file=stream, color_system=None)
    if color_mode == "auto":
        return Console(file=stream)
    raise ConfigError(f"Unknown color mode: {color_mode}")


class OutputWriter:
    """
    Single shared sink guaranteeing one whole line per write.

    The writer owns the lock; callers never acquire it themselves. Any
    failure of the underlying stream is fatal: the writer remembers the first
    WriteError, notifies ``on_failure`` once, and raises on every later call.

    The console only decides which color system the sink supports (terminal
    detection, NO_COLOR, FORCE_COLOR). Lines are written byte for byte, with
    the color escape rendered around them, so tabs and control characters in
    log content reach the sink untouched.

    Attributes:
        default_color: Color of informational and error messages
        padding: Width of the label column (updated by the discovery loop)
        on_failure: Callback invoked once with the first WriteError
    """

    def __init__(self, stream: Optional[TextIO] = None, color_mode: str = DEFAULT_COLOR_MODE,
                 default_color: Optional[Color] = None,
                 on_failure: Optional[Callable[[WriteError], None]] = None):
        self._console = _make_console(stream if stream is not None else sys.stdout, color_mode)
        self._color_system = None if self._console.no_color else self._console._color_system
        self._lock = threading.Lock()
        self.default_color = default_color
        self.padding = 0
        self.on_failure = on_failure
        self.failure: Optional[WriteError] = None

    def set_padding(self, padding: int) -> None:
        with self._lock:
            self.padding = padding

    def _render(self, message: str, color: Optional[Color]) -> str:
        if color is None or self._color_system is None:
            return message
        r, g, b = color.to_rgb()
        return Style(color=RichColor.from_rgb(r, g, b)).render(message, color_system=self._color_system)

    def emit(self, message: str, color: Optional[Color] = None) -> None:
        """
        Write one complete line atomically.

        Trailing newlines are stripped and exactly one newline is written.

        Raises:
            WriteError: If the sink has failed, now or on an earlier call
        """
        line = self._render(message.rstrip("\r\n"), color) + "\n"
        error = None
        with self._lock:
            if self.failure is not None:
                raise self.failure
            try:
                sink = self._console.file
                sink.write(line)
                sink.flush()
            except (OSError, ValueError) as e:
                self.failure = error = WriteError(f"failed to write output: {e}")
        if error is not None:
            log.error(f"[output] {error}")
            if self.on_failure is not None:
                self.on_failure(error)
            raise error

    def emit_log(self, label: str, text: str, color: Optional[Color], timestamp: Optional[str] = None) -> None:
        """Format and write a log line, padded to the current label width."""
        self.emit(format_log_line(label, text, self.padding, timestamp), color)

    def info(self, message: str) -> None:
        """Write an informational line in the default color."""
        self.emit(message, self.default_color)

    def error(self, message: str) -> None:
        """Write an error line, tagged with [error], in the default color."""
        self.emit(f"[error] {message}", self.default_color)
