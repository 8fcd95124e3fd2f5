"""Console logging setup.

Every action is announced as a leveled, colored line rendered through rich:

    [INFO]  Deploying Prometheus...
    [WARN]  Rollout of deployment/grafana not complete after 120s
    [ERROR] Cannot connect to a Kubernetes cluster. Ensure your kubeconfig is set.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Optional, TextIO

from rich.console import Console
from rich.text import Text


@dataclass(frozen=True)
class LogStyle:
    """Level tags and the rich styles they are printed in."""
    tags: dict = field(default_factory=lambda: {
        logging.DEBUG: '[DEBUG]',
        logging.INFO: '[INFO]',
        logging.WARNING: '[WARN]',
        logging.ERROR: '[ERROR]',
        logging.CRITICAL: '[ERROR]',
    })
    styles: dict = field(default_factory=lambda: {
        logging.DEBUG: 'cyan',
        logging.INFO: 'green',
        logging.WARNING: 'bold yellow',
        logging.ERROR: 'red',
        logging.CRITICAL: 'bold red',
    })
    tag_width: int = 7

    def render(self, levelno: int, levelname: str, message: str) -> Text:
        """Build the line for one message; only the tag is styled."""
        tag = self.tags.get(levelno, f'[{levelname}]')
        padding = ' ' * max(1, self.tag_width - len(tag) + 1)
        return Text.assemble((tag, self.styles.get(levelno, '')), padding + message)


class ConsoleHandler(logging.Handler):
    """Print each record as a leveled line on a rich Console."""

    def __init__(self, console: Console, style: Optional[LogStyle] = None):
        super().__init__()
        self.console = console
        self.log_style = style or LogStyle()
        self.setFormatter(logging.Formatter('%(message)s'))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.log_style.render(record.levelno, record.levelname, self.format(record))
            self.console.print(line, soft_wrap=True)
        except Exception:
            self.handleError(record)


def _stream_supports_color(stream: object) -> bool:
    if os.environ.get('NO_COLOR'):
        return False
    isatty = getattr(stream, 'isatty', None)
    if callable(isatty):
        try:
            return bool(isatty())
        except ValueError:
            return False
    return False


def make_console(stream: Optional[TextIO] = None, color: Optional[bool] = None) -> Console:
    """Console writing to stream (stdout when None).

    color=None colors only when the stream is a terminal and NO_COLOR is unset.
    """
    if color is None:
        color = _stream_supports_color(stream or sys.stdout)
    if color:
        return Console(file=stream, force_terminal=True, color_system='standard',
                       highlight=False, emoji=False, soft_wrap=True)
    return Console(file=stream, color_system=None, highlight=False, emoji=False, soft_wrap=True)


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, '_monstack', False):
            logger.removeHandler(handler)
            handler.close()


def configure_logging(
    verbose: bool = False,
    color: Optional[bool] = None,
    stream: Optional[TextIO] = None,
    style: Optional[LogStyle] = None,
) -> logging.Handler:
    """Install the console handler on the root logger.

    Calling again replaces the previously installed handler.
    """
    root = logging.getLogger()
    _reset_handlers(root)

    handler = ConsoleHandler(make_console(stream, color), style=style)
    handler._monstack = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Client library chatter only when something is wrong
    for noisy in ('kubernetes', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return handler
