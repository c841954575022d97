# terminal output helpers: colors, step progress, dashboard cards
# everything goes through one stream so tests can capture it

from __future__ import annotations

import io
import sys
from typing import TextIO

from hostguard.core.dashboard import Dashboard, Section, Tone

BOX_WIDTH = 56


class ConsoleUI:
    """Prints scan progress and dashboards to a terminal with ANSI colors.

    Pass ``stream=None`` for a silent instance (used when the orchestrator
    runs without a terminal, e.g. from cron).
    """

    C = {
        'reset': '\033[0m', 'bold': '\033[1m',
        'cyan': '\033[96m', 'green': '\033[92m',
        'yellow': '\033[93m', 'red': '\033[91m',
        'blue': '\033[94m', 'dim': '\033[2m',
        'white': '\033[97m',
    }

    TONES = {
        Tone.GOOD: 'green',
        Tone.WARN: 'yellow',
        Tone.BAD: 'red',
        Tone.INFO: 'cyan',
        Tone.PLAIN: None,
    }

    def __init__(self, stream: TextIO | None = sys.stdout, color: bool = True):
        self.stream = stream
        self.color = color

    @classmethod
    def quiet(cls) -> "ConsoleUI":
        return cls(stream=None, color=False)

    def paint(self, text, color):
        if not self.color or color is None:
            return text
        return f"{self.C[color]}{text}{self.C['reset']}"

    def emit(self, text=""):
        if self.stream is not None:
            print(text, file=self.stream)

    def banner(self, title):
        rule = '═' * 59
        self.emit()
        self.emit(self.paint(rule, 'blue'))
        self.emit(self.paint(f"         {title}", 'blue'))
        self.emit(self.paint(rule, 'blue'))
        self.emit()

    def step(self, index, total, msg):
        self.emit()
        self.emit(self.paint(f"[{index}/{total}] {msg}", 'yellow'))

    def ok(self, msg):
        self.emit(f"{self.paint('✓', 'green')} {msg}")

    def warn(self, msg):
        self.emit(f"{self.paint('⚠', 'yellow')} {msg}")

    def fail(self, msg):
        self.emit(f"{self.paint('✗', 'red')} {msg}")

    def info(self, msg):
        self.emit(f"{self.paint('●', 'blue')} {msg}")

    def detail(self, msg):
        self.emit(f"  {msg}")

    # -- dashboard --

    def card(self, section: Section):
        title = f" {section.icon} {section.title.upper()}" if section.icon else f" {section.title.upper()}"
        self.emit(self.paint('╔' + '═' * BOX_WIDTH + '╗', 'cyan'))
        self.emit(self.paint('║', 'cyan') + title.ljust(BOX_WIDTH) + self.paint('║', 'cyan'))
        self.emit(self.paint('╚' + '═' * BOX_WIDTH + '╝', 'cyan'))

        width = max((len(row.label) for row in section.rows), default=0) + 2
        for row in section.rows:
            label = self.paint(f"{row.label}:".ljust(width), 'white')
            self.emit(f"  {label} {self.paint(row.value, self.TONES[row.tone])}")
        for note in section.notes:
            self.emit(f"  {note}")
        self.emit()

    def dashboard(self, board: Dashboard):
        self.banner("🛡️  SECURITY STATUS DASHBOARD")
        for section in board.sections:
            self.card(section)


def format_dashboard(board: Dashboard, color: bool = False) -> str:
    """Return *board* rendered as terminal text."""
    buf = io.StringIO()
    ConsoleUI(stream=buf, color=color).dashboard(board)
    return buf.getvalue()
