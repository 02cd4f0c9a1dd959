# ui/rich_display.py
"""Rich live panel that renders lesson generation progress."""

from __future__ import annotations

import time
from typing import Optional

from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.text import Text

from config import settings
from models import ProgressUpdate


class RichDisplayManager:
    """Renders lesson progress updates in a Rich live panel.

    Instances are usable directly as a progress sink.
    """

    def __init__(self, title: str = "Lesson Generation Progress") -> None:
        self.live: Optional[Live] = None
        self.group: Optional[Group] = None
        self.status_text_lesson: Text = Text("Lesson: N/A")
        self.status_text_phase: Text = Text("Phase: N/A")
        self.status_text_current_step: Text = Text("Current Step: Initializing...")
        self.status_text_elapsed_time: Text = Text("Elapsed Time: 0s")
        self.progress_bar: ProgressBar = ProgressBar(total=100, completed=0)
        self.run_start_time: float = 0.0

        if settings.ENABLE_RICH_PROGRESS:
            self.group = Group(
                self.status_text_lesson,
                self.status_text_phase,
                self.status_text_current_step,
                self.progress_bar,
                self.status_text_elapsed_time,
            )
            self.live = Live(
                Panel(self.group, title=title, border_style="blue", expand=True),
                refresh_per_second=4,
                transient=False,
                redirect_stdout=False,
                redirect_stderr=False,
            )

    def start(self, lesson_label: str | None = None) -> None:
        self.run_start_time = time.time()
        if lesson_label:
            self.status_text_lesson.plain = f"Lesson: {lesson_label}"
        if self.live:
            self.live.start()

    def stop(self) -> None:
        if self.live and self.live.is_started:
            self.live.stop()

    def __call__(self, update: ProgressUpdate) -> None:
        self.update(update)

    def update(self, update: ProgressUpdate) -> None:
        if not (self.live and self.group):
            return
        phase = update.phase if update.section is None else f"{update.phase} ({update.section})"
        self.status_text_phase.plain = f"Phase: {phase}"
        self.status_text_current_step.plain = f"Current Step: {update.step}"
        self.progress_bar.update(completed=update.progress)
        elapsed_seconds = time.time() - self.run_start_time if self.run_start_time else 0.0
        self.status_text_elapsed_time.plain = (
            f"Elapsed Time: {time.strftime('%H:%M:%S', time.gmtime(elapsed_seconds))}"
        )
