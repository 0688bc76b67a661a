"""
Shared error-reporting channel.

Every user-facing failure ends up here as one ``ErrorReport``: a human readable
message, an optional contextual note, and the underlying exception when there
is one. The host UI subscribes and decides how to display the current report.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class ReportLevel(str, Enum):
    """Severity of a report shown to the user"""

    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class ErrorReport:
    """A single user-visible message plus the diagnostic error object"""

    message: str
    level: ReportLevel = ReportLevel.ERROR
    note: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def is_error(self) -> bool:
        return self.level == ReportLevel.ERROR


ReportListener = Callable[[Optional[ErrorReport]], None]


class ErrorReporter:
    """Holds the current report and fans changes out to subscribers."""

    def __init__(self) -> None:
        self._current: Optional[ErrorReport] = None
        self._history: List[ErrorReport] = []
        self._listeners: List[ReportListener] = []

    @property
    def current(self) -> Optional[ErrorReport]:
        return self._current

    @property
    def history(self) -> List[ErrorReport]:
        return list(self._history)

    def report_error(
        self,
        message: str,
        error: Optional[BaseException] = None,
        note: Optional[str] = None,
        log: Optional[logging.Logger] = None,
    ) -> ErrorReport:
        """Log an error and make it the current user-facing report."""
        log_msg = message if not note else f"{message}\n(note: {note})"
        (log or logger).error(log_msg, exc_info=error)
        return self._publish(ErrorReport(message=message, level=ReportLevel.ERROR, note=note, error=error))

    def report_info(self, message: str, log: Optional[logging.Logger] = None) -> ErrorReport:
        """Soft informational message, never carries an error object"""
        (log or logger).info(message)
        return self._publish(ErrorReport(message=message, level=ReportLevel.INFO))

    def reset(self) -> None:
        """Clear the current report (history is kept for diagnostics)"""
        if self._current is None:
            return
        self._current = None
        self._notify(None)

    def subscribe(self, listener: ReportListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it"""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, report: ErrorReport) -> ErrorReport:
        self._current = report
        self._history.append(report)
        self._notify(report)
        return report

    def _notify(self, report: Optional[ErrorReport]) -> None:
        for listener in list(self._listeners):
            try:
                listener(report)
            except Exception:
                logger.exception("Error report listener failed")
