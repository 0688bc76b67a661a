"""
Test helper functions for common testing operations
"""

from collections import Counter
from typing import List, Optional

from feedsession.core.error_reporter import ErrorReport, ErrorReporter
from feedsession.schemas.load_state import LoadTransition


class ManualClock:
    """Monotonic clock the test moves by hand"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ReportRecorder:
    """Collects every report (and reset) an ErrorReporter publishes"""

    def __init__(self, reporter: ErrorReporter):
        self.events: List[Optional[ErrorReport]] = []
        self.unsubscribe = reporter.subscribe(self.events.append)

    @property
    def reports(self) -> List[ErrorReport]:
        return [e for e in self.events if e is not None]

    @property
    def errors(self) -> List[ErrorReport]:
        return [r for r in self.reports if r.is_error]

    @property
    def messages(self) -> List[str]:
        return [r.message for r in self.reports]


def assert_paired_transitions(transitions: List[LoadTransition]) -> None:
    """Every True transition has exactly one later False transition with the same started_at"""
    starts = Counter(t.started_at for t in transitions if t.is_loading)
    settles = Counter(t.started_at for t in transitions if not t.is_loading)
    assert starts == settles, f"Unpaired transitions: starts={starts} settles={settles}"

    open_runs: Counter = Counter()
    for t in transitions:
        if t.is_loading:
            open_runs[t.started_at] += 1
        else:
            assert open_runs[t.started_at] > 0, f"Settle for {t.started_at} before its start"
            open_runs[t.started_at] -= 1


def assert_no_sensitive_data_in_logs(caplog, sensitive_patterns: List[str]) -> None:
    """Assert that sensitive data patterns don't appear in logs"""
    all_logs = " ".join([record.getMessage() for record in caplog.records])

    for pattern in sensitive_patterns:
        assert pattern not in all_logs, f"Sensitive pattern '{pattern}' found in logs"
