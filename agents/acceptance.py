from __future__ import annotations

import itertools
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from core.models import Shift, Suggestion
from agents.learning import LearningFeedbackAgent


class ShiftStore(Protocol):
    """What acceptance needs from the persistence layer."""

    def find_shift(self, employee_id: str, day: date) -> Optional[Shift]: ...

    def create_shift(self, shift: Shift) -> Optional[str]: ...

    def update_shift(self, shift_id: str, shift: Shift) -> Optional[str]: ...


class InMemoryShiftStore:
    """Dict-backed ShiftStore, keyed by (employee id, date)."""

    def __init__(self, shifts: Sequence[Shift] = ()):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._by_key: Dict[Tuple[str, date], Shift] = {}
        for s in shifts:
            self._by_key[(s.employee_id, s.date)] = s

    def find_shift(self, employee_id: str, day: date) -> Optional[Shift]:
        with self._lock:
            return self._by_key.get((employee_id, day))

    def create_shift(self, shift: Shift) -> Optional[str]:
        with self._lock:
            shift_id = f"shift-{next(self._ids)}"
            self._by_key[(shift.employee_id, shift.date)] = replace(shift, id=shift_id)
            return shift_id

    def update_shift(self, shift_id: str, shift: Shift) -> Optional[str]:
        with self._lock:
            self._by_key[(shift.employee_id, shift.date)] = replace(shift, id=shift_id)
            return shift_id

    def all_shifts(self) -> List[Shift]:
        with self._lock:
            return sorted(self._by_key.values(), key=lambda s: (s.date, s.start_time, s.employee_id))


@dataclass
class AcceptanceOutcome:
    employee_name: str
    date: date
    record_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AcceptanceReport:
    successes: List[AcceptanceOutcome] = field(default_factory=list)
    failures: List[AcceptanceOutcome] = field(default_factory=list)

    @property
    def message(self) -> str:
        msg = f"Accepted {len(self.successes)} shifts"
        if self.failures:
            msg += f" ({len(self.failures)} failed)"
        return msg


@dataclass
class AcceptanceAgent:
    """
    Persists a balanced rota: one create-or-update per suggestion, keyed by
    (employee id, date), fanned out over a bounded thread pool.

    A failing operation never stops the others; every outcome is collected
    and reported in the order the suggestions were given.
    """
    store: ShiftStore
    max_workers: int = 8
    recorder: Optional[LearningFeedbackAgent] = None

    def accept(self, suggestions: Sequence[Suggestion]) -> AcceptanceReport:
        report = AcceptanceReport()
        if not suggestions:
            return report

        workers = max(1, min(self.max_workers, len(suggestions)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(self._accept_one, suggestions))

        for suggestion, outcome in zip(suggestions, outcomes):
            if outcome.ok:
                report.successes.append(outcome)
                if self.recorder is not None:
                    self.recorder.record_acceptance(suggestion)
            else:
                report.failures.append(outcome)
        return report

    def _accept_one(self, suggestion: Suggestion) -> AcceptanceOutcome:
        outcome = AcceptanceOutcome(employee_name=suggestion.employee_name, date=suggestion.date)
        try:
            existing = self.store.find_shift(suggestion.employee_id, suggestion.date)
            shift = suggestion.to_shift()
            if existing is not None and existing.id:
                record_id = self.store.update_shift(existing.id, shift)
            else:
                record_id = self.store.create_shift(shift)
        except Exception as exc:  # isolate per-suggestion failures
            outcome.error = str(exc) or exc.__class__.__name__
            return outcome

        if not record_id:
            outcome.error = "No ID returned"
        else:
            outcome.record_id = record_id
        return outcome
