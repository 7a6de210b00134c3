from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from core.models import AdjustmentKind, AIInsights, LearningEvent, Shift, Suggestion
from core.settings import DEFAULT_SETTINGS, EngineSettings
from core.timeutils import format_time, parse_date

ShiftLike = Union[Shift, Suggestion]


def shift_snapshot(item: ShiftLike) -> Dict[str, str]:
    """Flat, JSON-friendly copy of the attributes a user can adjust."""
    return {
        "employee_id": item.employee_id,
        "employee_name": item.employee_name,
        "date": item.date.isoformat(),
        "start_time": format_time(item.start_time),
        "end_time": format_time(item.end_time),
        "department": item.department,
        "role": item.role,
    }


@dataclass
class LearningFeedbackAgent:
    """
    Append-only log of how people corrected generated rotas.

    Nothing here changes a shift. The events are summarised into
    AIInsights, whose confidence grows with the number of events seen and
    saturates at `confidence_saturation_events`.
    """
    clock: Callable[[], datetime] = datetime.now
    settings: EngineSettings = DEFAULT_SETTINGS
    _events: List[LearningEvent] = field(default_factory=list, repr=False)

    @property
    def events(self) -> Tuple[LearningEvent, ...]:
        return tuple(self._events)

    def record(
        self,
        kind: AdjustmentKind,
        original: ShiftLike,
        new: Optional[ShiftLike] = None,
        reason: str = "",
        demand_context: Optional[Dict[str, Any]] = None,
    ) -> LearningEvent:
        event = LearningEvent(
            id=uuid.uuid4().hex,
            timestamp=self.clock(),
            employee_id=original.employee_id,
            date=original.date,
            kind=kind,
            original_shift=shift_snapshot(original),
            new_shift=shift_snapshot(new) if new is not None else None,
            reason=reason,
            demand_context=demand_context,
        )
        self._events.append(event)
        return event

    def record_acceptance(self, suggestion: Suggestion, reason: str = "Accepted suggestion") -> LearningEvent:
        return self.record(AdjustmentKind.ADDED, suggestion, reason=reason)

    def record_modification(self, original: ShiftLike, new: ShiftLike, reason: str = "") -> LearningEvent:
        return self.record(AdjustmentKind.MODIFIED, original, new=new, reason=reason)

    def record_deletion(self, original: ShiftLike, reason: str = "") -> LearningEvent:
        return self.record(AdjustmentKind.DELETED, original, reason=reason)

    def summarize(self) -> AIInsights:
        insights = AIInsights()
        if not self._events:
            return insights

        modifications = [e for e in self._events if e.kind == AdjustmentKind.MODIFIED]
        deletions = [e for e in self._events if e.kind == AdjustmentKind.DELETED]

        if modifications:
            insights.patterns["user_preferences"] = {
                "common_changes": len(modifications),
                "frequent_adjustments": modifications[-10:],
            }
            insights.recommendations.append(
                "Consider adjusting default shift times based on user modifications"
            )
        if deletions:
            insights.patterns["avoided_shifts"] = {
                "deleted_shifts": len(deletions),
                "common_reasons": [e.reason for e in deletions],
            }
            insights.recommendations.append(
                "Review frequently deleted shifts to improve initial scheduling"
            )

        insights.modifications = len(modifications)
        insights.deletions = len(deletions)
        insights.confidence = min(
            1.0, len(self._events) / float(self.settings.confidence_saturation_events)
        )
        return insights

    # --- persistence (JSON lines) -----------------------------------------

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            for event in self._events:
                fh.write(json.dumps(_event_to_dict(event)) + "\n")

    def load(self, path: Path) -> int:
        """Append events stored at `path`; returns how many were read."""
        path = Path(path)
        if not path.exists():
            return 0
        loaded: List[LearningEvent] = []
        with path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    loaded.append(_event_from_dict(json.loads(line)))
                except (KeyError, ValueError) as exc:
                    raise ValueError(f"{path}:{lineno}: bad learning event ({exc})") from exc
        self._events.extend(loaded)
        return len(loaded)


def _event_to_dict(event: LearningEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "timestamp": event.timestamp.isoformat(),
        "employee_id": event.employee_id,
        "date": event.date.isoformat(),
        "kind": event.kind.value,
        "original_shift": event.original_shift,
        "new_shift": event.new_shift,
        "reason": event.reason,
        "demand_context": event.demand_context,
    }


def _event_from_dict(raw: Dict[str, Any]) -> LearningEvent:
    return LearningEvent(
        id=raw["id"],
        timestamp=datetime.fromisoformat(raw["timestamp"]),
        employee_id=raw["employee_id"],
        date=parse_date(raw["date"]),
        kind=AdjustmentKind(raw["kind"]),
        original_shift=raw.get("original_shift") or {},
        new_shift=raw.get("new_shift"),
        reason=raw.get("reason", ""),
        demand_context=raw.get("demand_context"),
    )
