from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from time import perf_counter
from typing import Dict, List, Optional, Union

from core.models import (
    DemandForecast,
    HistoricalPatterns,
    RotaSummary,
    ShiftStatus,
    Suggestion,
    SystemContext,
    ValidationResult,
)
from core.settings import DEFAULT_SETTINGS, EngineSettings
from core.timeutils import normalize_week_start, week_dates

from agents.data_context import DataContextAgent
from agents.history import HistoricalPatternAgent
from agents.demand_coverage import DemandForecastAgent
from agents.generator import CandidateGeneratorAgent
from agents.conflict_resolution import BalanceResult, ConstraintBalancerAgent
from agents.compliance import WeeklyValidationAgent
from agents.explainer import ExplanationAgent
from agents.export import ExportAgent

NO_SUGGESTIONS_MESSAGE = (
    "Could not generate suggestions (no data/constraints). "
    "Try adding last week's shifts or employee hour settings."
)


@dataclass
class OrchestratorResult:
    suggestions: List[Suggestion]
    summary: RotaSummary
    balance: Optional[BalanceResult] = None
    patterns: Optional[HistoricalPatterns] = None
    forecast: Optional[DemandForecast] = None
    validations: Dict[str, ValidationResult] = field(default_factory=dict)
    export_path: Optional[Path] = None
    logs: List[str] = field(default_factory=list)


class OrchestratorAgent:
    """
    Coordinates the weekly rota pipeline:
    1. Load the venue context (CSV feeds) unless one is passed in
    2. Mine the look-back window for day-of-week patterns
    3. Forecast hourly staff need from bookings
    4. Generate candidate shifts
    5. Balance them against time off, rest gaps and weekly hour bounds
    6. Validate the resulting week and summarise
    7. Optional CSV export

    Contract violations in the inputs (malformed dates, unknown enum
    values) stop the run; the result then carries no suggestions and a
    "Generation failed" error instead of a partial rota.
    """

    def __init__(
        self,
        week_start: Union[date, str],
        settings: EngineSettings = DEFAULT_SETTINGS,
        raw_data_dir: Optional[Path] = None,
        export_dir: Optional[Path] = None,
        verbose: bool = True,
    ):
        self.week_start = week_start
        self.settings = settings
        self.raw_data_dir = raw_data_dir
        self.export_dir = export_dir
        self.verbose = verbose
        self.logs: List[str] = []
        self.context: Optional[SystemContext] = None

    def log(self, msg: str) -> None:
        if self.verbose:
            print(msg)
        self.logs.append(msg)

    def _get_raw_data_dir(self) -> Path:
        if self.raw_data_dir is not None:
            return self.raw_data_dir
        # project_root / "data" / "raw"
        project_root = Path(__file__).resolve().parents[1]
        return project_root / "data" / "raw"

    def run(self, ctx: Optional[SystemContext] = None) -> OrchestratorResult:
        self.logs = []
        try:
            return self._run(ctx)
        except ValueError as exc:
            error = f"Generation failed: {exc}"
            self.log(error)
            return OrchestratorResult(
                suggestions=[],
                summary=RotaSummary(message=error, error=error),
                logs=self.logs,
            )

    def _run(self, ctx: Optional[SystemContext]) -> OrchestratorResult:
        start_ts = perf_counter()
        week_start = normalize_week_start(self.week_start)
        self.log(f"Starting rota generation for the week of {week_start.isoformat()}")

        # 1. Context
        if ctx is None:
            ctx = self._load_context()
        self.context = ctx
        self.log(
            f"Context: {len(ctx.employees)} employees, {len(ctx.shifts)} shifts, "
            f"{len(ctx.bookings)} bookings, {len(ctx.time_off)} time-off requests."
        )

        # 2. Historical patterns
        history_agent = HistoricalPatternAgent(settings=self.settings)
        window = history_agent.history_window(ctx.shifts, week_start)
        past_bookings = [b for b in ctx.bookings if b.date < week_start]
        patterns = history_agent.analyze(window, ctx.employees, past_bookings)
        self.log(
            f"Analysed {len(window)} historical shifts over {patterns.weeks_analyzed} week(s); "
            f"{len(patterns.standins)} stand-in(s) for ids missing from the roster."
        )
        if not window:
            self.log("No shift history in the look-back window; falling back to demand and roster.")

        # 3. Demand
        employees = CandidateGeneratorAgent.employee_map(ctx, patterns)
        demand_agent = DemandForecastAgent(settings=self.settings)
        forecast = demand_agent.forecast(week_start, ctx.bookings, window, employees)
        self.log(
            f"Forecast staff need for {len(forecast.demand_by_date_hour)} (date, hour) slots, "
            f"{sum(forecast.demand_by_date_hour.values()):.2f} staff-hours in total."
        )

        # 4. Candidates
        generator = CandidateGeneratorAgent(settings=self.settings)
        generated = generator.generate(ctx, week_start, patterns, forecast)
        for line in generated.logs:
            self.log("[Generator] " + line)

        # 5. Balancing
        balancer = ConstraintBalancerAgent(settings=self.settings)
        balance = balancer.balance(ctx, week_start, generated.suggestions)
        for line in balance.logs:
            self.log("[ConstraintBalancer] " + line)
        suggestions = balance.suggestions

        # 6. Validation of the week as it would look after acceptance
        dates = set(week_dates(week_start))
        persisted = [s for s in ctx.shifts if s.date in dates and s.status != ShiftStatus.CANCELLED]
        validator = WeeklyValidationAgent(settings=self.settings)
        validations = validator.validate_week(
            persisted + [s.to_shift() for s in suggestions], employees, week_start
        )

        explainer = ExplanationAgent()
        for line in explainer.summarize(
            week_start=week_start,
            balance=balance,
            patterns=patterns,
            min_staff_per_day=generated.min_staff_per_day,
            validations=validations,
        ):
            self.log("[Summary] " + line)

        # 7. Export
        export_path: Optional[Path] = None
        if self.export_dir is not None and suggestions:
            export_path = ExportAgent(output_dir=self.export_dir).export_rota(week_start, suggestions)
            self.log(f"Exported rota to {export_path}")

        unique = len({s.employee_id for s in suggestions})
        if suggestions:
            message = f"Generated {len(suggestions)} shift suggestions for {unique} employees."
        else:
            message = NO_SUGGESTIONS_MESSAGE
        summary = RotaSummary(
            total_suggestions=len(suggestions),
            unique_employees=unique,
            message=message,
            shortfalls=list(balance.shortfalls),
        )
        self.log(message)

        elapsed = perf_counter() - start_ts
        self.log(f"Rota generation runtime: {elapsed:.2f}s.")

        return OrchestratorResult(
            suggestions=suggestions,
            summary=summary,
            balance=balance,
            patterns=patterns,
            forecast=forecast,
            validations=validations,
            export_path=export_path,
            logs=self.logs,
        )

    def _load_context(self) -> SystemContext:
        raw_data_dir = self._get_raw_data_dir()
        try:
            return DataContextAgent(raw_data_dir=raw_data_dir).load_context()
        except FileNotFoundError as exc:
            self.log(f"{exc}; continuing with an empty context.")
            return SystemContext()
