from datetime import date
from pathlib import Path

from agents.acceptance import AcceptanceAgent, InMemoryShiftStore
from agents.learning import LearningFeedbackAgent
from agents.orchestrator import OrchestratorAgent


def main():
    week_start = date(2024, 12, 9)  # the week after the sample history
    project_root = Path(__file__).resolve().parents[1]

    orchestrator = OrchestratorAgent(
        week_start=week_start,
        export_dir=project_root / "data" / "processed",
    )
    result = orchestrator.run()

    print("\n=== ROTA SUMMARY ===")
    print(result.summary.message)
    if result.summary.error:
        return

    for s in result.suggestions[:10]:
        print(
            f"- {s.date.isoformat()} {s.start_time:%H:%M}-{s.end_time:%H:%M} "
            f"{s.employee_name} ({s.role}) [{s.notes}]"
        )
    if len(result.suggestions) > 10:
        print(f"  ... and {len(result.suggestions) - 10} more")

    if result.summary.shortfalls:
        print("\nShortfalls:")
        for sf in result.summary.shortfalls:
            print(f"- {sf.employee_name}: {sf.hours:g}h of {sf.min_hours:g}h minimum")

    print("\n=== RUN SUMMARY (EXPLANATION AGENT) ===")
    for line in [l for l in result.logs if "[Summary]" in l]:
        print(line.replace("[Summary] ", ""))

    # Accept the rota into an in-memory store, learning from each acceptance.
    store = InMemoryShiftStore(shifts=orchestrator.context.shifts if orchestrator.context else ())
    learner = LearningFeedbackAgent()
    report = AcceptanceAgent(store=store, recorder=learner).accept(result.suggestions)

    print("\n=== ACCEPTANCE ===")
    print(report.message)
    for failure in report.failures:
        print(f"- {failure.employee_name} {failure.date.isoformat()}: {failure.error}")

    insights = learner.summarize()
    print(f"Learning confidence: {insights.confidence:.2f} from {len(learner.events)} events")


if __name__ == "__main__":
    main()
