from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime
import io
from typing import Iterable, List, Optional, Sequence

from app.services.decision_evaluator import (
    QuorumBasis,
    QuorumStatus,
    QuorumType,
    ThresholdType,
    Verdict,
)

THRESHOLD_LABELS = {
    ThresholdType.SIMPLE_MAJORITY: "Simple majority",
    ThresholdType.TWO_THIRDS: "Two-thirds majority",
    ThresholdType.ABSOLUTE: "Absolute majority",
    ThresholdType.UNANIMOUS: "Unanimous",
}

RESULT_COLUMNS = [
    "#",
    "Question",
    "Yes",
    "No",
    "Abstain",
    "Total votes",
    "Yes %",
    "No %",
    "Abstain %",
    "Result",
    "Threshold",
    "Activated",
    "Closed",
]

PARTICIPANT_COLUMNS = ["#", "Name", "Email", "Weight", "Present", "Checked in"]


@dataclass(frozen=True)
class QuestionReport:
    text: str
    verdict: Verdict
    activated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ParticipantReport:
    name: str
    email: Optional[str]
    weight: float
    is_present: bool
    checked_in_at: Optional[datetime] = None


def threshold_label(threshold_type: Optional[ThresholdType]) -> str:
    if threshold_type is None:
        return "-"
    return THRESHOLD_LABELS.get(threshold_type, str(threshold_type))


def result_label(is_accepted: bool) -> str:
    return "ACCEPTED" if is_accepted else "REJECTED"


def format_percent(value: float, places: int = 1) -> str:
    return f"{value:.{places}f}%"


def format_amount(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def _format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M")


def _write_csv(header: Sequence[str], rows: Iterable[Sequence[str]], delimiter: str) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def results_csv(
    reports: Sequence[QuestionReport],
    *,
    delimiter: str = ";",
    places: int = 1,
) -> str:
    rows = []
    for index, report in enumerate(reports, start=1):
        tally = report.verdict.tally
        rows.append(
            [
                str(index),
                report.text,
                format_amount(tally.yes),
                format_amount(tally.no),
                format_amount(tally.abstain),
                format_amount(tally.total),
                format_percent(tally.yes_percent, places),
                format_percent(tally.no_percent, places),
                format_percent(tally.abstain_percent, places),
                result_label(report.verdict.is_accepted),
                threshold_label(report.verdict.threshold_type),
                _format_timestamp(report.activated_at),
                _format_timestamp(report.closed_at),
            ]
        )
    return _write_csv(RESULT_COLUMNS, rows, delimiter)


def participants_csv(
    participants: Sequence[ParticipantReport],
    *,
    delimiter: str = ";",
) -> str:
    rows = [
        [
            str(index),
            participant.name,
            participant.email or "-",
            format_amount(participant.weight),
            "Yes" if participant.is_present else "No",
            _format_timestamp(participant.checked_in_at),
        ]
        for index, participant in enumerate(participants, start=1)
    ]
    return _write_csv(PARTICIPANT_COLUMNS, rows, delimiter)


def _quorum_line(quorum: QuorumStatus, places: int) -> str:
    if quorum.quorum_type is QuorumType.NONE:
        return "Quorum: not required"
    state = "met" if quorum.is_met else "NOT met"
    if quorum.basis is QuorumBasis.WEIGHT:
        present = (
            f"{format_amount(quorum.present_weight + quorum.proxy_weight)}"
            f" of {format_amount(quorum.total_weight)} weight"
        )
    else:
        present = f"{quorum.present_count} of {quorum.total_count} present"
    return (
        f"Quorum: {state} ({present}, {format_percent(quorum.present_percent, places)};"
        f" required {format_amount(quorum.required)})"
    )


def minutes_text(
    event_name: str,
    reports: Sequence[QuestionReport],
    participants: Sequence[ParticipantReport],
    *,
    quorum: Optional[QuorumStatus] = None,
    places: int = 1,
) -> str:
    """Plain-text minutes listing every closed question with its counts."""
    lines: List[str] = [f"Minutes: {event_name}", ""]
    present = sum(1 for participant in participants if participant.is_present)
    lines.append(f"Participants: {present} present of {len(participants)}")
    if quorum is not None:
        lines.append(_quorum_line(quorum, places))
    lines.append("")

    if not reports:
        lines.append("No closed votes.")
        return "\n".join(lines) + "\n"

    lines.append("Detailed results")
    for index, report in enumerate(reports, start=1):
        tally = report.verdict.tally
        lines.append("")
        lines.append(f"{index}. {report.text}")
        lines.append(f"   Threshold: {threshold_label(report.verdict.threshold_type)}")
        lines.append(
            f"   Yes: {format_amount(tally.yes)} ({format_percent(tally.yes_percent, places)})"
        )
        lines.append(
            f"   No: {format_amount(tally.no)} ({format_percent(tally.no_percent, places)})"
        )
        lines.append(
            f"   Abstain: {format_amount(tally.abstain)}"
            f" ({format_percent(tally.abstain_percent, places)})"
        )
        lines.append(f"   Total: {format_amount(tally.total)} votes")
        lines.append(f"   Result: {result_label(report.verdict.is_accepted)}")
    return "\n".join(lines) + "\n"
