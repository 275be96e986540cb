"""Markdown rendering of provenance records for prompt and report embedding."""

from typing import Iterable, List

from data_guardrails.models.provenance import DataProvenance, ValidationStatus
from data_guardrails.utils.time import to_utc_timestamp

STATUS_ICONS = {
    ValidationStatus.PASS: "✓",
    ValidationStatus.WARNING: "⚠",
    ValidationStatus.FAIL: "✗",
}

_HEADER = (
    "| Metric | Value | Source | Timestamp (UTC) | Confidence | Staleness | Status | Validation |\n"
    "|---|---|---|---|---|---|---|---|"
)


def _cell(value) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ")


def format_provenance_markdown(provenances: Iterable[DataProvenance]) -> str:
    """
    Render provenance records as a markdown table plus validation notes.

    One row per source; metric, value and validation appear on the first
    row of each metric only. Returns an empty string for no records.
    """
    provenances = list(provenances)
    if not provenances:
        return ""

    rows: List[str] = []
    notes: List[str] = []

    for item in provenances:
        verdict = f"{STATUS_ICONS[item.validation_status]} {item.validation_status.value}"

        if not item.sources:
            rows.append(f"| {_cell(item.metric)} | {_cell(item.value)} | - | - | - | - | - | {verdict} |")

        for index, source in enumerate(item.sources):
            first = index == 0
            timestamp = to_utc_timestamp(source.timestamp).strftime("%Y-%m-%d %H:%M")
            staleness = f"{source.staleness} min" if source.staleness is not None else "N/A"
            rows.append(
                f"| {_cell(item.metric) if first else ''} "
                f"| {_cell(item.value) if first else ''} "
                f"| {_cell(source.name)} "
                f"| {timestamp} "
                f"| {source.confidence}% "
                f"| {staleness} "
                f"| {source.status.value} "
                f"| {verdict if first else ''} |"
            )

        details = list(item.validation_messages)
        if item.consensus is not None:
            details.append(
                f"Consensus: {item.consensus.method.value} | Deviation: {item.consensus.deviation:.2f}%"
            )
            if item.consensus.outliers:
                details.append(f"Outliers: {', '.join(item.consensus.outliers)}")
        if details:
            notes.append(f"- **{item.metric}**: " + "; ".join(details))

    output = ["## Data Provenance & Quality Report", "", _HEADER, *rows]
    if notes:
        output.extend(["", *notes])

    return "\n".join(output) + "\n"
