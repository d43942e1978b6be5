"""Batch scoring of transcripts exported as CSV.

The CSV needs a ``Transcript`` column; call and participant ids are
picked up from any of several common column names.  Quoted fields may
span multiple lines.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from studylab.errors import FormalityError
from studylab.formality.models import CATEGORY_KEYS, FormalityCalculation
from studylab.formality.scorer import score_transcript
from studylab.formality.tagger import CATEGORY_ORDER, Tagger

logger = logging.getLogger(__name__)

CALL_ID_COLUMNS = ("call_id", "callid", "call id", "vapi_call_id", "vapicallid")
PARTICIPANT_ID_COLUMNS = ("prolific_id", "prolificid", "prolific id", "participant_id")


@dataclass(frozen=True)
class TranscriptRow:
    transcript: str
    call_id: str = ""
    participant_id: str = ""


@dataclass
class BatchResult:
    calculations: list[FormalityCalculation]
    errors: list[tuple[int, str]]  # (row index, message)


def _find_column(header: list[str], names: tuple[str, ...]) -> int | None:
    for i, col in enumerate(header):
        if col.strip().lower() in names:
            return i
    return None


def load_transcripts_csv(source: str | Path) -> list[TranscriptRow]:
    """Read transcript rows from a CSV path or raw CSV text.

    Raises ``FormalityError`` when there is no data row or no
    ``Transcript`` column.  Rows with an empty transcript are skipped.
    """
    if isinstance(source, Path):
        text = source.read_text(encoding="utf-8-sig")
    else:
        text = source

    rows = [r for r in csv.reader(io.StringIO(text)) if any(v.strip() for v in r)]
    if len(rows) < 2:
        raise FormalityError("CSV must have at least a header row and one data row")

    header = rows[0]
    transcript_idx = _find_column(header, ("transcript",))
    if transcript_idx is None:
        raise FormalityError('Could not find "Transcript" column in CSV')
    call_idx = _find_column(header, CALL_ID_COLUMNS)
    participant_idx = _find_column(header, PARTICIPANT_ID_COLUMNS)

    def cell(values: list[str], idx: int | None) -> str:
        if idx is None or idx >= len(values):
            return ""
        return values[idx].strip()

    loaded = []
    for values in rows[1:]:
        transcript = cell(values, transcript_idx)
        if not transcript:
            continue
        loaded.append(TranscriptRow(
            transcript=transcript,
            call_id=cell(values, call_idx),
            participant_id=cell(values, participant_idx),
        ))
    return loaded


def score_batch(
    rows: list[TranscriptRow],
    ai_only_mode: bool = True,
    per_turn_mode: bool = False,
    tagger: Tagger | None = None,
    batch_name: str | None = None,
) -> BatchResult:
    """Score every row; unscorable rows are reported, not fatal."""
    result = BatchResult(calculations=[], errors=[])
    for i, row in enumerate(rows):
        try:
            calc = score_transcript(
                row.transcript,
                ai_only_mode=ai_only_mode,
                per_turn_mode=per_turn_mode,
                tagger=tagger,
                call_id=row.call_id or None,
                participant_id=row.participant_id or None,
                batch_name=batch_name,
            )
        except FormalityError as e:
            logger.warning("[formality] row %d skipped: %s", i, e)
            result.errors.append((i, str(e)))
            continue
        result.calculations.append(calc)
    return result


def results_to_rows(calcs: list[FormalityCalculation]) -> list[dict[str, Any]]:
    """Flatten calculations into one dict per row for tabular export."""
    flat = []
    for calc in calcs:
        row: dict[str, Any] = {
            "call_id": calc.linked_call_id or "",
            "prolific_id": calc.linked_prolific_id or "",
            "f_score": calc.f_score,
            "interpretation": calc.interpretation_label,
            "total_tokens": calc.total_tokens,
        }
        for category in CATEGORY_ORDER:
            key = CATEGORY_KEYS[category]
            row[f"{key}_count"] = calc.category_data[category].count
            row[f"{key}_pct"] = round(calc.category_data[category].percentage, 2)
        if calc.per_turn_mode:
            row["average_turn_score"] = calc.average_turn_score
            row["turns_scored"] = len(calc.per_turn_results)
        row["warning"] = calc.warning or ""
        flat.append(row)
    return flat
