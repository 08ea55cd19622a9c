from __future__ import annotations

import csv
import io
import logging
import re
import time
from collections.abc import Iterable
from pathlib import Path

from .config import Participant
from .results import RECORD_FIELDS, ResponseRecord

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")
_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9_\-]")


def records_to_csv(records: Iterable[ResponseRecord]) -> str:
    """Serialize records as RFC 4180 CSV (CRLF rows, minimal quoting).

    The header always comes from the record schema, so a run with no scored
    trials still exports a header-only file.
    """

    buf = io.StringIO(newline="")
    writer = csv.DictWriter(
        buf,
        fieldnames=list(RECORD_FIELDS),
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\r\n",
    )
    writer.writeheader()
    for rec in records:
        writer.writerow(rec.as_row())
    return buf.getvalue()


def safe_filename(value: str | None, fallback: str = "stroop") -> str:
    s = (value or "").strip() or fallback
    s = _WS_RE.sub("_", s)
    s = _UNSAFE_RE.sub("", s)
    return s[:40]


def export_filename(participant: Participant, when: time.struct_time | None = None) -> str:
    stamp = time.localtime() if when is None else when
    parts = [
        "stroop",
        safe_filename(participant.participant_id or "participant"),
        safe_filename(participant.condition or "condition"),
        time.strftime("%Y%m%d_%H%M", stamp),
    ]
    return "_".join(parts) + ".csv"


def write_csv(
    records: Iterable[ResponseRecord],
    *,
    directory: Path,
    participant: Participant,
    when: time.struct_time | None = None,
) -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(participant, when)
    text = records_to_csv(records)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)
    logger.info("Exported results to %s", path)
    return path
