import json
import logging
from pathlib import Path
from typing import Iterable, Sequence, Union

from .collector import ResultCollector
from .models import ERROR_COLUMNS, RECORD_COLUMNS, SKIP_COLUMNS, ExportSummary

logger = logging.getLogger(__name__)

# a leading one of these makes spreadsheets evaluate the cell as a formula
_FORMULA_PREFIXES = ("=", "-", "+", "@")


def csv_escape(value: Union[str, int, None]) -> str:
    """
    Quote one CSV cell: always wrapped in double quotes, embedded quotes
    doubled, and formula-looking values prefixed with a single quote.
    """
    text = "" if value is None else str(value)
    if text.startswith(_FORMULA_PREFIXES):
        text = "'" + text
    return '"' + text.replace('"', '""') + '"'


def to_csv(rows: Iterable[dict], columns: Sequence[str]) -> str:
    """Header row (bare) plus one escaped row per dict, joined with \\n, no trailing newline."""
    lines = [",".join(columns)]
    for row in rows:
        lines.append(",".join(csv_escape(row.get(column)) for column in columns))
    return "\n".join(lines)


def export(collector: ResultCollector, out_dir: Union[str, Path]) -> ExportSummary:
    """Write results.json, results.csv, skipped.csv and errors.csv into out_dir."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    records = [r.to_dict() for r in collector.results]
    skipped = [s.to_dict() for s in collector.skipped]
    errors = [e.to_dict() for e in collector.errors]

    artifacts = {
        "results.json": json.dumps(records, indent=2, ensure_ascii=False),
        "results.csv": to_csv(records, RECORD_COLUMNS),
        "skipped.csv": to_csv(skipped, SKIP_COLUMNS),
        "errors.csv": to_csv(errors, ERROR_COLUMNS),
    }

    summary = ExportSummary(results=len(records), skipped=len(skipped), errors=len(errors))
    for name, content in artifacts.items():
        path = out_dir / name
        path.write_text(content, encoding="utf-8", newline="")
        summary.paths[name] = path

    logger.info("Wrote %d records, %d skipped, %d errors to %s", summary.results, summary.skipped, summary.errors, out_dir)
    return summary
