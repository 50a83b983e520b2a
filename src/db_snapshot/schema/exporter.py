"""Export a ComparisonResult to CSV or JSON."""

import csv
import logging
from pathlib import Path

from db_snapshot.schema.models import ComparisonResult

logger = logging.getLogger(__name__)

EXPORT_FORMATS = (".csv", ".json")

CSV_HEADER = ["Table", "Type", "Column/Object", "Source (Expected)", "Target (Actual)", "Details", "Fix"]


def export_comparison(result: ComparisonResult, output_path: str | Path) -> Path:
    """Write diffs to ``output_path``; the format follows the extension.

    Args:
        result: Comparison to export.
        output_path: Destination ending in ``.csv`` or ``.json``.

    Returns:
        The written path.

    Raises:
        ValueError: If the extension is not ``.csv`` or ``.json``.
    """
    path = Path(output_path)
    suffix = path.suffix.lower()
    if suffix not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format '{path.suffix}' (use .csv or .json)")

    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".csv":
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)
            for diff in result.diffs:
                writer.writerow(
                    [
                        diff.table or "-",
                        diff.diff_type.label,
                        diff.name or "-",
                        diff.expected or "-",
                        diff.actual or "-",
                        diff.details,
                        diff.fix or "",
                    ]
                )
    else:
        path.write_text(result.model_dump_json(indent=2), encoding="utf-8")

    logger.info("Comparison results exported to %s", path)
    return path
