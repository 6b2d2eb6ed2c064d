import datetime
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from apps.visualization.ml.constants import (
    INSIGHT_PROMPT,
    MAX_PROMPT_COLUMNS,
    MAX_PROMPT_ISSUES,
)


def format_insight_prompt(
    dataset_name: str,
    columns: List[Dict],
    row_count: int,
    quality_report: Optional[Dict] = None,
) -> str:
    """
    Create minimal prompt for local LLMs.

    Parameters
    ----------
    dataset_name : str
        Name shown to the model
    columns : list of dict
        ColumnInfo list
    row_count : int
        Number of rows in the dataset
    quality_report : dict, optional
        DataQualityScorer.score() output

    Returns
    -------
    str
        Compact prompt
    """
    col_summary = []
    for col in columns[:MAX_PROMPT_COLUMNS]:
        col_info = f"{col['name']} ({col.get('type', 'text')})"
        samples = [str(v) for v in col.get("sample_values", [])[:3]]
        if samples:
            col_info += f" - e.g. {', '.join(samples)}"
        col_summary.append(col_info)
    if len(columns) > MAX_PROMPT_COLUMNS:
        col_summary.append(f"... and {len(columns) - MAX_PROMPT_COLUMNS} more")

    if quality_report:
        scores = quality_report.get("scores", {})
        quality_lines = [f"Overall score: {scores.get('overall', 0)}/100"]
        for issue in quality_report.get("issues", [])[:MAX_PROMPT_ISSUES]:
            quality_lines.append(f"- [{issue['severity']}] {issue['description']}")
        quality_summary = "\n".join(quality_lines)
    else:
        quality_summary = "Not analysed yet"

    return INSIGHT_PROMPT.format(
        dataset_name=dataset_name,
        row_count=row_count,
        column_summary="\n".join(col_summary),
        quality_summary=quality_summary,
    )


def convert_numpy(obj):
    if isinstance(obj, dict):
        return {k: convert_numpy(v) for k, v in obj.items()}

    elif isinstance(obj, list):
        return [convert_numpy(v) for v in obj]

    elif isinstance(obj, tuple):
        return [convert_numpy(v) for v in obj]  # tuples → lists (JSON-safe)

    elif isinstance(obj, np.ndarray):
        return convert_numpy(obj.tolist())

    elif isinstance(obj, (np.integer,)):
        return int(obj)

    elif isinstance(obj, (np.floating,)):
        return None if np.isnan(obj) else float(obj)

    elif isinstance(obj, (np.bool_,)):
        return bool(obj)

    elif obj is pd.NaT:
        return None

    elif isinstance(obj, pd.Timestamp):
        return obj.isoformat()

    elif isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()

    else:
        return obj
