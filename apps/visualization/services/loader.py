import csv
import io
import logging
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
from pandas import DataFrame

from apps.visualization.services.values import to_json_scalar

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv", ".txt"}
EXCEL_EXTENSIONS = {".xlsx"}
ALLOWED_EXTENSIONS = CSV_EXTENSIONS | EXCEL_EXTENSIONS


class DatasetLoadError(ValueError):
    pass


class DatasetLoader:
    @staticmethod
    def _extension(file_name: str) -> str:
        suffix = Path(str(file_name)).suffix.lower()
        if suffix not in ALLOWED_EXTENSIONS:
            raise DatasetLoadError(f"Unsupported file format: {suffix or file_name}")
        return suffix

    @staticmethod
    def load_dataframe(
        source, file_name: Optional[str] = None, worksheet_name: Optional[str] = None
    ) -> DataFrame:
        """
        Load a DataFrame from a path or an uploaded file object.

        :param source: path or file-like object
        :param file_name: name used to pick the parser when ``source`` is a file object
        :param worksheet_name: Excel sheet to read, defaults to the first one
        :return: DataFrame
        """
        file_name = file_name or getattr(source, "name", None) or str(source)
        suffix = DatasetLoader._extension(file_name)

        try:
            if suffix in CSV_EXTENSIONS:
                if hasattr(source, "read"):
                    content = source.read()
                    if isinstance(content, bytes):
                        content = content.decode("utf-8-sig")
                    source = io.StringIO(content)
                return pd.read_csv(source, sep=None, engine="python")

            sheets = DatasetLoader.list_worksheets(source, file_name)
            sheet = worksheet_name if worksheet_name is not None else sheets[0]
            if sheet not in sheets:
                raise DatasetLoadError(f"Worksheet not found: {sheet}")
            if hasattr(source, "seek"):
                source.seek(0)
            return pd.read_excel(source, sheet_name=sheet)
        except DatasetLoadError:
            raise
        except (ValueError, OSError, csv.Error, zipfile.BadZipFile, pd.errors.ParserError) as e:
            logger.warning("Could not parse %s: %s", file_name, e)
            raise DatasetLoadError(f"Could not read {Path(file_name).name}: {e}") from e

    @staticmethod
    def list_worksheets(source, file_name: Optional[str] = None) -> List[str]:
        file_name = file_name or getattr(source, "name", None) or str(source)
        if DatasetLoader._extension(file_name) not in EXCEL_EXTENSIONS:
            return []
        if hasattr(source, "seek"):
            source.seek(0)
        try:
            with pd.ExcelFile(source) as workbook:
                return [str(name) for name in workbook.sheet_names]
        except (ValueError, OSError, zipfile.BadZipFile) as e:
            raise DatasetLoadError(f"Could not read {Path(file_name).name}: {e}") from e

    @staticmethod
    def dataframe_to_rows(df: DataFrame) -> Tuple[List[str], List[Dict]]:
        """
        Turn a DataFrame into header order plus JSON-safe rows.

        Duplicate or blank header names are made unique so every row is a
        proper mapping.
        """
        headers = []
        seen = {}
        for i, col in enumerate(df.columns):
            name = str(col).strip() or f"column_{i + 1}"
            if name in seen:
                seen[name] += 1
                name = f"{name}_{seen[name]}"
            else:
                seen[name] = 0
            headers.append(name)

        rows = []
        for record in df.itertuples(index=False, name=None):
            rows.append(
                {header: to_json_scalar(value) for header, value in zip(headers, record)}
            )
        return headers, rows

    @staticmethod
    def load_rows(
        source, file_name: Optional[str] = None, worksheet_name: Optional[str] = None
    ) -> Tuple[List[str], List[Dict]]:
        df = DatasetLoader.load_dataframe(source, file_name, worksheet_name)
        headers, rows = DatasetLoader.dataframe_to_rows(df)
        logger.info(
            "Loaded %s: %d rows, %d columns", file_name or source, len(rows), len(headers)
        )
        return headers, rows

    @staticmethod
    def rows_to_dataframe(rows: List[Dict], headers: Optional[List[str]] = None) -> DataFrame:
        return pd.DataFrame.from_records(rows, columns=headers)
