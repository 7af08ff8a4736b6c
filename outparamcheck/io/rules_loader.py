"""Out-parameter rule table loader (YAML, JSON, CSV, Excel)."""

from typing import Any, Dict, List, Optional
from pathlib import Path
import json
import logging
import re

import pandas as pd
import yaml

from ..models.rule import RuleConfigError

logger = logging.getLogger(__name__)


class RulesLoader:
    """Load out-parameter rule tables from various sources."""

    # Default column names for tabular sources
    DEFAULT_COLUMNS: Dict[str, str] = {
        "function": "Function",
        "arguments": "Arguments",
    }

    SUFFIX_TYPES: Dict[str, str] = {
        ".yaml": "yaml",
        ".yml": "yaml",
        ".json": "json",
        ".csv": "csv",
        ".xlsx": "excel",
        ".xlsm": "excel",
    }

    def load(self, config: dict) -> Dict[str, List[int]]:
        """Load rules based on configuration.

        Args:
            config: Rules source configuration with keys:
                - type: "yaml", "json", "csv" or "excel" (optional,
                  inferred from the file suffix)
                - path: Path to the rules file
                - sheet: Sheet name for Excel (optional)
                - columns: Column mapping for CSV/Excel (optional)

        Returns:
            Dictionary mapping qualified function name to argument indices
        """
        path = config.get("path")
        if not path:
            logger.warning("No rules source path specified")
            return {}

        path = Path(path)
        if not path.exists():
            logger.warning(f"Rules file not found: {path}")
            return {}

        source_type = str(
            config.get("type") or self.SUFFIX_TYPES.get(path.suffix.lower(), "yaml")
        ).lower()

        if source_type == "yaml":
            return self.load_from_yaml(str(path))
        elif source_type == "json":
            return self.load_from_json(str(path))
        elif source_type == "csv":
            return self.load_from_csv(str(path), columns=config.get("columns", {}))
        elif source_type == "excel":
            return self.load_from_excel(
                str(path),
                sheet=config.get("sheet"),
                columns=config.get("columns", {})
            )
        else:
            raise ValueError(f"Unsupported rules source type: {source_type}")

    def load_file(self, path: str) -> Dict[str, List[int]]:
        """Load a rules file, inferring its type from the suffix."""
        return self.load({"path": path})

    def load_from_yaml(self, path: str) -> Dict[str, List[int]]:
        """Load rules from a YAML file.

        Expected YAML format:
        ```yaml
        rules:
          json_tokener_parse_verbose: [1]
          "mylib::decode": [1, 2]
        ```
        A bare mapping without the ``rules`` key is accepted as well.

        Args:
            path: Path to the YAML file

        Returns:
            Dictionary mapping qualified function name to argument indices
        """
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise RuleConfigError(f"Invalid YAML in rules file {path}: {e}")

        rules = self._from_mapping(data, path)
        logger.info(f"Loaded {len(rules)} rules from YAML: {path}")
        return rules

    def load_from_json(self, path: str) -> Dict[str, List[int]]:
        """Load rules from a JSON file (same shape as the YAML format)."""
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise RuleConfigError(f"Invalid JSON in rules file {path}: {e}")

        rules = self._from_mapping(data, path)
        logger.info(f"Loaded {len(rules)} rules from JSON: {path}")
        return rules

    def load_from_csv(
        self,
        path: str,
        columns: Optional[Dict[str, str]] = None,
        encoding: str = "utf-8"
    ) -> Dict[str, List[int]]:
        """Load rules from a CSV file.

        Args:
            path: Path to the CSV file
            columns: Column name mapping
            encoding: File encoding

        Returns:
            Dictionary mapping qualified function name to argument indices
        """
        df = pd.read_csv(path, encoding=encoding, dtype=str)
        rules = self._from_dataframe(df, columns)
        logger.info(f"Loaded {len(rules)} rules from CSV: {path}")
        return rules

    def load_from_excel(
        self,
        path: str,
        sheet: Optional[str] = None,
        columns: Optional[Dict[str, str]] = None
    ) -> Dict[str, List[int]]:
        """Load rules from an Excel file.

        Args:
            path: Path to the Excel file
            sheet: Sheet name (None for first sheet)
            columns: Column name mapping

        Returns:
            Dictionary mapping qualified function name to argument indices
        """
        df = pd.read_excel(path, sheet_name=sheet or 0, dtype=str, engine="openpyxl")
        rules = self._from_dataframe(df, columns)
        logger.info(f"Loaded {len(rules)} rules from Excel: {path}")
        return rules

    def _from_mapping(self, data: Any, source: str) -> Dict[str, List[int]]:
        if data is None:
            logger.warning(f"Empty rules file: {source}")
            return {}

        if isinstance(data, dict) and "rules" in data:
            data = data["rules"] or {}

        if not isinstance(data, dict):
            raise RuleConfigError(
                f"Rules in {source} must be a mapping of function name to indices"
            )

        rules = {}
        for name, indices in data.items():
            if isinstance(indices, int) and not isinstance(indices, bool):
                indices = [indices]
            rules[str(name)] = indices
        return rules

    def _from_dataframe(
        self,
        df: pd.DataFrame,
        columns: Optional[Dict[str, str]] = None
    ) -> Dict[str, List[int]]:
        columns = {**self.DEFAULT_COLUMNS, **(columns or {})}
        col_function = columns["function"]
        col_arguments = columns["arguments"]

        for column in (col_function, col_arguments):
            if column not in df.columns:
                raise RuleConfigError(
                    f"Required column not found: {column}. "
                    f"Available columns: {df.columns.tolist()}"
                )

        rules: Dict[str, List[int]] = {}
        for idx, row in df.dropna(how="all").iterrows():
            name = row[col_function]
            if pd.isna(name) or not str(name).strip():
                continue
            rules[str(name).strip()] = self._parse_indices(row[col_arguments], idx)
        return rules

    def _parse_indices(self, raw: Any, row_index: Any) -> List[int]:
        """Parse an argument cell such as ``"1"``, ``"1;2"`` or ``"1, 2"``.

        Args:
            raw: Raw cell value
            row_index: Row index (for error messages)

        Returns:
            List of argument indices
        """
        if raw is None or (isinstance(raw, float) and pd.isna(raw)):
            return []

        indices = []
        for item in re.split(r"[;,\s]+", str(raw).strip()):
            if not item:
                continue
            try:
                value = float(item)
            except ValueError:
                raise RuleConfigError(
                    f"Invalid argument index {item!r} in row {row_index}"
                )
            # Excelの数値セルは "2.0" のように読み込まれる
            if not value.is_integer():
                raise RuleConfigError(
                    f"Argument index must be an integer: {item!r} in row {row_index}"
                )
            indices.append(int(value))
        return indices


def parse_rules_argument(value: str) -> Dict[str, List[int]]:
    """Parse the ``--rules`` command line value.

    The value is either inline JSON (``{"decode": [1]}``) or ``@path`` to a
    rules file in any format supported by :class:`RulesLoader`.

    Args:
        value: Command line value

    Returns:
        Dictionary mapping qualified function name to argument indices

    Raises:
        RuleConfigError: If the value cannot be parsed
    """
    value = value.strip()
    if value.startswith("@"):
        path = value[1:]
        if not Path(path).exists():
            raise RuleConfigError(f"Rules file not found: {path}")
        return RulesLoader().load_file(path)

    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        raise RuleConfigError(f"Invalid rules JSON: {e}")

    return RulesLoader()._from_mapping(data, "--rules")
