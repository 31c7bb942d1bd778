import abc
import re
import typing

import pandas as pd
from stairval.notepad import Notepad

from .definition import MeasureDefinition

# Minimal required columns (after renaming) to identify a definitions sheet
DEFINITION_KEY_COLUMNS = {"hqmf_id", "map_fn"}

DEFINITION_COLUMNS = (
    "hqmf_id",
    "cms_id",
    "sub_id",
    "continuous_variable",
    "aggregator",
    "population_ids",
    "map_fn",
)

_ID_SEPARATOR = re.compile(r"[,\s]+")


class TableMapper(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def map_tables(
            self, tables: dict[str, pd.DataFrame], notepad: Notepad
    ) -> typing.Sequence[MeasureDefinition]:
        # return validated definitions from every usable sheet
        raise NotImplementedError


class DefinitionMapper(TableMapper):
    def map_tables(
            self, tables: dict[str, pd.DataFrame], notepad: Notepad
    ) -> list[MeasureDefinition]:
        """
        Process:
        1) skip (with a warning) sheets lacking DEFINITION_KEY_COLUMNS
        2) map each remaining row to a MeasureDefinition
        3) return the definitions in sheet then row order
        """
        definitions: list[MeasureDefinition] = []
        for sheet_name, df in tables.items():
            if not DEFINITION_KEY_COLUMNS.issubset(df.columns):
                notepad.add_warning(
                    f"Skipping sheet {sheet_name!r}: missing definition columns "
                    f"{sorted(DEFINITION_KEY_COLUMNS - set(df.columns))}"
                )
                continue
            definitions.extend(self._map_definition_sheet(df, sheet_name, notepad))
        return definitions

    def _map_definition_sheet(
            self, df: pd.DataFrame, sheet_name: str, notepad: Notepad
    ) -> list[MeasureDefinition]:
        definitions: list[MeasureDefinition] = []
        for index, row in df.iterrows():
            # header is row 1 in the workbook
            row_number = index + 2 if isinstance(index, int) else index
            try:
                definitions.append(self.parse_definition_row(row))
            except (ValueError, TypeError) as exception:
                notepad.add_error(f"Sheet {sheet_name!r}, row {row_number}: {exception}")
        return definitions

    @staticmethod
    def parse_definition_row(row: pd.Series) -> MeasureDefinition:
        """
        Parse a single row into a MeasureDefinition. The raw payload is the
        row itself, restricted to non-blank cells.
        """
        payload = {
            str(column): DefinitionMapper._clean(value)
            for column, value in row.items()
            if DefinitionMapper._clean(value) is not None
        }
        return MeasureDefinition(
            hqmf_id=payload.get("hqmf_id", ""),
            cms_id=payload.get("cms_id"),
            sub_id=payload.get("sub_id"),
            continuous_variable=DefinitionMapper._to_bool(payload.get("continuous_variable")),
            aggregator=payload.get("aggregator"),
            population_ids=DefinitionMapper._split_ids(payload.get("population_ids")),
            map_fn=payload.get("map_fn", ""),
            measure=payload,
        )

    @staticmethod
    def _clean(value: typing.Any) -> typing.Optional[str]:
        """Trimmed string, or None for None/NaN/blank cells."""
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return None
        s = str(value).strip()
        return s or None

    @staticmethod
    def _split_ids(value: typing.Any) -> list[str]:
        """'IPP, DENOM NUMER' → ['IPP', 'DENOM', 'NUMER']; blank → []."""
        if value is None:
            return []
        return [part for part in _ID_SEPARATOR.split(str(value)) if part]

    @staticmethod
    def _to_bool(value: typing.Any) -> bool:
        """
        Robust boolean parsing:
        - True for: 1, '1', 'true', 't', 'yes', 'y' (case-insensitive)
        - False for: 0, '0', 'false', 'f', 'no', 'n', '', None
        - Fallback: Python truthiness on other values (rare)
        """
        if isinstance(value, bool):
            return value
        if value is None:
            return False
        s = str(value).strip().lower()
        if s in {"1", "true", "t", "yes", "y"}:
            return True
        if s in {"0", "false", "f", "no", "n", ""}:
            return False
        return bool(value)
