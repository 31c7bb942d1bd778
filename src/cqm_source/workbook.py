"""
Workbook-backed measure source.

Definitions are authored one per row in an Excel workbook; see
``mapper.DEFINITION_COLUMNS`` for the recognized headers.
"""

import pathlib
import typing

from stairval.notepad import Notepad, create_notepad

from .loader import load_sheets_as_tables
from .mapper import DefinitionMapper
from .source import IndexedSource


class WorkbookSource(IndexedSource):
    def __init__(
        self,
        workbook_path: typing.Union[str, pathlib.Path],
        notepad: typing.Optional[Notepad] = None,
        mapper: typing.Optional[DefinitionMapper] = None,
    ):
        self.workbook_path = pathlib.Path(workbook_path)
        self.notepad = notepad if notepad is not None else create_notepad("workbook")
        mapper = mapper if mapper is not None else DefinitionMapper()
        tables = load_sheets_as_tables(str(self.workbook_path))
        super().__init__(mapper.map_tables(tables, self.notepad))
