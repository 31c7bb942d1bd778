"""
Bundle-backed measure source.

A measure bundle is a directory or a ``.zip`` archive of JSON measure
definitions, normally kept under a ``measures/`` folder next to a
``bundle.json`` manifest:

    bundle.zip
    ├── bundle.json
    └── measures/
        └── ep/
            ├── CMS100v1.json
            └── CMS182v5.json      (may hold a list, one entry per sub id)

Problems with individual files are recorded on a stairval Notepad and the
file (or entry) is skipped; the rest of the bundle still loads.
"""

import json
import logging
import pathlib
import typing
import zipfile

from stairval.notepad import Notepad, create_notepad

from .definition import MeasureDefinition
from .source import IndexedSource

logger = logging.getLogger(__name__)

MEASURES_DIR = "measures"
MANIFEST_NAME = "bundle.json"


def _select_definition_files(names: typing.Iterable[str]) -> list[str]:
    names = sorted(names)
    in_measures = [n for n in names if MEASURES_DIR in pathlib.PurePosixPath(n).parts[:-1]]
    if in_measures:
        return in_measures
    return [n for n in names if pathlib.PurePosixPath(n).name != MANIFEST_NAME]


def _iter_definition_files(bundle_path: pathlib.Path) -> typing.Iterator[tuple[str, bytes]]:
    # (relative posix name, content); members that are not selected are never read
    if bundle_path.is_dir():
        names = [p.relative_to(bundle_path).as_posix() for p in bundle_path.rglob("*.json") if p.is_file()]
        for name in _select_definition_files(names):
            yield name, (bundle_path / name).read_bytes()
        return

    with zipfile.ZipFile(bundle_path) as archive:
        names = [n for n in archive.namelist() if n.endswith(".json")]
        for name in _select_definition_files(names):
            yield name, archive.read(name)


def load_bundle(bundle_path: typing.Union[str, pathlib.Path], notepad: Notepad) -> list[MeasureDefinition]:
    """
    Read every measure definition in a bundle directory or zip archive.

    Process:
    1) collect the JSON members (those under ``measures/`` when there are any)
    2) parse each file as one definition object or a list of them
    3) build MeasureDefinition records, reporting failures on ``notepad``
    """
    bundle_path = pathlib.Path(bundle_path)
    if not bundle_path.exists():
        raise FileNotFoundError(f"Measure bundle not found: {bundle_path}")

    definitions: list[MeasureDefinition] = []

    for name, content in _iter_definition_files(bundle_path):
        logger.debug(f"Reading measure file {name!r} from {bundle_path}")
        try:
            payload = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            notepad.add_error(f"File {name!r}: not valid JSON ({e})")
            continue

        entries = payload if isinstance(payload, list) else [payload]
        for position, entry in enumerate(entries):
            where = f"File {name!r}" if len(entries) == 1 else f"File {name!r}, entry {position}"
            try:
                definition = MeasureDefinition.from_dict(entry)
            except (ValueError, TypeError) as e:
                notepad.add_error(f"{where}: {e}")
                continue
            if not definition.map_fn.strip():
                notepad.add_warning(f"{where}: measure {definition.hqmf_id!r} has no logic fragment (map_fn)")
            definitions.append(definition)

    return definitions


class BundleSource(IndexedSource):
    """Measure source that loads its definitions from a measure bundle."""

    def __init__(self, bundle_path: typing.Union[str, pathlib.Path], notepad: typing.Optional[Notepad] = None):
        self.bundle_path = pathlib.Path(bundle_path)
        self.notepad = notepad if notepad is not None else create_notepad("bundle")
        super().__init__(load_bundle(self.bundle_path, self.notepad))
