import os
import typing

import pytest

from cqm_source.definition import MeasureDefinition
from cqm_source.source import MeasureSource


@pytest.fixture(scope="session")
def fpath_test_dir() -> str:
    """
    Path to `tests/data/` folder.
    """
    return os.path.join(os.path.dirname(__file__), "data")


@pytest.fixture(scope="session")
def fpath_bundle(fpath_test_dir: str) -> str:
    """
    A measure bundle directory with three measure files, one holding two sub ids.
    """
    return os.path.join(fpath_test_dir, "bundle")


class CountingSource(MeasureSource):
    """
    Source over a plain dict of definitions that records every lookup.
    """

    def __init__(self, definitions: dict[tuple[str, typing.Optional[str]], MeasureDefinition]):
        super().__init__()
        self.definitions = definitions
        self.lookups: list[tuple[str, typing.Optional[str]]] = []

    def get_measure_def(self, measure_id, sub_id):
        self.lookups.append((measure_id, sub_id))
        return self.definitions.get((measure_id, sub_id))


@pytest.fixture
def e2e_definition() -> MeasureDefinition:
    return MeasureDefinition.from_dict(
        {
            "hqmf_id": "HQMF1",
            "cms_id": "CMS100v1",
            "sub_id": None,
            "population_ids": ["IPP", "DENOM"],
            "map_fn": "hqmfjs.ran = True",
        }
    )


@pytest.fixture
def counting_source(e2e_definition: MeasureDefinition) -> CountingSource:
    return CountingSource({("CMS100v1", None): e2e_definition, ("HQMF1", None): e2e_definition})
