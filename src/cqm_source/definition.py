"""
Measure definition domain model.

Defines the MeasureDefinition dataclass describing one clinical quality
measure as retrieved from a measure source.
"""

import copy
import typing

from collections.abc import Mapping
from dataclasses import dataclass, field


def _blank_to_none(value: typing.Any) -> typing.Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


@dataclass(frozen=True)
class MeasureDefinition:
    """
    Represents a single measure definition.

    Attributes:
        hqmf_id: HQMF identifier of the measure (e.g. '40280381-4B9A-3825-014B-C1A59E160C39').
        cms_id: CMS identifier (e.g. 'CMS182v5'), or None.
        sub_id: Population set sub id (e.g. 'a'), or None.
        continuous_variable: True for continuous variable measures.
        aggregator: Aggregation tag for continuous variable measures (e.g. 'MEDIAN'), or None.
        population_ids: Ordered population identifiers (e.g. ['IPP', 'DENOM', 'NUMER']).
        map_fn: Logic fragment template executed by the compiled measure.
        measure: Full raw definition payload, passed through verbatim.
    """

    hqmf_id: str
    cms_id: typing.Optional[str] = None
    sub_id: typing.Optional[str] = None
    continuous_variable: bool = False
    aggregator: typing.Optional[str] = None
    population_ids: typing.Any = field(default_factory=list)
    map_fn: str = ""
    measure: dict = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        # Validate HQMF id
        if not isinstance(self.hqmf_id, str) or not self.hqmf_id.strip():
            raise ValueError(f"Invalid hqmf_id: {self.hqmf_id!r}")

        # Validate continuous variable flag
        if not isinstance(self.continuous_variable, bool):
            raise ValueError(
                f"continuous_variable must be a boolean, got {type(self.continuous_variable).__name__}"
            )

        # Validate population ids
        if not isinstance(self.population_ids, (list, tuple, Mapping)):
            raise ValueError(
                f"population_ids must be a list or mapping, got {type(self.population_ids).__name__}"
            )

        # Validate logic fragment
        if not isinstance(self.map_fn, str):
            raise ValueError(f"map_fn must be a string, got {type(self.map_fn).__name__}")

    @property
    def key(self) -> tuple[str, typing.Optional[str]]:
        return self.hqmf_id, self.sub_id

    @classmethod
    def from_dict(cls, payload: Mapping) -> "MeasureDefinition":
        """
        Build a definition from a raw JSON object, keeping a deep copy of the
        whole payload in ``measure``.
        """
        if not isinstance(payload, Mapping):
            raise ValueError(f"Measure definition must be an object, got {type(payload).__name__}")
        population_ids = payload.get("population_ids")
        return cls(
            hqmf_id=payload.get("hqmf_id"),
            cms_id=_blank_to_none(payload.get("cms_id")),
            sub_id=_blank_to_none(payload.get("sub_id")),
            continuous_variable=payload.get("continuous_variable") or False,
            aggregator=_blank_to_none(payload.get("aggregator")),
            population_ids=[] if population_ids is None else copy.deepcopy(population_ids),
            map_fn=payload.get("map_fn") or "",
            measure=copy.deepcopy(dict(payload)),
        )
