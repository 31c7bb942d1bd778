"""
Measure sources.

MeasureSource is the base every source extends. Subclasses implement
``get_measure_def`` to return the definition used to build executable
measures; ``get_measure`` resolves the identifier, compiles the definition
once and caches the compiled measure for the life of the source.
"""

import abc
import logging
import threading
import typing

from collections.abc import Iterable

from .compiler import CompiledMeasure, compile_measure
from .definition import MeasureDefinition
from .identifier import CanonicalId, get_measure_and_sub_id

logger = logging.getLogger(__name__)


class MeasureSource(metaclass=abc.ABCMeta):
    def __init__(self):
        # cache key ("{id}_{sub_id}") → compiled measure, never evicted
        self.generated_measures: dict[str, CompiledMeasure] = {}
        self._cache_lock = threading.RLock()

    @abc.abstractmethod
    def get_measure_def(
        self, measure_id: str, sub_id: typing.Optional[str]
    ) -> typing.Optional[MeasureDefinition]:
        # return the definition for the canonical (id, sub_id), or None if unknown
        raise NotImplementedError

    def get_measure(
        self, measure_id: typing.Any, sub_id: typing.Optional[str] = None
    ) -> typing.Optional[CompiledMeasure]:
        """
        Retrieve the executable measure for any accepted identifier spelling.

        Returns the cached CompiledMeasure for the canonical id, compiling it
        on first use, or None if this source has no such definition. The
        returned object's ``generate(options)`` builds measure results for the
        given effective_date, enable_logging, enable_rationale and
        short_circuit options.

        Raises MeasureCompileError if the definition's logic fragment cannot
        be compiled; nothing is cached in that case.
        """
        canonical_id = self.get_measure_and_sub_id(measure_id, sub_id)
        cache_key = canonical_id.cache_key

        with self._cache_lock:
            cached = self.generated_measures.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for {cache_key!r}")
                return cached

            definition = self.get_measure_def(canonical_id.id, canonical_id.sub_id)
            if definition is None:
                logger.debug(f"No definition for {canonical_id}")
                return None

            compiled = compile_measure(definition)
            self.generated_measures[cache_key] = compiled
            return compiled

    def get_measure_and_sub_id(
        self, measure_id: typing.Any, sub_id: typing.Optional[str] = None
    ) -> CanonicalId:
        return get_measure_and_sub_id(measure_id, sub_id)


class IndexedSource(MeasureSource):
    """
    Source over an in-memory collection of definitions, looked up by
    (hqmf_id, sub_id) or (cms_id, sub_id).
    """

    def __init__(self, definitions: Iterable[MeasureDefinition] = ()):
        super().__init__()
        self._definitions: list[MeasureDefinition] = []
        self._index: dict[tuple[str, typing.Optional[str]], MeasureDefinition] = {}
        for definition in definitions:
            self.add_definition(definition)

    @property
    def definitions(self) -> list[MeasureDefinition]:
        return list(self._definitions)

    def add_definition(self, definition: MeasureDefinition) -> None:
        keys = [definition.key]
        if definition.cms_id:
            keys.append((definition.cms_id, definition.sub_id))
        for key in keys:
            replaced = self._index.get(key)
            if replaced is not None and replaced is not definition:
                logger.warning(f"Definition {key} is defined more than once; using the last one")
            self._index[key] = definition
        self._definitions.append(definition)

    def get_measure_def(
        self, measure_id: str, sub_id: typing.Optional[str]
    ) -> typing.Optional[MeasureDefinition]:
        return self._index.get((measure_id, sub_id))
