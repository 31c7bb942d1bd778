"""
Measure identifier resolution.

Callers name a measure in several ad-hoc ways; all of them are normalized to
a CanonicalId before lookup or caching:

  - a CanonicalId, any mapping (its ``id`` and ``sub_id`` keys), or an
    object carrying an ``id`` attribute
  - a composite CMS id with an embedded sub id, e.g. ``CMS182v5a``
  - an HQMF id with a colon separated sub id, e.g. ``40280381-xyz:b``
  - any other string, paired with the sub id passed alongside it
"""

import re
import typing

from collections.abc import Mapping

# CMS<digits>v<digits> plus optional lowercase sub id letters, e.g. CMS182v5a
_COMPOSITE_CMS_PATTERN = re.compile(r"^(?P<base>CMS\d+v\d+)(?P<suffix>[a-z]*)$")


class CanonicalId(typing.NamedTuple):
    """
    Normalized (id, sub_id) pair used for definition lookup and caching.

    Attributes:
        id: CMS or HQMF id, without any embedded sub id.
        sub_id: Population set sub id (e.g. 'a'), or None.
    """

    id: str
    sub_id: typing.Optional[str] = None

    @property
    def cache_key(self) -> str:
        return f"{self.id}_{self.sub_id}"


def _structured_id(measure_id: typing.Any) -> typing.Optional[CanonicalId]:
    if isinstance(measure_id, CanonicalId):
        return measure_id
    if isinstance(measure_id, Mapping):
        # missing or empty id reads as ''
        return CanonicalId(measure_id.get("id") or "", measure_id.get("sub_id"))
    if isinstance(measure_id, str):
        return None
    if hasattr(measure_id, "id"):
        return CanonicalId(measure_id.id or "", getattr(measure_id, "sub_id", None))
    return None


def get_measure_and_sub_id(
    measure_id: typing.Any, sub_id: typing.Optional[str] = None
) -> CanonicalId:
    """
    Resolve a measure identifier and optional sub id into a CanonicalId.

    Forms are tried in order, first match wins:
      1) structured id: its own sub_id is trusted, ``sub_id`` is ignored
      2) ``CMS<n>v<n><letters>``: letters are stripped from the id and become
         the sub id only when ``sub_id`` is None
      3) ``HQMF_ID:SUB_ID`` (exactly one colon): ``sub_id`` is ignored
      4) anything else: returned as the id with ``sub_id`` unchanged

    Never raises for string input; unrecognized strings fall through to 4).
    """
    structured = _structured_id(measure_id)
    if structured is not None:
        return structured

    measure_id = str(measure_id)

    m = _COMPOSITE_CMS_PATTERN.match(measure_id)
    if m:
        suffix = m.group("suffix")
        if sub_id is None and suffix:
            sub_id = suffix
        return CanonicalId(m.group("base"), sub_id)

    parts = measure_id.split(":")
    if len(parts) == 2:
        return CanonicalId(parts[0], parts[1])

    return CanonicalId(measure_id, sub_id)
