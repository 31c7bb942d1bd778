import pytest

from cqm_source.definition import MeasureDefinition


def test_from_dict_reads_fields_and_keeps_payload():
    payload = {
        "hqmf_id": "HQMF1",
        "cms_id": "CMS100v1",
        "sub_id": "",
        "continuous_variable": True,
        "aggregator": "MEDIAN",
        "population_ids": ["IPP", "MSRPOPL"],
        "map_fn": "hqmfjs.ran = True",
        "title": "Some measure",
    }
    definition = MeasureDefinition.from_dict(payload)

    assert definition.hqmf_id == "HQMF1"
    assert definition.cms_id == "CMS100v1"
    assert definition.sub_id is None  # blank sub id → None
    assert definition.continuous_variable is True
    assert definition.aggregator == "MEDIAN"
    assert definition.population_ids == ["IPP", "MSRPOPL"]
    assert definition.measure["title"] == "Some measure"
    assert definition.key == ("HQMF1", None)


def test_from_dict_copies_payload():
    payload = {"hqmf_id": "HQMF1", "population_ids": ["IPP"]}
    definition = MeasureDefinition.from_dict(payload)
    payload["population_ids"].append("DENOM")
    assert definition.population_ids == ["IPP"]
    assert definition.measure["population_ids"] == ["IPP"]


def test_from_dict_defaults():
    definition = MeasureDefinition.from_dict({"hqmf_id": "HQMF1"})
    assert definition.cms_id is None
    assert definition.continuous_variable is False
    assert definition.population_ids == []
    assert definition.map_fn == ""


def test_definition_is_immutable():
    definition = MeasureDefinition(hqmf_id="HQMF1")
    with pytest.raises(AttributeError):
        definition.hqmf_id = "HQMF2"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"hqmf_id": ""},
        {"hqmf_id": "HQMF1", "continuous_variable": "yes"},
        {"hqmf_id": "HQMF1", "population_ids": "IPP"},
        {"hqmf_id": "HQMF1", "map_fn": 42},
    ],
)
def test_invalid_payload_raises(payload):
    with pytest.raises(ValueError):
        MeasureDefinition.from_dict(payload)


def test_non_object_payload_raises():
    with pytest.raises(ValueError):
        MeasureDefinition.from_dict(["HQMF1"])
