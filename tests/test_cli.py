import json

from click.testing import CliRunner

from cqm_source.__main__ import main


def test_resolve_text_output():
    runner = CliRunner()
    result = runner.invoke(main, ["resolve", "CMS182v5a"])
    assert result.exit_code == 0, result.output
    assert "id:     CMS182v5" in result.output
    assert "sub_id: a" in result.output


def test_resolve_json_output():
    runner = CliRunner()
    result = runner.invoke(main, ["resolve", "40280381-xyz:b", "-s", "c", "-r"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"id": "40280381-xyz", "sub_id": "b"}


def test_resolve_without_sub_id_prints_dash():
    result = CliRunner().invoke(main, ["resolve", "CMS182v5"])
    assert "sub_id: -" in result.output


def test_list_measures_table(fpath_bundle):
    runner = CliRunner()
    result = runner.invoke(main, ["list-measures", "-b", fpath_bundle])
    assert result.exit_code == 0, result.output

    lines = result.output.splitlines()
    assert lines[0].split() == ["hqmf_id", "cms_id", "sub_id", "continuous_variable", "aggregator"]
    assert len(lines) == 5
    assert any("MEDIAN" in line for line in lines)


def test_list_measures_json(fpath_bundle):
    runner = CliRunner()
    result = runner.invoke(main, ["list-measures", "-b", fpath_bundle, "-r"])
    assert result.exit_code == 0, result.output

    payload = json.loads(result.stdout)
    assert isinstance(payload, list)
    assert len(payload) == 4
    for obj in payload:
        assert {"hqmf_id", "cms_id", "sub_id", "continuous_variable", "aggregator"} == set(obj)


def test_generate_end_to_end(fpath_bundle):
    runner = CliRunner()
    result = runner.invoke(
        main, ["generate", "-b", fpath_bundle, "-m", "CMS100v1", "--effective-date", "2020-01-01"]
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"ran": True}


def test_generate_passes_options(fpath_bundle):
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["generate", "-b", fpath_bundle, "-m", "CMS182v5", "-s", "b", "--effective-date", "2020-12-31", "--short-circuit"],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {
        "population_set": "b",
        "effective_date": "2020-12-31",
        "short_circuit": True,
    }


def test_generate_unknown_measure_fails(fpath_bundle):
    runner = CliRunner()
    result = runner.invoke(main, ["generate", "-b", fpath_bundle, "-m", "CMS999v1"])
    assert result.exit_code == 1
    assert "no measure 'CMS999v1'" in result.output


def test_generate_requires_exactly_one_source(fpath_bundle, tmp_path):
    runner = CliRunner()
    result = runner.invoke(main, ["generate", "-m", "CMS100v1"])
    assert result.exit_code == 2
    assert "exactly one of" in result.output
