from pathlib import Path

import pytest
from pydantic import ValidationError

from verity.config import RunConfig, load_config


def test_load_valid_config(tmp_path):
    config_file = tmp_path / "verity.yaml"
    config_file.write_text("""
suites:
  - tests_pkg.math:suite
  - tests_pkg.text:suite
paths: ["src", "/abs/path"]
output_dir: out
parallel: 4
repeat: 2
""")
    config = load_config(config_file)
    assert config.suites == ["tests_pkg.math:suite", "tests_pkg.text:suite"]
    assert config.parallel == 4
    assert config.repeat == 2
    assert config.paths == [str((tmp_path / "src").resolve()), "/abs/path"]
    assert config.output_dir == str((tmp_path / "out").resolve())


def test_defaults(tmp_path):
    config_file = tmp_path / "verity.yaml"
    config_file.write_text("suites: ['a:b']\n")
    config = load_config(config_file)
    assert config.parallel == 1
    assert config.repeat == 1
    assert config.paths == [str(tmp_path.resolve())]
    assert Path(config.output_dir) == (tmp_path / "runs").resolve()


def test_empty_suites_rejected():
    with pytest.raises(ValidationError, match="suites must not be empty"):
        RunConfig(suites=[])


def test_malformed_suite_reference_rejected():
    with pytest.raises(ValidationError, match="module:attribute"):
        RunConfig(suites=["pkg.module", "ok:suite"])


def test_unknown_keys_rejected():
    with pytest.raises(ValidationError):
        RunConfig(suites=["a:b"], workers=3)


@pytest.mark.parametrize("field", ["parallel", "repeat"])
def test_counts_must_be_positive(field):
    with pytest.raises(ValidationError):
        RunConfig(suites=["a:b"], **{field: 0})


def test_environment_variables_expanded(monkeypatch):
    monkeypatch.setenv("VERITY_OUT", "/tmp/verity-out")
    config = RunConfig(suites=["a:b"], output_dir="${VERITY_OUT}/runs")
    assert config.output_dir == "/tmp/verity-out/runs"


def test_environment_default_used(monkeypatch):
    monkeypatch.delenv("VERITY_UNSET_DIR", raising=False)
    config = RunConfig(suites=["a:b"], paths=["${VERITY_UNSET_DIR:-lib}"])
    assert config.paths == ["lib"]


def test_missing_environment_variables_listed_together(monkeypatch):
    monkeypatch.delenv("VERITY_NOPE_1", raising=False)
    monkeypatch.delenv("VERITY_NOPE_2", raising=False)
    with pytest.raises(ValidationError) as exc_info:
        RunConfig(
            suites=["a:b"], output_dir="${VERITY_NOPE_1}", paths=["${VERITY_NOPE_2}"]
        )
    message = str(exc_info.value)
    assert "VERITY_NOPE_1" in message
    assert "VERITY_NOPE_2" in message


def test_non_mapping_yaml_rejected(tmp_path):
    config_file = tmp_path / "verity.yaml"
    config_file.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="mapping"):
        load_config(config_file)
