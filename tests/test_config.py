"""Tests for configuration loading."""

import pytest
import yaml

from statement_recon.config import generate_default_config, get_default_config, load_config
from statement_recon.utils.exceptions import ConfigurationError


def test_defaults_without_file():
    config = load_config(None)

    assert config.matching.amount_tolerance == 2.0
    assert config.matching.date_tolerance_days == 2
    assert config.matching.min_match_score == 0.5
    assert config.matching.weights.amount == 0.4
    assert config.database.url == "sqlite:///reconciliation.db"
    assert config.storage.folder == "bank-statements"
    assert config.config_file_path is None


def test_yaml_overrides_are_deep_merged(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "matching": {"amount_tolerance": 5, "weights": {"description": 0.3}},
                "columns": {"amount": ["betrag"]},
            }
        )
    )

    config = load_config(path)

    assert config.matching.amount_tolerance == 5
    assert config.matching.weights.description == 0.3
    assert config.matching.weights.amount == 0.4
    assert config.matching.date_tolerance_days == 2
    assert config.columns.amount == ["betrag"]
    assert config.columns.date[0] == "date"
    assert config.config_file_path == str(path)


@pytest.mark.parametrize(
    "content",
    [
        "matching: [unclosed",
        "- just\n- a list\n",
        "matching:\n  min_match_score: not-a-number\n",
    ],
)
def test_invalid_files(tmp_path, content):
    path = tmp_path / "config.yaml"
    path.write_text(content)

    with pytest.raises(ConfigurationError):
        load_config(path)


def test_generated_config_loads_back(tmp_path):
    path = tmp_path / "nested" / "config.yaml"

    generate_default_config(path)

    assert path.read_text().startswith("#")
    assert load_config(path).model_dump(exclude={"config_file_path"}) == get_default_config()
