from pathlib import Path

import pytest

from search_expiry.config import (
    RunSettings,
    apply_cli_overrides,
    apply_env_overrides,
    load_config,
)


def test_apply_cli_overrides_ignores_nested_none_values() -> None:
    cfg = load_config(None)
    merged = apply_cli_overrides(
        cfg,
        {
            "query": {"fetch_size": None, "years_back": 3},
            "delete": {"batch_size": None},
        },
    )
    assert merged["query"]["fetch_size"] == 1000
    assert merged["query"]["years_back"] == 3
    assert merged["delete"]["batch_size"] == 1000


def test_env_overrides_map_variable_names() -> None:
    cfg = apply_env_overrides(
        load_config(None),
        {
            "AZURE_SEARCH_ENDPOINT": "https://svc.search.windows.net",
            "AZURE_SEARCH_API_KEY": "k",
            "INDEX_NAME": "jobs",
            "DOCUMENT_KEY_FIELD": "id",
            "YEARS_BACK": "7",
            "BATCH_SIZE": "500",
            "FETCH_SIZE": "5000",
            "RETRY_ATTEMPTS": "4",
            "RETRY_DELAY_MS": "1500",
            "RATE_LIMIT_DELAY_MS": "",
        },
    )
    settings = RunSettings.from_config(cfg).validate("delete")
    assert settings.years_back == 7
    assert settings.batch_size == 500
    assert settings.fetch_size == 5000
    assert settings.retry_attempts == 4
    assert settings.retry_delay_sec == 1.5
    assert settings.rate_limit_delay_sec == 0.1
    assert settings.error_backoff_sec == 5.0
    assert settings.max_consecutive_errors == 5


def test_env_override_rejects_non_numeric() -> None:
    with pytest.raises(ValueError, match="BATCH_SIZE"):
        apply_env_overrides(load_config(None), {"BATCH_SIZE": "lots"})


def test_yaml_file_is_layered_over_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("search:\n  index_name: jobs\ndelete:\n  retry_attempts: 5\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg["search"]["index_name"] == "jobs"
    assert cfg["search"]["expiration_field"] == "ExpirationDate"
    assert cfg["delete"]["retry_attempts"] == 5


def test_missing_config_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_validate_lists_missing_settings() -> None:
    settings = RunSettings.from_config(load_config(None))
    with pytest.raises(ValueError) as excinfo:
        settings.validate("delete")
    message = str(excinfo.value)
    assert "AZURE_SEARCH_ENDPOINT" in message
    assert "YEARS_BACK" in message
    assert "DOCUMENT_KEY_FIELD" in message


def test_lister_does_not_need_key_field(make_settings) -> None:
    settings = make_settings(document_key_field=None)
    assert settings.validate("list") is settings
    with pytest.raises(ValueError):
        settings.validate("delete")


def test_validate_rejects_non_positive_sizes(make_settings) -> None:
    with pytest.raises(ValueError, match="batch_size"):
        make_settings(batch_size=0).validate("delete")


@pytest.mark.parametrize("name", ["retry_delay_ms", "page_delay_ms", "rate_limit_delay_ms", "error_backoff_ms"])
def test_validate_rejects_negative_delays(make_settings, name: str) -> None:
    with pytest.raises(ValueError, match=name):
        make_settings(**{name: -1.0}).validate("delete")


def test_zero_delays_are_allowed(make_settings) -> None:
    settings = make_settings(rate_limit_delay_ms=0.0, page_delay_ms=0.0)
    assert settings.validate("delete").rate_limit_delay_sec == 0.0


def test_null_yaml_values_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("query:\n  fetch_size: null\ndelete:\n  batch_size: null\n", encoding="utf-8")
    settings = RunSettings.from_config(load_config(path))
    assert settings.fetch_size == 1000
    assert settings.batch_size == 1000


def test_non_numeric_yaml_value_is_a_value_error(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("delete:\n  retry_attempts: [1, 2]\n", encoding="utf-8")
    with pytest.raises(ValueError, match="retry_attempts"):
        RunSettings.from_config(load_config(path))
