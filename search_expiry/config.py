from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "search": {
        "endpoint": None,
        "api_key": None,
        "index_name": None,
        "document_key_field": None,
        "expiration_field": "ExpirationDate",
        "list_field": "JobNumber",
    },
    "query": {
        "years_back": None,
        "fetch_size": 1000,
    },
    "delete": {
        "batch_size": 1000,
        "retry_attempts": 3,
        "retry_delay_ms": 1000,
        # Pause between deleted pages; batches within a page use runtime.rate_limit_delay_ms.
        "page_delay_ms": 500,
    },
    "runtime": {
        "rate_limit_delay_ms": 100,
        "error_backoff_ms": 5000,
        "max_consecutive_errors": 5,
        "log_level": "INFO",
    },
}

# (environment variable, section, key, parser)
ENV_OVERRIDES: list[tuple[str, str, str, Callable[[str], Any]]] = [
    ("AZURE_SEARCH_ENDPOINT", "search", "endpoint", str),
    ("AZURE_SEARCH_API_KEY", "search", "api_key", str),
    ("INDEX_NAME", "search", "index_name", str),
    ("DOCUMENT_KEY_FIELD", "search", "document_key_field", str),
    ("EXPIRATION_FIELD", "search", "expiration_field", str),
    ("LIST_FIELD", "search", "list_field", str),
    ("YEARS_BACK", "query", "years_back", int),
    ("FETCH_SIZE", "query", "fetch_size", int),
    ("BATCH_SIZE", "delete", "batch_size", int),
    ("RETRY_ATTEMPTS", "delete", "retry_attempts", int),
    ("RETRY_DELAY_MS", "delete", "retry_delay_ms", float),
    ("PAGE_DELAY_MS", "delete", "page_delay_ms", float),
    ("RATE_LIMIT_DELAY_MS", "runtime", "rate_limit_delay_ms", float),
    ("LOG_LEVEL", "runtime", "log_level", str),
]


def _deep_update(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path: str | Path | None) -> dict[str, Any]:
    cfg = json.loads(json.dumps(DEFAULT_CONFIG))
    if not config_path:
        return cfg
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ValueError("Config root must be a mapping")
    _deep_update(cfg, payload)
    return cfg


def apply_env_overrides(cfg: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    for name, section, key, parse in ENV_OVERRIDES:
        raw = (environ.get(name) or "").strip()
        if not raw:
            continue
        try:
            value = parse(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {name}: {raw!r}") from exc
        cfg.setdefault(section, {})[key] = value
    return cfg


def apply_cli_overrides(cfg: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    def _drop_none(value: Any) -> Any:
        if isinstance(value, dict):
            return {k: _drop_none(v) for k, v in value.items() if v is not None}
        if isinstance(value, list):
            return [_drop_none(v) for v in value if v is not None]
        return value

    cleaned = _drop_none(overrides)
    _deep_update(cfg, cleaned)
    return cfg


def _setting(section: dict[str, Any], key: str, default: Any, cast: Callable[[Any], Any]) -> Any:
    value = section.get(key)
    if value is None:
        return default
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for {key}: {value!r}") from exc


@dataclass(frozen=True, slots=True)
class RunSettings:
    """Resolved settings shared by the lister and the deleter."""

    endpoint: str | None
    api_key: str | None
    index_name: str | None
    document_key_field: str | None
    expiration_field: str
    list_field: str
    years_back: int | None
    fetch_size: int
    batch_size: int
    retry_attempts: int
    retry_delay_ms: float
    page_delay_ms: float
    rate_limit_delay_ms: float
    error_backoff_ms: float
    max_consecutive_errors: int | None
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> "RunSettings":
        search = cfg.get("search", {})
        query = cfg.get("query", {})
        delete = cfg.get("delete", {})
        runtime = cfg.get("runtime", {})
        return cls(
            endpoint=search.get("endpoint"),
            api_key=search.get("api_key"),
            index_name=search.get("index_name"),
            document_key_field=search.get("document_key_field"),
            expiration_field=str(search.get("expiration_field") or "ExpirationDate"),
            list_field=str(search.get("list_field") or "JobNumber"),
            years_back=_setting(query, "years_back", None, int),
            fetch_size=_setting(query, "fetch_size", 1000, int),
            batch_size=_setting(delete, "batch_size", 1000, int),
            retry_attempts=_setting(delete, "retry_attempts", 3, int),
            retry_delay_ms=_setting(delete, "retry_delay_ms", 1000.0, float),
            page_delay_ms=_setting(delete, "page_delay_ms", 500.0, float),
            rate_limit_delay_ms=_setting(runtime, "rate_limit_delay_ms", 100.0, float),
            error_backoff_ms=_setting(runtime, "error_backoff_ms", 5000.0, float),
            max_consecutive_errors=_setting(runtime, "max_consecutive_errors", None, int),
            log_level=str(runtime.get("log_level", "INFO")),
        )

    def validate(self, command: str) -> "RunSettings":
        required = {
            "search.endpoint (AZURE_SEARCH_ENDPOINT)": self.endpoint,
            "search.api_key (AZURE_SEARCH_API_KEY)": self.api_key,
            "search.index_name (INDEX_NAME)": self.index_name,
            "query.years_back (YEARS_BACK)": self.years_back,
        }
        if command == "delete":
            required["search.document_key_field (DOCUMENT_KEY_FIELD)"] = self.document_key_field
        missing = [name for name, value in required.items() if value in (None, "")]
        if missing:
            raise ValueError("Missing required settings: " + ", ".join(missing))
        if self.years_back is not None and self.years_back < 0:
            raise ValueError("years_back must not be negative")
        for name in ("fetch_size", "batch_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be a positive integer")
        for name in ("retry_delay_ms", "page_delay_ms", "rate_limit_delay_ms", "error_backoff_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        return self

    @property
    def retry_delay_sec(self) -> float:
        return self.retry_delay_ms / 1000.0

    @property
    def page_delay_sec(self) -> float:
        return self.page_delay_ms / 1000.0

    @property
    def rate_limit_delay_sec(self) -> float:
        return self.rate_limit_delay_ms / 1000.0

    @property
    def error_backoff_sec(self) -> float:
        return self.error_backoff_ms / 1000.0
