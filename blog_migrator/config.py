"""
Configuration loading for the Tistory → WordPress migration.

Configuration is supplied via a JSON file (``config/migration_config.json``
by default) or directly as a dictionary.  Keys missing from the file are
filled from environment variables and finally from defaults, then the whole
structure is validated with pydantic.  Any problem is reported as a
:class:`~blog_migrator.utils.errors.ConfigurationError` before the ledger is
touched.

Expected structure::

    {
      "source": {"blog_url": "https://example.tistory.com", "selectors": {...}},
      "wordpress": {"base_url": "https://example.com", "app_user": "...", "app_password": "..."},
      "migration": {"worker_count": 2, "rate_limit_cap": 1, "rate_limit_interval_ms": 1000, ...},
      "logging": {"level": "info", "file": "reports/migration/migration.log"}
    }
"""

from __future__ import annotations

import json
import logging
import os
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from blog_migrator.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = os.path.join("config", "migration_config.json")


class CategoryHierarchyOrder(str, Enum):
    FIRST_IS_PARENT = "first-is-parent"
    LAST_IS_PARENT = "last-is-parent"


def _require_http_url(value: str, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{field} is required")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"{field} must be a valid URL. Got: {value}")
    return value.rstrip("/")


class SelectorSettings(BaseModel):
    """CSS selectors matching the Tistory skin markup."""

    model_config = ConfigDict(extra="forbid")

    title: str = 'meta[name="title"]'
    publish_date: str = 'meta[property="article:published_time"]'
    modified_date: str = 'meta[property="article:modified_time"]'
    category: str = "div.another_category h4 a"
    tag: str = 'div.area_tag a[rel="tag"]'
    post_link: str = "a.link_category"
    content: str = "div.tt_article_useless_p_margin.contents_style"
    featured_image: str = 'meta[property="og:image"]'
    bookmark: str = 'figure[data-ke-type="opengraph"]'
    embed_card: str = "div.bookmark-card"

    @field_validator("*")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v or not v.strip() or len(v) > 200:
            raise ValueError("selectors must be non-empty strings of at most 200 characters")
        return v


class SourceSettings(BaseModel):
    blog_url: str
    selectors: SelectorSettings = Field(default_factory=SelectorSettings)

    @field_validator("blog_url")
    @classmethod
    def _valid_blog_url(cls, v: str) -> str:
        return _require_http_url(v, "source.blog_url")


class WordPressSettings(BaseModel):
    base_url: str
    app_user: str = Field(..., min_length=1)
    app_password: str = Field(..., min_length=1)
    timeout: float = Field(30.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def _valid_base_url(cls, v: str) -> str:
        return _require_http_url(v, "wordpress.base_url")

    @property
    def api_base(self) -> str:
        return f"{self.base_url}/wp-json/wp/v2"


class MigrationSettings(BaseModel):
    worker_count: int = Field(1, ge=1, le=16)
    rate_limit_interval_ms: int = Field(60000, gt=0)
    rate_limit_cap: int = Field(1, gt=0)
    max_retry_attempts: int = Field(3, ge=1)
    retry_initial_delay_ms: int = Field(500, ge=0)
    retry_max_delay_ms: int = Field(10000, ge=0)
    retry_backoff_multiplier: float = Field(2.0, ge=1)
    db_path: str = os.path.join("data", "migration.duckdb")
    output_dir: str = "output"
    reports_dir: str = os.path.join("reports", "migration")
    category_hierarchy_order: CategoryHierarchyOrder = CategoryHierarchyOrder.FIRST_IS_PARENT

    @field_validator("category_hierarchy_order", mode="before")
    @classmethod
    def _fallback_hierarchy(cls, v: Any) -> Any:
        valid = {o.value for o in CategoryHierarchyOrder}
        if isinstance(v, CategoryHierarchyOrder) or v in valid:
            return v
        logger.warning(
            "Invalid or missing category_hierarchy_order %r. Defaulting to %r.",
            v,
            CategoryHierarchyOrder.FIRST_IS_PARENT.value,
        )
        return CategoryHierarchyOrder.FIRST_IS_PARENT


class LoggingSettings(BaseModel):
    level: str = "info"
    file: Optional[str] = os.path.join("reports", "migration", "migration.log")

    @field_validator("level")
    @classmethod
    def _valid_level(cls, v: str) -> str:
        v = (v or "").lower()
        if v not in ("debug", "info", "warning", "error"):
            raise ValueError(f"logging.level must be one of: debug, info, warning, error. Got: {v}")
        return v


class Settings(BaseModel):
    source: SourceSettings
    wordpress: WordPressSettings
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def blog_url(self) -> str:
        return self.source.blog_url


# (section, key, environment variable, converter)
_ENV_OVERRIDES = [
    ("source", "blog_url", "TISTORY_BLOG_URL", str),
    ("wordpress", "base_url", "WP_BASE_URL", str),
    ("wordpress", "app_user", "WP_APP_USER", str),
    ("wordpress", "app_password", "WP_APP_PASSWORD", str),
    ("migration", "worker_count", "WORKER_COUNT", int),
    ("migration", "rate_limit_interval_ms", "RATE_LIMIT_INTERVAL", int),
    ("migration", "rate_limit_cap", "RATE_LIMIT_CAP", int),
    ("migration", "max_retry_attempts", "MAX_RETRY_ATTEMPTS", int),
    ("migration", "retry_initial_delay_ms", "RETRY_INITIAL_DELAY_MS", int),
    ("migration", "retry_max_delay_ms", "RETRY_MAX_DELAY_MS", int),
    ("migration", "retry_backoff_multiplier", "RETRY_BACKOFF_MULTIPLIER", float),
    ("migration", "db_path", "MIGRATION_DB_PATH", str),
    ("migration", "output_dir", "OUTPUT_DIR", str),
    ("migration", "category_hierarchy_order", "CATEGORY_HIERARCHY_ORDER", str),
    ("logging", "level", "LOG_LEVEL", str),
    ("logging", "file", "LOG_FILE", str),
]


def _apply_environment(config: Dict[str, Any], environ: Dict[str, str]) -> None:
    for section, key, env_name, convert in _ENV_OVERRIDES:
        config.setdefault(section, {})
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            config[section].setdefault(key, convert(raw))
        except ValueError:
            raise ConfigurationError(f"{env_name} must be a valid {convert.__name__}. Got: {raw}")


def load_settings(
    config: Optional[Dict[str, Any]] = None,
    *,
    config_file: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Settings:
    """Build validated :class:`Settings`.

    :param config: Configuration dictionary.  Ignored when ``config_file``
        points to an existing file.
    :param config_file: Path of a JSON configuration file.
    :param environ: Environment mapping, ``os.environ`` by default.
    :raises ConfigurationError: if the file is unreadable or any value is
        missing or invalid.
    """
    if config_file and os.path.exists(config_file):
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Invalid configuration file {config_file}: {e}") from e
    elif config is None:
        config = {}
    else:
        config = json.loads(json.dumps(config))

    _apply_environment(config, dict(os.environ if environ is None else environ))

    try:
        return Settings.model_validate(config)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e
