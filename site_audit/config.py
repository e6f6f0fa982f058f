"""
Loading and validation of SiteAudit configuration.

Two layers:

* :class:`AppConfig` – persistent settings (AI provider) merged from the
  built-in defaults, ``~/.site-audit.yaml``, ``./.site-audit.yaml`` and
  environment variables.
* :class:`AuditOptions` – parameters of a single audit run, built by the CLI.

Pydantic describes the schema and checks the data.
"""
from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from site_audit.errors import ConfigurationError
from site_audit.logger import logger
from site_audit.utils import VALID_CATEGORIES, validate_category, validate_url

CONFIG_FILENAME = ".site-audit.yaml"
USER_CONFIG_PATH = Path.home() / CONFIG_FILENAME
# relative: resolved against the working directory at load time
PROJECT_CONFIG_PATH = Path(CONFIG_FILENAME)

ProviderName = Literal["ollama", "openai"]

# env var -> (section, key) inside the "ai" mapping
ENV_OVERRIDES: Dict[str, tuple[Optional[str], str]] = {
    "SITE_AUDIT_PROVIDER": (None, "provider"),
    "SITE_AUDIT_OLLAMA_HOST": ("ollama", "host"),
    "SITE_AUDIT_OLLAMA_MODEL": ("ollama", "model"),
    "OPENAI_API_KEY": ("openai", "api_key"),
    "SITE_AUDIT_OPENAI_API_KEY": ("openai", "api_key"),
    "SITE_AUDIT_OPENAI_MODEL": ("openai", "model"),
    "SITE_AUDIT_OPENAI_BASE_URL": ("openai", "base_url"),
}


# --------------------------------------------------------------------------- #
# Persistent settings                                                         #
# --------------------------------------------------------------------------- #


class OllamaSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = Field("http://localhost:11434", description="Base URL of the Ollama server.")
    model: str = Field("gpt-oss:20b", description="Model tag used for every prompt.")
    temperature: float = Field(0.1, ge=0, le=2)
    num_ctx: int = Field(4096, ge=256, description="Context window passed to the model.")
    timeout: float = Field(300.0, gt=0, description="Per-request timeout (seconds).")

    @field_validator("host", mode="before")
    def _strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.rstrip("/")
        return v


class OpenAISettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: Optional[str] = Field(None, description="Bearer token for the hosted API.")
    model: str = "gpt-4"
    max_tokens: int = Field(1000, ge=1)
    temperature: float = Field(0.1, ge=0, le=2)
    base_url: Optional[str] = None
    timeout: float = Field(120.0, gt=0)
    max_retries: int = Field(2, ge=0)


class AISettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: Optional[ProviderName] = "ollama"
    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    openai: OpenAISettings = Field(default_factory=OpenAISettings)

    def validation_errors(self) -> List[str]:
        """Human-readable problems that prevent the provider from being used."""
        errors: List[str] = []
        if not self.provider:
            errors.append("AI provider not specified")
        elif self.provider == "ollama":
            if not self.ollama.host:
                errors.append("Ollama host not specified")
            if not self.ollama.model:
                errors.append("Ollama model not specified")
        elif self.provider == "openai":
            if not self.openai.api_key:
                errors.append("OpenAI API key not specified")
            if not self.openai.model:
                errors.append("OpenAI model not specified")
        return errors

    def ensure_valid(self) -> None:
        errors = self.validation_errors()
        if errors:
            raise ConfigurationError("Invalid AI configuration", errors)


class AppConfig(BaseModel):
    """Persistent SiteAudit configuration."""
    model_config = ConfigDict(extra="forbid")

    ai: AISettings = Field(default_factory=AISettings)

    def with_overrides(self, overrides: Mapping[str, Any]) -> AppConfig:
        """New config with *overrides* (same nesting as the YAML file) deep-merged in."""
        merged = deep_merge(self.model_dump(), overrides)
        return AppConfig(**merged)


# --------------------------------------------------------------------------- #
# Run options                                                                 #
# --------------------------------------------------------------------------- #


class AuditOptions(BaseModel):
    """Parameters of one audit run."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str = Field(..., description="Start URL of the crawl.")
    context: str = Field("", description="Free-text description of the site's purpose.")
    category: str = Field("General", description="Site category, one of VALID_CATEGORIES.")
    max_depth: int = Field(5, ge=0, description="Maximum link depth from the start URL.")
    max_pages: int = Field(50, ge=1, description="Hard limit on fetched pages.")
    output_dir: Path = Field(Path("./audit_results"))
    exclude_patterns: List[str] = Field(default_factory=list)
    auth: Optional[str] = Field(None, description="HTTP basic auth as 'user:pass'.")
    take_screenshots: bool = True
    create_archive: bool = True
    request_delay: float = Field(1.0, ge=0, description="Pause between page loads (seconds).")
    navigation_timeout: float = Field(60.0, gt=0)
    operation_timeout: float = Field(120.0, gt=0)
    retry_attempts: int = Field(3, ge=1)
    retry_base_delay: float = Field(2.0, ge=0)
    stage_timeout: float = Field(300.0, gt=0, description="Deadline of one analysis stage.")
    generate_pdf: bool = True

    @field_validator("url")
    def _check_url(cls, v: str) -> str:
        if not validate_url(v):
            raise ValueError(f"invalid URL: {v!r} (expected http:// or https://)")
        return v

    @field_validator("category")
    def _check_category(cls, v: str) -> str:
        if not validate_category(v):
            raise ValueError(f"invalid category {v!r}; valid: {', '.join(VALID_CATEGORIES)}")
        return v

    @field_validator("exclude_patterns", mode="before")
    def _split_patterns(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @field_validator("auth")
    def _check_auth(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and ":" not in v:
            raise ValueError("auth must look like 'user:pass'")
        return v

    @property
    def credentials(self) -> Optional[Dict[str, str]]:
        """Playwright ``http_credentials`` mapping or ``None``."""
        if not self.auth:
            return None
        username, _, password = self.auth.partition(":")
        return {"username": username, "password": password}

    @property
    def screenshots_dir(self) -> Path:
        return self.output_dir / "screenshots"

    @property
    def archive_dir(self) -> Path:
        return self.output_dir / "archive"


# --------------------------------------------------------------------------- #
# Files                                                                       #
# --------------------------------------------------------------------------- #


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def read_config_file(path: Path) -> dict[str, Any]:
    """Read one YAML/JSON config file; an unreadable file yields ``{}`` with a warning."""
    try:
        if path.suffix.lower() == ".json":
            return _read_json(path)
        return _read_yaml(path)
    except OSError as exc:
        logger.warning("Could not read config file %s: %s", path, exc)
        return {}


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive merge; mappings merge key by key, other values replace."""
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    ai: dict[str, Any] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        target = ai if section is None else ai.setdefault(section, {})
        target[key] = value
    return {"ai": ai} if ai else {}


def load_config(
    paths: Optional[Sequence[Union[str, Path]]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """
    Merge defaults, config files (later ones win) and environment variables.

    *paths* defaults to the user file then the project file; missing files are
    skipped. Malformed files raise ``ValueError``/``TypeError``.
    """
    if paths is None:
        paths = (USER_CONFIG_PATH, Path.cwd() / PROJECT_CONFIG_PATH)
    environ = os.environ if environ is None else environ

    data: dict[str, Any] = AppConfig().model_dump()
    for raw in paths:
        path = Path(raw).expanduser()
        if not path.is_file():
            continue
        logger.debug("Loading config from %s", path)
        data = deep_merge(data, read_config_file(path))

    data = deep_merge(data, _env_overrides(environ))
    return AppConfig(**data)


def save_config(config: AppConfig, path: Union[str, Path]) -> Path:
    """Write *config* as YAML; returns the resolved path."""
    path_obj = Path(path).expanduser()
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    payload = config.model_dump(mode="json")
    path_obj.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
    logger.info("Configuration saved to %s", path_obj)
    return path_obj


__all__ = [
    "OllamaSettings",
    "OpenAISettings",
    "AISettings",
    "AppConfig",
    "AuditOptions",
    "USER_CONFIG_PATH",
    "PROJECT_CONFIG_PATH",
    "deep_merge",
    "load_config",
    "save_config",
    "read_config_file",
]
