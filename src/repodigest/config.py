"""
Configuration management using pydantic-settings.

Sources, lowest precedence first:
1. built-in defaults
2. REPODIGEST_* environment variables (nested keys joined with "__")
3. `.repodigest.yml` in the working directory
4. the YAML file named by REPODIGEST_CONFIG_PATH
"""
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from repodigest.utils.tz import resolve_zone

CONFIG_FILENAME = ".repodigest.yml"
CONFIG_PATH_ENV = "REPODIGEST_CONFIG_PATH"
REPO_PATTERN = re.compile(r'^[^/\s]+/[^/\s]+$')


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or parsed."""


class ScopeConfig(BaseModel):
    """Repositories the digest covers."""
    repos: List[str] = Field(default_factory=list, description="owner/name entries")

    @field_validator("repos")
    @classmethod
    def _check_repos(cls, repos: List[str]) -> List[str]:
        for repo in repos:
            if not REPO_PATTERN.match(repo):
                raise ValueError(f"Repo format must be owner/name, got {repo!r}")
        return repos


class GitHubConfig(BaseModel):
    """GitHub REST API collector configuration."""
    enabled: bool = Field(default=True, description="Collect from GitHub when selected as a source")
    token_env: str = Field(default="GITHUB_TOKEN", min_length=1, description="Environment variable holding the token")
    api_url: str = Field(default="https://api.github.com", description="REST API base URL")
    assignee: Optional[str] = Field(default=None, description="Only issues assigned to this user")
    labels_any: List[str] = Field(default_factory=list, description="Keep items carrying any of these labels")
    timeout_s: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")


class GitConfig(BaseModel):
    """Local `git log` collector configuration."""
    enabled: bool = Field(default=False)
    repo_path: str = Field(default=".", description="Working tree to read")
    author: Optional[str] = Field(default=None, description="Only commits by this author")
    max_count: int = Field(default=200, gt=0, description="Upper bound on commits per run")


class ProvidersConfig(BaseModel):
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    git: GitConfig = Field(default_factory=GitConfig)


class RulesConfig(BaseModel):
    """Label vocabularies for status classification; empty means built-in defaults."""
    blocked_labels: List[str] = Field(default_factory=list)
    next_labels: List[str] = Field(default_factory=list)


class IncludeConfig(BaseModel):
    links: bool = True
    metrics: bool = True
    stack: bool = False


class OutputConfig(BaseModel):
    """Rendering configuration."""
    target: Literal["internal", "x", "threads", "markdown"] = "internal"
    lang: Literal["en", "zh-TW", "both"] = "en"
    tone: Literal["calm", "playful", "hacker", "formal"] = "calm"
    include: IncludeConfig = Field(default_factory=IncludeConfig)
    max_length: int = Field(default=280, ge=1, description="Per-post character limit for X")
    numbering: bool = Field(default=True, description="Append (i/N) to multi-post threads")
    summarizer_plugin: Optional[str] = Field(default=None, description="Module name or .py path")
    summarizer_timeout_s: float = Field(default=10.0, gt=0)
    write_json: bool = Field(default=True, description="Write the JSON digest next to the Markdown file")


class ObservabilityConfig(BaseModel):
    log_level: str = Field(default="WARNING", description="Used when the CLI gets no --log-level")
    prometheus_port: Optional[int] = Field(default=None, description="None disables the exporter")


class Config(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_prefix="REPODIGEST_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    timezone: str = Field(default="UTC", min_length=1, description="IANA zone for calendar dates")
    scope: ScopeConfig = Field(default_factory=ScopeConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    rules: RulesConfig = Field(default_factory=RulesConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        resolve_zone(value)
        return value


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return data


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def config_paths(cwd: Union[str, Path, None] = None) -> List[Path]:
    """Existing config files in increasing precedence."""
    base = Path(cwd) if cwd is not None else Path.cwd()
    candidates = [base / CONFIG_FILENAME]
    override = os.getenv(CONFIG_PATH_ENV)
    if override:
        candidates.append(base / Path(override).expanduser())
    return [path for path in candidates if path.is_file()]


def load_config(cwd: Union[str, Path, None] = None, **overrides: Any) -> Config:
    """
    Load configuration for a working directory.

    Args:
        cwd: Directory holding `.repodigest.yml` (defaults to the process cwd)
        **overrides: Top-level values applied last (e.g. from the CLI)

    Raises:
        ConfigError: If a config file is unreadable or not a mapping
        ValidationError: If values fail validation
    """
    data: Dict[str, Any] = {}
    for path in config_paths(cwd):
        data = _deep_merge(data, _read_yaml(path))
    data = _deep_merge(data, overrides)
    return Config(**data)


def read_config_file(cwd: Union[str, Path]) -> Dict[str, Any]:
    """Raw mapping stored in `.repodigest.yml`, without env or defaults applied."""
    path = Path(cwd) / CONFIG_FILENAME
    if not path.is_file():
        raise ConfigError(f"{CONFIG_FILENAME} not found in {cwd}. Run `repodigest init` first.")
    return _read_yaml(path)


def save_config(data: Dict[str, Any], cwd: Union[str, Path]) -> Path:
    """
    Validate a raw config mapping and write it to `.repodigest.yml`.

    Raises:
        ValidationError: If the mapping would not load back
    """
    Config(**data)
    path = Path(cwd) / CONFIG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return path


def format_config_error(error: BaseException) -> str:
    """Flatten a configuration error into `path: message` lines."""
    if isinstance(error, ValidationError):
        lines = []
        for issue in error.errors():
            where = ".".join(str(part) for part in issue["loc"]) or "(root)"
            lines.append(f"{where}: {issue['msg']}")
        return "\n".join(lines)
    return str(error)


def get_github_token(config: Config, cwd: Union[str, Path, None] = None) -> Optional[str]:
    """Token from the configured environment variable, else from `.env`."""
    name = config.providers.github.token_env
    token = os.getenv(name)
    if token:
        return token.strip()

    env_file = (Path(cwd) if cwd is not None else Path.cwd()) / ".env"
    if env_file.is_file():
        token = dotenv_values(env_file).get(name)
        if token:
            return token.strip()
    return None
