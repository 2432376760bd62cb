"""Configuration management for github-activity-report."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import ConfigError

SUPPORTED_LLM_PROVIDERS = ("openai", "deepseek", "custom")

DEFAULT_PROMPT_TEMPLATE = """\
You are a personal GitHub activity summarizer. From the GitHub activity \
data supplied by the user, write a concise, technical, weekly-report style \
summary.

Requirements:
1. Group by project. For each project give 2-3 lines on the main technical \
progress: results, optimizations, problems solved. Do not list individual \
commits or pull requests.
2. Finish with an overall technical analysis: main directions of the period, \
one representative problem and how it was solved, and the totals (commits, \
lines added, lines deleted).
3. Keep it short, as if reported orally at a weekly meeting. Focus on what \
was done and why it matters rather than on volume.

Output template:

# [{username}](https://github.com/{username}) weekly GitHub activity

## Project A
- key progress 1
- key progress 2

## Overall analysis
Main focus: ...
Representative problem: ...
This period: C commits, A lines added, D lines deleted.
"""


@dataclass
class TokenConfig:
    """A GitHub token, optionally bound to the account it belongs to."""

    token: str
    username: str = ""


@dataclass
class GitHubConfig:
    """GitHub access configuration."""

    tokens: list[TokenConfig] = field(default_factory=list)
    endpoint: str = "https://api.github.com"
    usernames: list[str] = field(default_factory=list)


@dataclass
class FetchConfig:
    """Tuning for timeline aggregation."""

    per_page: int = 100
    max_workers: int = 4
    page_retries: int = 3
    backoff_base: float = 1.0
    timeout: float | None = 300.0
    stop_at_window_start: bool = False


@dataclass
class LLMConfig:
    """Text-generation backend configuration."""

    provider: str = "deepseek"
    api_key: str = ""
    model: str = "deepseek-chat"
    base_url: str = "https://api.deepseek.com/v1"
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE


@dataclass
class NotifierConfig:
    """Configuration for one chat webhook."""

    enabled: bool = False
    webhook_url: str = ""


@dataclass
class Config:
    """Main configuration object."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    wechat: NotifierConfig = field(default_factory=NotifierConfig)
    feishu: NotifierConfig = field(default_factory=NotifierConfig)
    days: int = 7
    output: str | None = None

    def token_for(self, username: str) -> str | None:
        """Return the token configured for ``username``.

        Falls back to the first configured token when none is bound to the
        user, and to None when no token is configured at all.
        """
        for entry in self.github.tokens:
            if entry.username and entry.username.lower() == username.lower():
                return entry.token
        if self.github.tokens:
            return self.github.tokens[0].token
        return None

    def report_usernames(self) -> list[str]:
        """Return the users reported on by default.

        Explicit ``github.usernames`` win; otherwise every token that names
        its account contributes that account.
        """
        if self.github.usernames:
            return list(self.github.usernames)
        return [t.username for t in self.github.tokens if t.username]


def _expand_env_vars(value: str) -> str:
    """Expand environment variable references in a string.

    Supports ${VAR_NAME} syntax. Returns the original string if the
    environment variable is not set.

    Args:
        value: String potentially containing ${VAR_NAME} references

    Returns:
        String with environment variables expanded
    """
    if not isinstance(value, str):
        return value

    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return pattern.sub(replacer, value)


def _expand(data):
    """Recursively expand environment variables in parsed YAML."""
    if isinstance(data, dict):
        return {key: _expand(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand(item) for item in data]
    if isinstance(data, str):
        return _expand_env_vars(data)
    return data


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return value


def _parse_tokens(github: dict) -> list[TokenConfig]:
    tokens = []
    for entry in github.get("tokens") or []:
        if isinstance(entry, str):
            tokens.append(TokenConfig(token=entry))
        elif isinstance(entry, dict) and entry.get("token"):
            tokens.append(TokenConfig(token=entry["token"], username=entry.get("username") or ""))
        else:
            raise ConfigError(f"Invalid GitHub token entry: {entry!r}")

    # A single top-level token is accepted as shorthand.
    if github.get("token"):
        tokens.append(TokenConfig(token=github["token"]))
    return tokens


def _parse_notifier(raw: dict, name: str) -> NotifierConfig:
    section = _section(raw, name)
    return NotifierConfig(
        enabled=bool(section.get("enabled", False)),
        webhook_url=section.get("webhook_url") or "",
    )


def load_config(config_path: str | Path) -> Config:
    """Load and parse configuration from a YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Parsed configuration object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        raw_config = yaml.safe_load(f)

    if not raw_config:
        raise ConfigError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration must be a mapping")

    raw_config = _expand(raw_config)

    github = _section(raw_config, "github")
    fetch = _section(raw_config, "fetch")
    llm = _section(raw_config, "llm")
    notifiers = _section(raw_config, "notifiers")

    usernames = github.get("usernames") or []
    if not isinstance(usernames, list):
        raise ConfigError("github.usernames must be a list")

    defaults = FetchConfig()
    llm_defaults = LLMConfig()
    try:
        fetch_config = FetchConfig(
            per_page=int(fetch.get("per_page", defaults.per_page)),
            max_workers=int(fetch.get("max_workers", defaults.max_workers)),
            page_retries=int(fetch.get("page_retries", defaults.page_retries)),
            backoff_base=float(fetch.get("backoff_base", defaults.backoff_base)),
            timeout=_optional_float(fetch.get("timeout", defaults.timeout)),
            stop_at_window_start=bool(fetch.get("stop_at_window_start", defaults.stop_at_window_start)),
        )
        days = int(raw_config.get("days", 7))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid numeric setting: {e}") from e

    config = Config(
        github=GitHubConfig(
            tokens=_parse_tokens(github),
            endpoint=github.get("endpoint") or "https://api.github.com",
            usernames=[str(u) for u in usernames],
        ),
        fetch=fetch_config,
        llm=LLMConfig(
            provider=llm.get("provider") or llm_defaults.provider,
            api_key=llm.get("api_key") or "",
            model=llm.get("model") or llm_defaults.model,
            base_url=llm.get("base_url") or llm_defaults.base_url,
            prompt_template=llm.get("prompt_template") or llm_defaults.prompt_template,
        ),
        wechat=_parse_notifier(notifiers, "wechat"),
        feishu=_parse_notifier(notifiers, "feishu"),
        days=days,
        output=raw_config.get("output"),
    )
    validate_config(config)
    return config


def _optional_float(value) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def validate_config(config: Config) -> None:
    """Check a configuration for values the report cannot run without.

    Raises:
        ConfigError: On the first problem found
    """
    if not config.github.tokens:
        raise ConfigError("At least one GitHub token is required")

    if config.llm.provider not in SUPPORTED_LLM_PROVIDERS:
        raise ConfigError(f"Invalid LLM provider: {config.llm.provider}")

    if config.days <= 0:
        raise ConfigError(f"Invalid number of days: {config.days}")

    if config.fetch.per_page <= 0 or config.fetch.per_page > 100:
        raise ConfigError(f"fetch.per_page must be between 1 and 100, got {config.fetch.per_page}")

    for name, notifier in (("wechat", config.wechat), ("feishu", config.feishu)):
        if notifier.enabled and not notifier.webhook_url:
            raise ConfigError(f"Notifier {name} is enabled but has no webhook_url")
