"""Configuration module for loading project settings and environment variables.

Settings are resolved once at process start (``resolve_settings``) and passed
into the fetcher, analyzer and store constructors. Nothing downstream reads
``os.environ`` directly.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from newsdigest.core.errors import ConfigError

# Load environment variables from .env file
load_dotenv()

DEFAULT_STRATEGIES = ("http", "curl", "yahoo_api")
MIN_FETCH_TIMEOUT = 30

# Per-provider connection defaults for the OpenAI-compatible chat API.
PROVIDER_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "openai": {
        "api_key_env": "OPENAI_API_KEY",
        "base_url": "https://api.openai.com/v1",
        "model": "gpt-3.5-turbo",
    },
    "xai": {
        "api_key_env": "XAI_API_KEY",
        "base_url": "https://api.x.ai/v1",
        "model": "grok-3",
    },
    "gemini": {
        "api_key_env": "GEMINI_API_KEY",
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
        "model": "gemini-1.5-flash",
    },
    "finbert": {
        "api_key_env": None,
        "base_url": None,
        "model": "ProsusAI/finbert",
    },
}


@dataclass(frozen=True)
class FetchSettings:
    timeout_seconds: int = 60
    strategies: Tuple[str, ...] = DEFAULT_STRATEGIES
    max_header_count: int = 1000
    temp_dir: str = "."
    curl_binary: str = "curl"


@dataclass(frozen=True)
class AnalyzerSettings:
    provider: str = "xai"
    api_key: Optional[str] = None
    api_key_env: Optional[str] = "XAI_API_KEY"
    base_url: Optional[str] = "https://api.x.ai/v1"
    model: str = "grok-3"
    temperature: float = 0.3
    max_tokens: int = 5000
    max_content_length: int = 3000
    sentiment_fallback: str = "keywords"


@dataclass(frozen=True)
class StoreSettings:
    backend: str = "sqlite"
    sqlite_path: str = "output/articles.db"
    notion_api_key: Optional[str] = None
    notion_database_id: Optional[str] = None
    display_utc_offset_hours: int = 8


@dataclass(frozen=True)
class PipelineSettings:
    stocks: Tuple[Dict[str, str], ...] = ()
    output_dir: str = "output"
    max_articles_per_stock: int = 5
    delay_seconds: float = 5.0
    topic_url: str = "https://finance.yahoo.com/topic/stock-market-news/"


@dataclass(frozen=True)
class Settings:
    """Immutable, fully-resolved runtime configuration."""

    fetch: FetchSettings = field(default_factory=FetchSettings)
    analyzer: AnalyzerSettings = field(default_factory=AnalyzerSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)

    def require(self) -> None:
        """Raise :class:`ConfigError` listing every missing requirement."""
        missing = missing_requirements(self)
        if missing:
            raise ConfigError(missing)


def load_config(config_path: str | Path = "config.yaml") -> Dict[str, Any]:
    """
    Load configuration from the specified YAML file.

    Args:
        config_path (str | Path): Path to the configuration file. Defaults to "config.yaml".

    Returns:
        Dict[str, Any]: A dictionary containing the configuration settings.
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found at {config_path}")

    with open(config_file, "r", encoding="utf-8") as file:
        config_data = yaml.safe_load(file)

    if not config_data:
        raise ValueError(f"Configuration file {config_path} is empty or invalid.")

    return config_data


def is_serverless(environ: Mapping[str, str]) -> bool:
    """True when running on Vercel or AWS Lambda, where only /tmp is writable."""
    return bool(environ.get("VERCEL") or environ.get("AWS_LAMBDA_FUNCTION_NAME"))


def resolve_settings(
    config: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Merge ``config.yaml`` values with environment variables into :class:`Settings`.

    Environment variables win over the YAML file for provider and backend
    selection; secrets are only ever read from the environment.

    Args:
        config: Parsed config dict (``load_config()``); ``None`` means defaults.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        Settings: The resolved configuration.
    """
    config = config or {}
    env = os.environ if environ is None else environ

    fetch_cfg = config.get("fetch") or {}
    temp_dir = fetch_cfg.get("temp_dir") or ("/tmp" if is_serverless(env) else ".")
    fetch = FetchSettings(
        timeout_seconds=max(int(fetch_cfg.get("timeout_seconds", 60)), MIN_FETCH_TIMEOUT),
        strategies=tuple(fetch_cfg.get("strategies") or DEFAULT_STRATEGIES),
        max_header_count=int(fetch_cfg.get("max_header_count", 1000)),
        temp_dir=temp_dir,
        curl_binary=fetch_cfg.get("curl_binary", "curl"),
    )

    analyzer_cfg = config.get("analyzer") or {}
    provider = (env.get("AI_PROVIDER") or analyzer_cfg.get("provider") or "xai").lower()
    if provider not in PROVIDER_DEFAULTS:
        raise ValueError(
            f"Unsupported AI provider '{provider}'. "
            f"Available: {', '.join(PROVIDER_DEFAULTS)}"
        )
    defaults = PROVIDER_DEFAULTS[provider]
    key_env = defaults["api_key_env"]
    analyzer = AnalyzerSettings(
        provider=provider,
        api_key=env.get(key_env) if key_env else None,
        api_key_env=key_env,
        base_url=analyzer_cfg.get("base_url") or defaults["base_url"],
        model=analyzer_cfg.get("model") or defaults["model"],
        temperature=float(analyzer_cfg.get("temperature", 0.3)),
        max_tokens=int(analyzer_cfg.get("max_tokens", 5000)),
        max_content_length=int(analyzer_cfg.get("max_content_length", 3000)),
        sentiment_fallback=analyzer_cfg.get("sentiment_fallback", "keywords"),
    )

    store_cfg = config.get("store") or {}
    output_dir = config.get("output_dir", "output")
    store = StoreSettings(
        backend=(env.get("STORE_BACKEND") or store_cfg.get("backend") or "sqlite").lower(),
        sqlite_path=store_cfg.get("sqlite_path") or os.path.join(output_dir, "articles.db"),
        notion_api_key=env.get("NOTION_API_KEY"),
        notion_database_id=env.get("NOTION_DATABASE_ID"),
        display_utc_offset_hours=int(store_cfg.get("display_utc_offset_hours", 8)),
    )

    pipeline_cfg = config.get("pipeline") or {}
    pipeline = PipelineSettings(
        stocks=tuple(config.get("stocks") or ()),
        output_dir=output_dir,
        max_articles_per_stock=int(pipeline_cfg.get("max_articles_per_stock", 5)),
        delay_seconds=float(pipeline_cfg.get("delay_seconds", 5.0)),
        topic_url=pipeline_cfg.get("topic_url", PipelineSettings.topic_url),
    )

    return Settings(fetch=fetch, analyzer=analyzer, store=store, pipeline=pipeline)


def missing_requirements(settings: Settings) -> List[str]:
    """Return the names of every required environment variable that is unset."""
    missing: List[str] = []
    if settings.store.backend == "notion":
        if not settings.store.notion_api_key:
            missing.append("NOTION_API_KEY")
        if not settings.store.notion_database_id:
            missing.append("NOTION_DATABASE_ID")
    elif settings.store.backend != "sqlite":
        missing.append(f"STORE_BACKEND (unknown backend '{settings.store.backend}')")

    if settings.analyzer.api_key_env and not settings.analyzer.api_key:
        missing.append(settings.analyzer.api_key_env)
    return missing
