"""TOML configuration loader."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

# Placeholder values shipped in templates that mean "not configured".
_PLACEHOLDER_KEYS = ("AI Studio Free Tier",)
_PLACEHOLDER_MARKER = "YOUR_API_KEY"


def is_placeholder_key(key: str | None) -> bool:
    """Return True if an API key is empty or still a template placeholder."""
    if not key:
        return True
    return key in _PLACEHOLDER_KEYS or _PLACEHOLDER_MARKER in key


@dataclass
class DatabaseConfig:
    path: str = "~/.config/kakaku/kakaku.db"


@dataclass
class StorageConfig:
    root: str = "~/.config/kakaku/storage"


@dataclass
class GeminiConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class ClaudeConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class AIConfig:
    backend: str = "gemini"
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    claude: ClaudeConfig = field(default_factory=ClaudeConfig)

    @property
    def api_key(self) -> str:
        """Key of the selected backend."""
        if self.backend == "claude":
            return self.claude.api_key
        return self.gemini.api_key


@dataclass
class MapsConfig:
    api_key: str = ""


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"
    static_dir: str = "dist"


@dataclass
class KakakuConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    maps: MapsConfig = field(default_factory=MapsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def load_config(path: str | Path | None = None) -> KakakuConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys and the environment flag can be supplied via environment
    variables when the file leaves them empty.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    dbs = raw.get("database", {})
    sto = raw.get("storage", {})
    ai = raw.get("ai", {})
    mps = raw.get("maps", {})
    srv = raw.get("server", {})

    gemini_cfg = ai.get("gemini", {})
    claude_cfg = ai.get("claude", {})

    # Resolve API keys: config file → environment variable
    gemini_api_key = (
        gemini_cfg.get("api_key", "")
        or os.environ.get("GEMINI_API_KEY", "")
        or os.environ.get("API_KEY", "")
    )
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    maps_api_key = mps.get("api_key", "") or os.environ.get(
        "GOOGLE_MAPS_API_KEY", ""
    )
    environment = srv.get("environment", "") or os.environ.get(
        "KAKAKU_ENV", "development"
    )

    return KakakuConfig(
        database=DatabaseConfig(
            path=dbs.get("path", "~/.config/kakaku/kakaku.db"),
        ),
        storage=StorageConfig(
            root=sto.get("root", "~/.config/kakaku/storage"),
        ),
        ai=AIConfig(
            backend=ai.get("backend", "gemini"),
            gemini=GeminiConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
            claude=ClaudeConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
        ),
        maps=MapsConfig(api_key=maps_api_key),
        server=ServerConfig(
            host=srv.get("host", "0.0.0.0"),
            port=srv.get("port", 3000),
            environment=environment,
            static_dir=srv.get("static_dir", "dist"),
        ),
    )
