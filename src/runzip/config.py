from __future__ import annotations

"""Configuration loading for runzip."""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any
import os
import textwrap

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11 fallback
    import tomli as tomllib  # type: ignore

from .archive.scanner import DEFAULT_SIZE_CEILING
from .codec.codepages import DOS_CODEPAGE, PROFILES, UTF8, EncodingProfile, profile_for
from .codec.detector import MIN_CONFIDENCE
from .errors import ConfigError

__all__ = ["RunConfig", "load_config", "write_default_config", "DEFAULT_CONFIG_TOML"]

CONFIG_ENV = "RUNZIP_CONFIG"

DEFAULT_CONFIG_TOML = textwrap.dedent(
    """
    [defaults]
    # source = "cp866"        # force the source encoding, auto-detect if unset
    target = "utf-8"
    jobs = 4
    min_confidence = 0.5
    legacy_windows = false
    # log_dir = "~/.local/state/runzip"
    """
)


@dataclass(slots=True)
class RunConfig:
    """Resolved settings handed to the processing core."""

    source_encoding: EncodingProfile | None = None
    target_encoding: EncodingProfile = UTF8
    dry_run: bool = False
    legacy_windows_mode: bool = False
    verbosity: int = 0
    jobs: int = 4
    min_confidence: float = MIN_CONFIDENCE
    size_ceiling: int = DEFAULT_SIZE_CEILING
    log_dir: str | None = None

    @property
    def effective_target(self) -> EncodingProfile:
        # Legacy Windows mode wins over any requested target.
        if self.legacy_windows_mode:
            return PROFILES[DOS_CODEPAGE]
        return self.target_encoding

    def with_overrides(self, **changes: Any) -> "RunConfig":
        """Copy with every non-None keyword applied."""
        updates = {k: v for k, v in changes.items() if v is not None}
        for key in ("source_encoding", "target_encoding"):
            if isinstance(updates.get(key), str):
                updates[key] = profile_for(updates[key])
        config = replace(self, **updates)
        config.validate()
        return config

    def validate(self) -> None:
        if self.jobs < 1:
            raise ConfigError(f"jobs must be at least 1, got {self.jobs}")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ConfigError(f"min_confidence must be within 0..1, got {self.min_confidence}")
        if self.size_ceiling <= 0:
            raise ConfigError(f"size_ceiling must be positive, got {self.size_ceiling}")


def load_config(config_path: str | Path | None = None) -> RunConfig:
    """Load configuration from a candidate list of paths.

    Resolution order:
        1. explicit ``config_path`` argument
        2. ``RUNZIP_CONFIG`` environment variable
        3. ``~/.config/runzip/config.toml``
        4. packaged default configuration
    """

    if config_path:
        explicit = Path(config_path).expanduser()
        if not explicit.is_file():
            raise ConfigError(f"config file not found: {explicit}")
        return _config_from_path(explicit)

    candidates: list[Path] = []
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        candidates.append(Path(env_path).expanduser())

    candidates.append(Path.home() / ".config" / "runzip" / "config.toml")

    for candidate in candidates:
        if candidate.is_file():
            return _config_from_path(candidate)

    return _config_from_toml(DEFAULT_CONFIG_TOML)


def _config_from_path(path: Path) -> RunConfig:
    raw = path.read_text(encoding="utf-8")
    try:
        return _config_from_toml(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc


def _config_from_toml(content: str) -> RunConfig:
    data = tomllib.loads(content)
    defaults = data.get("defaults", {})

    source = defaults.get("source")
    config = RunConfig(
        source_encoding=profile_for(str(source)) if source else None,
        target_encoding=profile_for(str(defaults.get("target", "utf-8"))),
        legacy_windows_mode=bool(defaults.get("legacy_windows", False)),
        jobs=int(defaults.get("jobs", 4)),
        min_confidence=float(defaults.get("min_confidence", MIN_CONFIDENCE)),
        size_ceiling=int(defaults.get("size_ceiling", DEFAULT_SIZE_CEILING)),
        log_dir=str(defaults["log_dir"]) if defaults.get("log_dir") else None,
    )
    config.validate()
    return config


def write_default_config(target_path: str | Path) -> Path:
    """Write the default configuration to ``target_path``.

    Creates parent directories if needed and returns the absolute path
    to the created file.
    """

    target = Path(target_path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(DEFAULT_CONFIG_TOML, encoding="utf-8")
    return target.resolve()
