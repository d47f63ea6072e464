"""
YAML configuration loader.

Reads config.yaml and produces typed Source / GatingSettings objects.
Falls back to no sources and default settings if the file is missing.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import yaml

from statuspage_gating import notifier
from statuspage_gating.models import GatingSettings, SchemaVersion, Source

# Default path: config.yaml next to the project root
_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


class ConfigError(ValueError):
    """The configuration file is invalid."""


def load_config(
    path: str | Path | None = None,
) -> Tuple[List[Source], GatingSettings]:
    """
    Load and parse the YAML configuration file.

    Returns:
        A tuple of (list of Source, GatingSettings).

    Raises:
        ConfigError: If a source or setting is invalid.
    """
    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    if not config_path.exists():
        notifier.print_config_missing(str(config_path))
        return [], _apply_env(GatingSettings())

    with open(config_path, "r") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path}: expected a mapping at the top level")

    raw_settings = raw.get("settings") or {}
    if not isinstance(raw_settings, dict):
        raise ConfigError(f"{config_path}: settings must be a mapping")
    raw_sources = raw.get("sources") or []
    if not isinstance(raw_sources, list):
        raise ConfigError(f"{config_path}: sources must be a list")

    settings = _parse_settings(raw_settings)
    sources = parse_sources(raw_sources, settings.schema)
    return sources, _apply_env(settings)


def parse_sources(entries: Iterable[Dict[str, Any]], schema: SchemaVersion) -> List[Source]:
    """Build Source objects, rejecting duplicates and schema mismatches."""
    sources: List[Source] = []
    seen: set = set()

    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigError(f"sources[{idx}]: expected a mapping")
        try:
            source = Source(
                label=str(entry.get("label") or ""),
                pages=entry.get("pages", entry.get("page")) or (),
                url=entry.get("url") or "",
                api_key=entry.get("api_key"),
            )
        except ValueError as exc:
            raise ConfigError(f"sources[{idx}]: {exc}") from exc

        if source.label in seen:
            raise ConfigError(f"sources[{idx}]: duplicate label {source.label!r}")
        if schema is SchemaVersion.FLAT and len(source.pages) != 1:
            raise ConfigError(
                f"sources[{idx}]: the flat schema needs exactly one page, got {list(source.pages)}"
            )
        seen.add(source.label)
        sources.append(source)

    return sources


def _parse_settings(raw: Dict[str, Any]) -> GatingSettings:
    try:
        return GatingSettings(
            log_level=str(raw.get("log_level", "INFO")).upper(),
            schema=SchemaVersion(raw.get("schema", SchemaVersion.GROUPED.value)),
            update_interval=float(raw.get("update_interval", 60)),
            source_timeout=float(raw.get("source_timeout", 30)),
            request_timeout=float(raw.get("request_timeout", 15)),
            port=int(raw.get("port", 10000)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"settings: {exc}") from exc


def _apply_env(settings: GatingSettings) -> GatingSettings:
    if "PORT" in os.environ:
        try:
            settings.port = int(os.environ["PORT"])
        except ValueError as exc:
            raise ConfigError(f"PORT: {exc}") from exc
    return settings


class SourceRegistry:
    """
    The active set of sources.

    The set is only ever replaced as a whole; readers get an immutable
    tuple.
    """

    def __init__(self, sources: Iterable[Source] = ()) -> None:
        self._lock = threading.Lock()
        self._sources: Tuple[Source, ...] = tuple(sources)

    @property
    def sources(self) -> Tuple[Source, ...]:
        with self._lock:
            return self._sources

    @property
    def labels(self) -> List[str]:
        return [s.label for s in self.sources]

    def replace(self, sources: Iterable[Source]) -> None:
        new = tuple(sources)
        with self._lock:
            self._sources = new

    def get(self, label: str) -> Source | None:
        for source in self.sources:
            if source.label == label:
                return source
        return None
