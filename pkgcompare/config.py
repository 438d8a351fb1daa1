"""Configuration loader for package comparison."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

# camelCase spellings accepted in option overrides (query strings, JSON payloads)
_OPTION_ALIASES = {
    "maxDiffDistance": "max_diff_distance",
    "maxChangeRatio": "max_change_ratio",
    "mergeModifiedLines": "merge_modified_lines",
    "inlineMaxCharEdits": "inline_max_char_edits",
}


@dataclass(frozen=True)
class ParseOptions:
    """Options for parsing unified diffs."""

    # Accepted for compatibility; the merge logic does not read it
    max_diff_distance: int = 30
    max_change_ratio: float = 0.45
    merge_modified_lines: bool = True
    # Reserved
    inline_max_char_edits: int = 2

    @classmethod
    def from_overrides(cls, overrides: Mapping[str, Any] | None = None) -> ParseOptions:
        """Merge partial overrides over the defaults."""
        return cls().merged(overrides)

    def merged(self, overrides: Mapping[str, Any] | None = None) -> ParseOptions:
        if not overrides:
            return self

        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown diff option: {key}")
            if value is None:
                continue
            changes[name] = value
        return replace(self, **changes)


@dataclass
class CompareConfig:
    """Configuration for file-tree comparison."""

    max_files: int = 1000


@dataclass
class FetcherConfig:
    """Configuration for the registry HTTP client."""

    cdn_url: str = "https://cdn.jsdelivr.net/npm"
    data_api_url: str = "https://data.jsdelivr.com/v1/packages/npm"
    timeout: float = 15.0
    retry_count: int = 2
    max_file_size: int = 250 * 1024


@dataclass
class Config:
    """Main configuration container."""

    diff: ParseOptions = field(default_factory=ParseOptions)
    compare: CompareConfig = field(default_factory=CompareConfig)
    fetcher: FetcherConfig = field(default_factory=FetcherConfig)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from a YAML file and environment variables."""
    data: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    diff_data = data.get("diff") or {}
    compare_data = data.get("compare") or {}
    fetcher_data = data.get("fetcher") or {}

    diff = ParseOptions.from_overrides(diff_data)

    compare = CompareConfig(
        max_files=compare_data.get("max_files", 1000),
    )

    fetcher = FetcherConfig(
        cdn_url=os.environ.get(
            "PKGCOMPARE_CDN_URL",
            fetcher_data.get("cdn_url", FetcherConfig.cdn_url),
        ),
        data_api_url=os.environ.get(
            "PKGCOMPARE_DATA_API_URL",
            fetcher_data.get("data_api_url", FetcherConfig.data_api_url),
        ),
        timeout=fetcher_data.get("timeout", 15.0),
        retry_count=fetcher_data.get("retry_count", 2),
        max_file_size=fetcher_data.get("max_file_size", 250 * 1024),
    )

    return Config(diff=diff, compare=compare, fetcher=fetcher)
