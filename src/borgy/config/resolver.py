"""Merge configuration sources into a validated ``BorgyConfig``."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import BorgyConfig

ENV_PREFIX = "BORGY__"


def resolve_with_precedence(
    *,
    defaults: BorgyConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> BorgyConfig:
    """Layer overrides on top of ``defaults``: file, then environment, then CLI.

    Keys may be nested mappings or dotted paths (``"llm.model"``).

    Raises:
        ConfigError: If an override source is malformed or the merged result
            fails validation.
    """
    merged = defaults.model_dump(mode="python")
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for source_name, layer in layers:
        if layer:
            merged = _deep_merge(merged, _expand_dotted(layer, source_name=source_name))

    try:
        return BorgyConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def env_overrides_from(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``BORGY__SECTION__KEY`` variables into a nested override mapping.

    Values are parsed as YAML literals so ``"true"`` and ``"3"`` become a bool
    and an int; unparseable values are kept as raw strings.
    """
    overrides: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        segments = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not segments:
            continue
        try:
            value: Any = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        _assign(overrides, segments, value, source_name="environment")
    return overrides


def flatten_for_env(config: BorgyConfig) -> Dict[str, str]:
    """Render ``config`` as the environment variables that would reproduce it."""
    flat: Dict[str, str] = {}

    def _walk(path: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                _walk([*path, str(key)], child)
            return
        name = ENV_PREFIX + "__".join(part.upper() for part in path)
        if isinstance(value, list):
            flat[name] = yaml.safe_dump(value, default_flow_style=True).strip()
        elif value is None:
            flat[name] = "null"
        else:
            flat[name] = str(value)

    for key, value in config.model_dump(mode="python").items():
        _walk([key], value)
    return flat


def _expand_dotted(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = _expand_dotted(value, source_name=source_name)
        _assign(expanded, key.split("."), value, source_name=source_name)
    return expanded


def _assign(target: dict[str, Any], path: list[str], value: Any, *, source_name: str) -> None:
    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"{source_name.capitalize()} override for {'.'.join(path)} "
                "conflicts with an existing value."
            )
        node = child
    leaf = path[-1]
    if isinstance(value, dict) and isinstance(node.get(leaf), dict):
        node[leaf] = _deep_merge(node[leaf], value)
    else:
        node[leaf] = value


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["ENV_PREFIX", "env_overrides_from", "flatten_for_env", "resolve_with_precedence"]
