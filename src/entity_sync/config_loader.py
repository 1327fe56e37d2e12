"""
Read the YAML config files of entity_sync.

Files are looked up in a few conventional places and merged so that a
project file overrides a user file section by section. A file may pull
in another one with ``!include path``, and string values may reference
environment variables as ``${VAR}`` or ``${VAR:-default}``.

Usage:
    from entity_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
    raw.get("sites", {})
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ENTITY_SYNC_CONFIG"

# Relative to the working directory, highest precedence first
PROJECT_CONFIG_FILES = (
    Path(".entity_sync") / "config.yml",
    Path(".entity_sync") / "config.yaml",
)
USER_CONFIG_FILE = Path(".config") / "entity_sync" / "config.yml"

_VAR_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


# ---------------------------------------------------------------------------
# ${VAR} references
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` in *value*.

    A variable that is unset or empty gives its default, or ``""`` when
    there is none. Text like ``${VAR`` without a closing brace is kept.
    """

    def _lookup(match: re.Match) -> str:
        return os.environ.get(match["name"]) or match["default"] or ""

    return _VAR_REFERENCE.sub(_lookup, value)


def _interpolate_recursive(obj: Any) -> Any:
    match obj:
        case str():
            return interpolate_env_vars(obj)
        case dict():
            return {key: _interpolate_recursive(v) for key, v in obj.items()}
        case list():
            return [_interpolate_recursive(v) for v in obj]
        case _:
            return obj


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """Safe YAML loader with an ``!include`` tag.

    Registered on this subclass only, so ``yaml.safe_load`` elsewhere
    still rejects the tag. ``chain`` holds the files being loaded, outer
    first, to detect include cycles.
    """

    def __init__(self, stream, chain: list[Path]):
        super().__init__(stream)
        self.chain = chain


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    reference = Path(loader.construct_scalar(node))
    including = loader.chain[-1]
    included = (
        reference if reference.is_absolute() else including.parent / reference
    ).resolve()

    if included in loader.chain:
        cycle = " -> ".join(str(p) for p in [*loader.chain, included])
        raise ValueError(f"Circular include detected: {cycle}")
    if not included.exists():
        raise FileNotFoundError(
            f"Include file not found: {included} (referenced from {including})"
        )

    return _load_yaml_with_includes(included, _chain=loader.chain)


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path, *, _chain: list[Path] | None = None
) -> Any:
    """Parse one YAML file, resolving its ``!include`` tags."""
    path = path.resolve()
    with path.open(encoding="utf-8") as fh:
        loader = ConfigLoader(fh, [*(_chain or []), path])
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery and merge
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return the config files that exist, highest precedence first.

    1. The file named by ``ENTITY_SYNC_CONFIG``
    2. ``.entity_sync/config.yml`` then ``.entity_sync/config.yaml``
       in the working directory
    3. ``~/.config/entity_sync/config.yml``
    """
    candidates = [Path.cwd() / name for name in PROJECT_CONFIG_FILES]
    candidates.append(Path.home() / USER_CONFIG_FILE)

    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.insert(0, Path(explicit).expanduser().resolve())

    return [path for path in candidates if path.exists()]


def load_hierarchical_config(
    config_path: Path | None = None,
) -> dict[str, Any]:
    """Return the merged, interpolated config as a plain dict.

    With *config_path* only that file is read. Otherwise the discovered
    files are applied from lowest to highest precedence, each one
    replacing whole top-level sections of the ones before it. ``${VAR}``
    references are expanded once everything is merged. No file at all
    gives ``{}``.

    Raises:
        FileNotFoundError: If *config_path* does not exist.
    """
    if config_path is None:
        paths = discover_config_files()
    elif config_path.exists():
        paths = [config_path]
    else:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if not paths:
        logger.debug("No config file found, using built-in defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Reading config file %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except (OSError, ValueError, yaml.YAMLError):
            logger.exception("Cannot load config file %s", path)
            raise

        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring config file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged.update(data)

    return _interpolate_recursive(merged)
