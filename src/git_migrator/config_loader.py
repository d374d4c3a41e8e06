"""
YAML configuration file loader for git-migrator.

Provides YAML ``!include`` support, env var interpolation, and mapping of
the migration/sync file schemas onto ``MigrationConfig`` / ``SyncConfig``.

Migration file::

    source:   {type: cvs, path: /srv/cvsroot/project}
    target:   {path: /srv/git/project}
    mapping:  {authors: {...}, branches: {...}, tags: {...}}
    options:  {dryRun: false, resume: false, chunkSize: 100, stateFile: ...}

Sync file::

    git:      {path: /srv/git/project}
    cvs:      {path: /srv/cvsroot, module: project, workDir: /tmp/work}
    sync:     {direction: bidirectional, stateFile: .sync-state.json}
    mapping:  {authors: {...}}
    options:  {dryRun: false}

Usage:
    from git_migrator.config_loader import load_migration_config

    config = load_migration_config("migration.yaml", {"resume": True})
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from .config import (
    DEFAULT_CHUNK_SIZE,
    MigrationConfig,
    SyncConfig,
    validate_migration_config,
    validate_sync_config,
)
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GIT_MIGRATOR_CONFIG"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    * ``${VAR}`` is replaced with ``os.environ.get(VAR, "")``.
    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    * Literal ``${`` with no closing ``}`` is left untouched.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Walk a nested dict/list and interpolate env vars in all strings."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support (dedicated SafeLoader subclass)
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """YAML SafeLoader subclass with ``!include`` support.

    Uses a dedicated subclass so the global ``yaml.SafeLoader`` is never
    modified.  Tracks an *include stack* per-load to detect circular includes.
    Typical use is keeping a large author map in its own file.
    """


def _include_constructor(
    loader: ConfigLoader, node: yaml.ScalarNode
) -> Any:
    """Handle ``!include path/to/file.yml`` directives."""
    include_path_str: str = loader.construct_scalar(node)

    if os.path.isabs(include_path_str):
        include_path = Path(include_path_str)
    else:
        include_path = Path(loader.name).resolve().parent / include_path_str
    include_path = include_path.resolve()

    include_stack: list[Path] = getattr(loader, "_include_stack", [])
    if include_path in include_stack:
        chain = (
            " -> ".join(str(p) for p in include_stack)
            + f" -> {include_path}"
        )
        raise ConfigurationError(f"Circular include detected: {chain}")

    if not include_path.exists():
        raise ConfigurationError(
            f"Include file not found: {include_path} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return load_yaml(include_path, _include_stack=include_stack + [include_path])


ConfigLoader.add_constructor("!include", _include_constructor)


def load_yaml(
    path: Path | str,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Load a YAML file using the ``ConfigLoader`` (with ``!include``)."""
    path = Path(path).resolve()
    if _include_stack is None:
        _include_stack = [path]

    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. File resolution
# ---------------------------------------------------------------------------


def resolve_config_path(path: str | None) -> Path:
    """Return the config file to load.

    Precedence: explicit *path* > ``GIT_MIGRATOR_CONFIG`` env var.

    Raises:
        ConfigurationError: If neither is set or the file does not exist.
    """
    candidate = path or os.environ.get(CONFIG_ENV_VAR)
    if not candidate:
        raise ConfigurationError(
            f"no config file given (use --config or set {CONFIG_ENV_VAR})"
        )
    resolved = Path(candidate).expanduser()
    if not resolved.exists():
        raise ConfigurationError(f"config file not found: {resolved}")
    return resolved


def _read_config_file(path: Path) -> dict[str, Any]:
    logger.debug("Loading config: %s", path)
    try:
        data = load_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"failed to parse config file {path}: {exc}"
        ) from exc
    except OSError as exc:
        raise ConfigurationError(
            f"failed to read config file {path}: {exc}"
        ) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"config file {path} must contain a mapping, "
            f"not {type(data).__name__}"
        )
    return _interpolate_recursive(data)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{name}' section must be a mapping")
    return value


# ---------------------------------------------------------------------------
# 4. Schema mapping
# ---------------------------------------------------------------------------


def build_migration_config(
    data: dict[str, Any], overrides: dict[str, Any] | None = None
) -> MigrationConfig:
    """Map a migration config dict onto a validated ``MigrationConfig``.

    A missing or zero ``chunkSize`` falls back to ``DEFAULT_CHUNK_SIZE``.
    Truthy *overrides* (``dry_run``, ``resume``) win over file values.
    """
    source = _section(data, "source")
    target = _section(data, "target")
    mapping = _section(data, "mapping")
    options = _section(data, "options")

    values: dict[str, Any] = {
        "source_type": source.get("type") or "",
        "source_path": source.get("path") or "",
        "target_path": target.get("path") or "",
        "author_map": mapping.get("authors") or {},
        "branch_map": mapping.get("branches") or {},
        "tag_map": mapping.get("tags") or {},
        "dry_run": options.get("dryRun") or False,
        "resume": options.get("resume") or False,
        "chunk_size": options.get("chunkSize") or DEFAULT_CHUNK_SIZE,
        "state_file": options.get("stateFile"),
    }
    for key, value in (overrides or {}).items():
        if value:
            values[key] = value

    try:
        config = MigrationConfig(**values)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"invalid migration config: {exc}") from exc
    validate_migration_config(config)
    return config


def build_sync_config(
    data: dict[str, Any], overrides: dict[str, Any] | None = None
) -> SyncConfig:
    """Map a sync config dict onto a validated ``SyncConfig``.

    The source section may be named ``cvs`` or ``source``.
    """
    git = _section(data, "git")
    source = _section(data, "cvs") or _section(data, "source")
    sync = _section(data, "sync")
    mapping = _section(data, "mapping")
    options = _section(data, "options")

    values: dict[str, Any] = {
        "git_path": git.get("path") or "",
        "source_type": source.get("type") or "cvs",
        "source_path": source.get("path") or "",
        "source_module": source.get("module") or "",
        "source_work_dir": source.get("workDir"),
        "direction": sync.get("direction") or "bidirectional",
        "state_file": sync.get("stateFile"),
        "author_map": mapping.get("authors") or {},
        "dry_run": options.get("dryRun") or False,
    }
    for key, value in (overrides or {}).items():
        if value:
            values[key] = value

    try:
        config = SyncConfig(**values)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"invalid sync config: {exc}") from exc
    validate_sync_config(config)
    return config


def load_migration_config(
    path: str | None, overrides: dict[str, Any] | None = None
) -> MigrationConfig:
    """Load a migration config file (see module docstring for the schema)."""
    return build_migration_config(
        _read_config_file(resolve_config_path(path)), overrides
    )


def load_sync_config(
    path: str | None, overrides: dict[str, Any] | None = None
) -> SyncConfig:
    """Load a sync config file (see module docstring for the schema)."""
    return build_sync_config(
        _read_config_file(resolve_config_path(path)), overrides
    )
