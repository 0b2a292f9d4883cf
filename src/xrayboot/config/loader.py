"""Configuration resolver for xrayboot.

Lifecycle::

    # 1. The CLI resolves settings once, at startup
    settings = load_settings(os.environ, config_file=args.config)

    # 2. Every later stage receives the frozen value explicitly
    Bootstrap(settings).run(command)

Resolution order:

1. The bundled ``defaults.yaml`` next to this module.
2. An optional operator YAML file, deep-merged over the defaults.
3. ``${VAR}`` / ``${VAR:-default}`` strings resolved against *inputs*.
4. Typed builders in :mod:`xrayboot.config.settings`.
"""

from __future__ import annotations

import copy
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from xrayboot.config.settings import BootstrapSettings, build_settings
from xrayboot.core.errors import ConfigValidationError, MissingRequiredInput

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_ENV_VAR = "XRAYBOOT_CONFIG"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> dict:
    """Load a YAML mapping from *path*."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"cannot read configuration file {path}: {exc}"
        raise ConfigValidationError([msg]) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"invalid YAML in {path}: {exc}"
        raise ConfigValidationError([msg]) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping at the top level"
        raise ConfigValidationError([msg])
    return data


def _deep_merge(base: dict, override: dict) -> dict:
    """Return a copy of *base* with *override* merged in, recursively."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, inputs: Mapping[str, str]) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with the input value.

    An input that is present but empty counts as unset, matching the
    shell's ``${VAR:-default}`` expansion.
    """
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = inputs.get(var_name)
    if resolved:
        return resolved
    if fallback is not None:
        return fallback
    raise MissingRequiredInput(var_name)


def _resolve_env_vars(data: Any, inputs: Mapping[str, str]) -> None:  # noqa: ANN401
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], inputs)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], inputs)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            if isinstance(item, str):
                data[idx] = _resolve_value(item, inputs)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, inputs)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_settings(
    inputs: Mapping[str, str],
    config_file: str | Path | None = None,
) -> BootstrapSettings:
    """Resolve the complete settings tree from *inputs*.

    Parameters
    ----------
    inputs:
        Named input values, normally ``os.environ``.
    config_file:
        Optional operator YAML file merged over the bundled defaults.
        Falls back to the path named by ``XRAYBOOT_CONFIG`` in *inputs*.

    Raises
    ------
    MissingRequiredInput
        If the domain (or any ``${VAR}`` without default) is unset.
    ConfigValidationError
        If any value fails validation.

    """
    data = _read_yaml(DEFAULTS_PATH)

    override_path = config_file or inputs.get(CONFIG_ENV_VAR)
    if override_path:
        data = _deep_merge(data, _read_yaml(Path(override_path)))
        log.debug("Merged configuration overrides from %s", override_path)

    _resolve_env_vars(data, inputs)
    return build_settings(data)
