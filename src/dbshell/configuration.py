"""
Layered configuration for dbshell.

Values are read from the packaged ``config.toml``, then from the user's
config file, then from ``DBSHELL__SECTION__KEY`` environment variables.
A string value may reference another key as ``${section.key}``.
"""

import os
import re
from ast import literal_eval
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional, Tuple

import toml
from box import Box

KeyPath = Tuple[str, ...]

REFERENCE_PATTERN = re.compile(r"\$\{([^${}]+)\}")
# References may point at other references, up to this depth
MAX_REFERENCE_DEPTH = 10


class Config(Box):
    """
    Attribute-access view of the loaded configuration, e.g. ``config.shell.scheme``.
    """


def merge_dicts(base: Mapping, override: Mapping) -> dict:
    """
    Return `base` updated with `override`, merging nested sections key by key.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_dicts(current, value)
        else:
            merged[key] = value
    return merged


def string_to_type(raw: str) -> Any:
    """
    Coerce a string coming from the environment into a typed value.

    ``true``/``false`` in any case become booleans, Python literals such as
    ``12`` or ``1.5`` become numbers, anything else is returned unchanged.
    """
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return literal_eval(raw)
    except (ValueError, SyntaxError, MemoryError, RecursionError):
        return raw


def expand_path(value: Any) -> Any:
    """Expand ``~`` and ``$VAR`` in string values; other values pass through."""
    if not isinstance(value, str) or not value:
        return value
    return os.path.expanduser(os.path.expandvars(value))


def iter_leaves(mapping: Mapping, prefix: KeyPath = ()) -> Iterator[Tuple[KeyPath, Any]]:
    """Yield ``(key_path, value)`` for every non-section value of `mapping`."""
    for key, value in mapping.items():
        path = prefix + (key,)
        if isinstance(value, Mapping):
            yield from iter_leaves(value, path)
        else:
            yield path, value


def nest(leaves: Dict[KeyPath, Any]) -> dict:
    """Inverse of `iter_leaves`: build nested sections from key paths."""
    result: dict = {}
    for path, value in leaves.items():
        section = result
        for key in path[:-1]:
            section = section.setdefault(key, {})
        section[path[-1]] = value
    return result


def env_overrides(prefix: str, environ: Optional[Mapping] = None) -> dict:
    """
    Collect ``{prefix}__SECTION__KEY=value`` variables as a nested dict.

    Variables naming only a section are ignored.
    """
    environ = os.environ if environ is None else environ
    marker = prefix + "__"
    leaves: Dict[KeyPath, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(marker):
            continue
        path = tuple(part.lower() for part in name[len(marker):].split("__"))
        if len(path) < 2 or not all(path):
            continue
        leaves[path] = string_to_type(expand_path(raw))
    return nest(leaves)


def resolve_references(leaves: Dict[KeyPath, Any]) -> Dict[KeyPath, Any]:
    """
    Replace ``${section.key}`` references with the referenced values.

    A value that is exactly one reference takes the referenced value with its
    type; references embedded in longer strings are substituted as text.
    Unknown keys resolve to an empty string.
    """
    resolved = dict(leaves)

    def substitute(value: str) -> Any:
        whole = REFERENCE_PATTERN.fullmatch(value)
        if whole:
            return resolved.get(tuple(whole.group(1).split(".")), "")
        return REFERENCE_PATTERN.sub(
            lambda m: str(resolved.get(tuple(m.group(1).split(".")), "")), value
        )

    for _ in range(MAX_REFERENCE_DEPTH):
        pending = [
            path for path, value in resolved.items()
            if isinstance(value, str) and REFERENCE_PATTERN.search(value)
        ]
        if not pending:
            break
        for path in pending:
            resolved[path] = substitute(resolved[path])
    return resolved


def validate_config(config: Config) -> None:
    """
    Reject keys that would shadow `Config` attributes such as ``copy`` or ``keys``.
    """
    reserved = set(dir(Config))
    for path, _ in iter_leaves(config):
        for key in path:
            if key in reserved:
                raise ValueError(f'Invalid config key: "{".".join(path)}"')


def load_toml(path: str) -> dict:
    """Read one TOML file; `path` may use ``~`` and ``$VAR``."""
    return dict(toml.load(expand_path(path)))


def load_configuration(
    path: str,
    user_config_path: Optional[str] = None,
    env_var_prefix: Optional[str] = None,
) -> Config:
    """
    Load the layered configuration.

    Args:
        path: Packaged TOML defaults.
        user_config_path: Optional user TOML file merged over the defaults.
            Skipped when the file does not exist.
        env_var_prefix: Prefix of environment variables that override
            individual keys, e.g. ``DBSHELL`` for ``DBSHELL__API__TOKEN``.

    Returns:
        The merged configuration with paths expanded and references resolved.
    """
    data = load_toml(path)

    if user_config_path and os.path.isfile(expand_path(user_config_path)):
        data = merge_dicts(data, load_toml(user_config_path))

    if env_var_prefix:
        data = merge_dicts(data, env_overrides(env_var_prefix))

    leaves = {key_path: expand_path(value) for key_path, value in iter_leaves(data)}
    config = Config(nest(resolve_references(leaves)))

    validate_config(config)
    return config
