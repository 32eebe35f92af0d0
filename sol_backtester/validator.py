"""
Configuration Validator
-----------------------
Strict schema validation of raw configuration dictionaries against the
config dataclasses.

A key in the YAML that has no matching field aborts loading immediately, so a
typo such as ``overbougth`` can never be silently ignored while the default
threshold is used instead.
"""

from dataclasses import fields, is_dataclass
from typing import Any, Dict, Set, Type, get_type_hints

from .errors import ConfigError


def validate_keys(
    raw_config: Dict[str, Any], data_class: Type[Any], path: str = ""
) -> None:
    """
    Recursively validates that all keys in a raw configuration dictionary exist
    as fields in the target Dataclass schema.

    Args:
        raw_config (Dict[str, Any]): The raw configuration dictionary (usually loaded from YAML).
        data_class (Type[Any]): The Dataclass type definition to validate against.
        path (str, optional): Dot-notation path of the current section, used in
                              error messages. Defaults to "".

    Raises:
        ConfigError: If 'raw_config' is not a mapping or contains keys that are
                     not present in 'data_class'.
    """
    error_path = path if path else "root"
    if not isinstance(raw_config, dict):
        raise ConfigError(
            f"Config Error: section '{error_path}' must be a mapping, "
            f"got {type(raw_config).__name__}"
        )

    allowed_fields: Set[str] = {f.name for f in fields(data_class)}
    unknown_keys = set(raw_config.keys()) - allowed_fields

    if unknown_keys:
        raise ConfigError(
            f"Config Error: Unknown keys detected at '{error_path}': {sorted(unknown_keys)}. "
            f"Allowed keys: {sorted(allowed_fields)}"
        )

    # String annotations (from __future__ import annotations) need resolving.
    hints = get_type_hints(data_class)
    for field in fields(data_class):
        value = raw_config.get(field.name)
        field_type = hints.get(field.name, field.type)

        if is_dataclass(field_type) and value is not None:
            new_path = f"{path}.{field.name}" if path else field.name
            validate_keys(value, field_type, path=new_path)
