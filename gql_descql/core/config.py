"""Configuration for schema builds."""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any


@dataclass
class ApiConfig:
    """Naming options used when compiling descriptions into a schema."""

    query_type_name: str = "RootQueryType"
    mutation_type_name: str = "RootMutationType"
    input_prefix: str = "Input"
    union_separator: str = "Or"

    def __post_init__(self):
        if not self.input_prefix:
            raise ValueError("input_prefix must not be empty")
        if self.query_type_name == self.mutation_type_name:
            raise ValueError("query and mutation root types need distinct names")


def load_config(data: Mapping[str, Any] | None = None) -> ApiConfig:
    """
    Build a config from a plain mapping.

    Args:
        data: Option values, e.g. parsed from a settings file. Unknown keys
            are ignored.

    Returns:
        ApiConfig with defaults for missing values.
    """
    if not data:
        return ApiConfig()
    known = {f.name for f in fields(ApiConfig)}
    return ApiConfig(**{k: v for k, v in data.items() if k in known})
