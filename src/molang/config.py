"""
Engine configuration.

Supports both camelCase and snake_case property names, so the same
settings can come from Python code, JSON or YAML documents.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from molang.errors import ConfigurationError
from molang.limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits


class EngineConfig(BaseModel):
    """
    Configuration for MolangEngine.
    """

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    # Memoize parsed expressions by normalized source
    cache_enabled: bool = True

    # Interpret trigonometric arguments and results in radians instead of degrees
    use_radians: bool = False

    # Raise on the first diagnostic instead of degrading to 0
    strict: bool = False

    # Seed for math.random and friends; None draws from system entropy
    random_seed: Optional[int] = None

    # Limit overrides
    max_expression_length: int = Field(
        default=DEFAULT_EXPRESSION_LIMITS.max_expression_length, gt=0
    )
    max_ast_depth: int = Field(default=DEFAULT_EXPRESSION_LIMITS.max_ast_depth, gt=0)
    max_indirection_depth: int = Field(
        default=DEFAULT_EXPRESSION_LIMITS.max_indirection_depth, ge=0
    )
    max_die_rolls: int = Field(default=DEFAULT_EXPRESSION_LIMITS.max_die_rolls, ge=0)

    # Initial global scope
    global_variables: dict[str, Union[float, str]] = Field(default_factory=dict)

    def to_limits(self) -> ExpressionLimits:
        return ExpressionLimits(
            max_expression_length=self.max_expression_length,
            max_ast_depth=self.max_ast_depth,
            max_indirection_depth=self.max_indirection_depth,
            max_die_rolls=self.max_die_rolls,
        )

    @classmethod
    def from_mapping(
        cls, data: Optional[Mapping[str, Any]], source: Optional[str] = None
    ) -> EngineConfig:
        """Validates a mapping of settings, raising ConfigurationError on failure."""
        try:
            return cls.model_validate(dict(data or {}))
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid engine configuration: {e}", source=source
            ) from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> EngineConfig:
        """
        Loads settings from a JSON or YAML file.

        The format is chosen by extension: ``.json`` is read as JSON and
        everything else as YAML.
        """
        file_path = Path(path)
        try:
            text = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read engine configuration: {e}", source=str(file_path)
            ) from e

        try:
            if file_path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Malformed engine configuration: {e}", source=str(file_path)
            ) from e

        if data is not None and not isinstance(data, dict):
            raise ConfigurationError(
                "Engine configuration must be an object", source=str(file_path)
            )
        return cls.from_mapping(data, source=str(file_path))
