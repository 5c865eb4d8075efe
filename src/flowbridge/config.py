"""Application configuration: settings schema and config.yaml loader"""

import json
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from flowbridge.core.build import BuildOptions
from flowbridge.core.extract.css import CssExtractionOptions
from flowbridge.core.extract.sections import DetectionOptions
from flowbridge.core.safety import GateOptions
from flowbridge.core.vocabulary import DEFAULT_BREAKPOINTS, DEFAULT_PSEUDO_STATES, Breakpoint, Vocabulary


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "FLOWBRIDGE_"


class Settings(BaseModel):
    app_name:                 str = "flowbridge"
    output_dir:               str = Field(default="dist", description="Directory for converted documents and reports")
    embed_soft_limit:         int = Field(default=40_960, ge=1, description="Embed size (bytes) that triggers a warning")
    embed_hard_limit:         int = Field(default=51_200, ge=1, description="Embed size (bytes) that blocks unless chunked")
    allow_chunking:           bool = Field(default=True, description="Split oversized CSS/JS embeds at syntax boundaries")
    safe_depth:               int = Field(default=30, ge=1, description="Node depth above which depth is logged")
    max_depth:                int = Field(default=50, ge=1, description="Node depth above which a warning is raised")
    reserved_prefix:          str = Field(default="w-", description="Class prefix owned by the destination")
    combo_marker:             str = Field(default="&", description="Marker set on combo/modifier styles")
    breakpoints:              dict[str, Breakpoint] = Field(default_factory=lambda: dict(DEFAULT_BREAKPOINTS))
    pseudo_states:            dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_PSEUDO_STATES))
    implicit_section_pattern: str = Field(default=r"-section$", description="Leading-class pattern for implicit div sections")
    alt_root_selector:        str = Field(default=".fp-root", description="Alternate root-scope selector for tokens")
    generation_url:           Optional[str] = Field(default=None, description="Generation service endpoint; unset = local builder only")
    generation_timeout:       float = Field(default=30.0, gt=0, description="Generation request timeout in seconds")
    id_prefix:                Optional[str] = Field(default=None, description="Node id prefix; default derives from section class")
    log_level:                str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    @field_validator("breakpoints", "pseudo_states", mode="before")
    @classmethod
    def _parse_json_env(cls, value: Any) -> Any:
        """Env vars arrive as strings; mapping fields accept a JSON object there."""
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError as e:
                raise ValueError(f"expected a JSON object: {e}") from e
        return value

    def vocabulary(self) -> Vocabulary:
        return Vocabulary(breakpoints=self.breakpoints, pseudo_states=self.pseudo_states,
                          combo_marker=self.combo_marker)

    def detection_options(self) -> DetectionOptions:
        return DetectionOptions(
            implicit_pattern=self.implicit_section_pattern,
            css=CssExtractionOptions(alt_root_selector=self.alt_root_selector),
        )

    def build_options(self, namespace: str = "") -> BuildOptions:
        return BuildOptions(id_prefix=self.id_prefix, namespace=namespace,
                            alt_root_selector=self.alt_root_selector, vocabulary=self.vocabulary())

    def gate_options(self) -> GateOptions:
        return GateOptions(
            soft_limit=self.embed_soft_limit,
            hard_limit=self.embed_hard_limit,
            allow_chunking=self.allow_chunking,
            safe_depth=self.safe_depth,
            max_depth=self.max_depth,
            reserved_prefix=self.reserved_prefix,
            vocabulary=self.vocabulary(),
        )


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then FLOWBRIDGE_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping, got {type(data).__name__}")

    for name in Settings.model_fields:
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**data)
    except ValueError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
