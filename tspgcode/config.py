"""
Optimizer configuration, read once from a JSON file.

Example::

    {
        "program": "./LKH",
        "precision": 1000,
        "num_runs": 1,
        "max_merge_length": 0.5
    }
"""

import json
import os
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError


def _default_workers():
    return min(8, os.cpu_count() or 1)


class Config(BaseModel):
    """Solver and merge settings shared read-only by all layer workers."""

    program: str = ""  # path to the LKH executable
    precision: int = Field(1000, gt=0)  # coordinate scale factor
    num_runs: int = Field(1, gt=0)  # LKH RUNS per layer
    max_merge_length: float = Field(0.0, ge=0.0)  # islands closer than this are merged
    minimum_nodes: int = Field(2, ge=2)  # fewer islands than this: layer is left alone
    workers: int = Field(default_factory=_default_workers, gt=0)  # concurrent solver processes
    timeout: float = Field(300.0, gt=0.0)  # seconds per solver run
    dialect: Literal["marlin", "prusa", "klipper"] = "marlin"
    backend: Literal["lkh", "ortools"] = "lkh"

    model_config = {"frozen": True}

    @field_validator("program")
    @classmethod
    def _strip_program(cls, value):
        return value.strip()

    @model_validator(mode="after")
    def _check_program(self):
        if self.backend == "lkh":
            if not self.program:
                raise ValueError("program not set in configuration file")
            if not os.path.exists(self.program):
                raise ValueError("program {} does not exist".format(self.program))
        return self


def _describe(exc):
    parts = []
    for error in exc.errors():
        where = ".".join(str(p) for p in error["loc"]) or "config"
        parts.append("{}: {}".format(where, error["msg"]))
    return "; ".join(parts)


def load_config(path):
    """Read and validate the JSON configuration at `path`."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError("unable to open file {}: {}".format(path, e.strerror or e)) from e
    except json.JSONDecodeError as e:
        raise ConfigError("unable to parse JSON in file {}: {}".format(path, e)) from e

    if not isinstance(data, dict):
        raise ConfigError("configuration in {} must be a JSON object".format(path))

    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigError("invalid configuration in {}: {}".format(path, _describe(e))) from e
