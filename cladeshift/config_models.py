#!/usr/bin/env python3
"""
Configuration models for cladeshift using Pydantic for validation.

This module defines the structure and validation rules for cladeshift
configuration files, supporting YAML, TOML and legacy INI formats.
"""

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core.constants import (
    DEFAULT_BLOCK_SIZE, DEFAULT_ENVELOPE, DEFAULT_LABEL_COLUMN, DEFAULT_OUTPUT_PREFIX,
    DEFAULT_RAREFACTION_REPEATS, DEFAULT_REPLICATES, DEFAULT_SEED, DEFAULT_SIZE_COLUMN,
    DEFAULT_STATE_COLUMN, MAX_AUTO_WORKERS
)


class InputOutputConfig(BaseModel):
    """Input/Output configuration settings."""

    tree_file: Optional[Path] = Field(
        default=None, description="Rooted tree in Newick format"
    )
    traits_file: Optional[Path] = Field(
        default=None, description="CSV table with one row per taxon"
    )
    label_column: str = Field(
        default=DEFAULT_LABEL_COLUMN, description="Column holding tip labels"
    )
    size_column: str = Field(
        default=DEFAULT_SIZE_COLUMN, description="Column holding body size"
    )
    state_column: str = Field(
        default=DEFAULT_STATE_COLUMN, description="Column holding the binary trait (0/1)"
    )
    predator_column: Optional[str] = Field(
        default=None, description="Optional column holding predator size for rescaling"
    )
    output_prefix: str = Field(
        default=DEFAULT_OUTPUT_PREFIX, description="Prefix for output files"
    )
    log_file: Optional[Path] = Field(
        default=None, description="Detailed debug log file"
    )
    debug: bool = Field(
        default=False, description="Enable debug mode with detailed logging"
    )

    @field_validator('tree_file', 'traits_file')
    @classmethod
    def validate_input_file(cls, v):
        """Validate that input files exist when given."""
        if v is not None and not Path(v).exists():
            raise ValueError(f"Input file not found: {v}")
        return v


class ReconstructionConfig(BaseModel):
    """Ancestral state reconstruction settings."""

    method: Literal["topology", "branch-length"] = Field(
        default="topology", description="Reconstruction strategy"
    )
    rate: Optional[float] = Field(
        default=None, gt=0, description="Fixed transition rate (estimated by ML when unset)"
    )
    fallback_to_topology: bool = Field(
        default=False, description="Retry with topology when branch lengths are unusable"
    )

    @field_validator('method', mode='before')
    @classmethod
    def normalize_method(cls, v):
        """Accept branch_length as an alias of branch-length."""
        if isinstance(v, str):
            return v.strip().lower().replace('_', '-')
        return v


class TestingConfig(BaseModel):
    """Resampling test settings."""

    __test__ = False

    replicates: int = Field(
        default=DEFAULT_REPLICATES, ge=1, description="Null draws per subset size"
    )
    statistic: Literal["median", "mean"] = Field(
        default="median", description="Statistic compared between groups"
    )
    alternative: Literal["two-sided", "less", "greater"] = Field(
        default="two-sided", description="Direction of the test"
    )
    rarefaction: bool = Field(
        default=False, description="Compute the p-value curve over subset sizes"
    )
    rarefaction_repeats: int = Field(
        default=DEFAULT_RAREFACTION_REPEATS, ge=1, description="Random subsets per reduced size"
    )
    envelope: float = Field(
        default=DEFAULT_ENVELOPE, gt=0, lt=1, description="Level of the null envelope (expvar)"
    )
    pooling: Literal["flat", "clade"] = Field(
        default="flat", description="Pool tip values directly or one median per clade bucket"
    )
    log_transform: bool = Field(
        default=True, description="Log-transform body size before testing"
    )
    ttest: bool = Field(
        default=True, description="Run a Welch t-test as a first-pass sanity check"
    )


class ComputationalConfig(BaseModel):
    """Computational settings configuration."""

    seed: int = Field(
        default=DEFAULT_SEED, ge=0, description="Seed for every random stream of the run"
    )
    threads: Union[int, Literal["auto"]] = Field(
        default="auto", description="Worker threads for resampling"
    )
    block_size: int = Field(
        default=DEFAULT_BLOCK_SIZE, ge=1, description="Replicates per worker block"
    )

    @field_validator('threads')
    @classmethod
    def validate_threads(cls, v):
        """Validate the thread setting."""
        if isinstance(v, int):
            if v < 1:
                raise ValueError("Thread count must be positive")
            if v > max(os.cpu_count() or 1, MAX_AUTO_WORKERS):
                raise ValueError(f"Thread count exceeds available cores ({os.cpu_count()})")
        return v


class CladeShiftConfig(BaseModel):
    """Main cladeshift configuration model."""

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
    )

    input_output: InputOutputConfig = Field(default_factory=InputOutputConfig)
    reconstruction: ReconstructionConfig = Field(default_factory=ReconstructionConfig)
    testing: TestingConfig = Field(default_factory=TestingConfig)
    computational: ComputationalConfig = Field(default_factory=ComputationalConfig)

    def to_flat_dict(self) -> Dict[str, Any]:
        """Flatten sections into one dict keyed like the command-line options."""
        flat: Dict[str, Any] = {}
        for section in (self.input_output, self.reconstruction, self.testing, self.computational):
            flat.update(section.model_dump())
        return flat
