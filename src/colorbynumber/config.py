"""
Configuration management for the color-by-number generator.
"""

import os
import yaml
from dataclasses import dataclass, field
from typing import Optional

from .errors import ConfigurationError
from .geometry import GridType


@dataclass
class GridConfig:
    """Tiling configuration."""
    grid_type: str = "square"
    cell_size: int = 20
    max_width: int = 800


@dataclass
class PaletteConfig:
    """Palette budget and post-processing thresholds."""
    max_colors: int = 16
    dedup_threshold: float = 3.0
    # Explicit minimum usage; when None it is derived from min_cell_fraction
    min_cell_count: Optional[int] = None
    min_cell_fraction: float = 0.002


@dataclass
class AssignConfig:
    """Per-cell color selection."""
    block_average: bool = True
    alpha_threshold: int = 128
    tie_ratio: float = 1.05


@dataclass
class ProcessingConfig:
    """Runtime behaviour."""
    seed: Optional[int] = 42
    verbose: bool = True


@dataclass
class Config:
    """Main configuration class."""
    config_file: Optional[str] = None

    grid: GridConfig = field(default_factory=GridConfig)
    palette: PaletteConfig = field(default_factory=PaletteConfig)
    assign: AssignConfig = field(default_factory=AssignConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)

    @classmethod
    def from_yaml(cls, config_path: str, **overrides) -> "Config":
        """Load configuration from YAML file with optional overrides."""
        if not os.path.exists(config_path):
            config = cls()
            config.config_file = config_path
        else:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}

            try:
                config = cls(
                    config_file=config_path,
                    grid=GridConfig(**data.get('grid', {})),
                    palette=PaletteConfig(**data.get('palette', {})),
                    assign=AssignConfig(**data.get('assign', {})),
                    processing=ProcessingConfig(**data.get('processing', {})),
                )
            except TypeError as e:
                raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

        config.apply_overrides(**overrides)
        config.validate()
        return config

    def apply_overrides(self, **overrides):
        """Set matching fields on the config or its sections; None values are skipped."""
        for key, value in overrides.items():
            if value is None:
                continue
            for section in (self.grid, self.palette, self.assign, self.processing):
                if hasattr(section, key):
                    setattr(section, key, value)
                    break
            else:
                raise ConfigurationError(f"Unknown configuration key: {key}")

    def validate(self):
        """Validate configuration parameters."""
        try:
            GridType.parse(self.grid.grid_type)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        if isinstance(self.grid.cell_size, bool) or not isinstance(self.grid.cell_size, int):
            raise ConfigurationError(f"Cell size must be an integer, got {self.grid.cell_size!r}")

        if self.grid.cell_size <= 0:
            raise ConfigurationError("Cell size must be positive")

        if self.grid.max_width < 1:
            raise ConfigurationError("Max width must be at least 1 pixel")

        if self.palette.max_colors < 1:
            raise ConfigurationError("Max colors must be at least 1")

        if self.palette.dedup_threshold < 0:
            raise ConfigurationError("Dedup threshold must be non-negative")

        if self.palette.min_cell_count is not None and self.palette.min_cell_count < 0:
            raise ConfigurationError("Min cell count must be non-negative")

        if not (0 <= self.palette.min_cell_fraction < 1):
            raise ConfigurationError("Min cell fraction must be in [0, 1)")

        if not (0 <= self.assign.alpha_threshold <= 255):
            raise ConfigurationError("Alpha threshold must be between 0 and 255")

        if self.assign.tie_ratio < 1:
            raise ConfigurationError("Tie ratio must be at least 1")

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            'grid': {
                'grid_type': self.grid.grid_type,
                'cell_size': self.grid.cell_size,
                'max_width': self.grid.max_width,
            },
            'palette': {
                'max_colors': self.palette.max_colors,
                'dedup_threshold': self.palette.dedup_threshold,
                'min_cell_count': self.palette.min_cell_count,
                'min_cell_fraction': self.palette.min_cell_fraction,
            },
            'assign': {
                'block_average': self.assign.block_average,
                'alpha_threshold': self.assign.alpha_threshold,
                'tie_ratio': self.assign.tie_ratio,
            },
            'processing': {
                'seed': self.processing.seed,
                'verbose': self.processing.verbose,
            },
        }

    def save_yaml(self, path: Optional[str] = None):
        """Save configuration to YAML file."""
        if path is None:
            path = self.config_file or "config.yaml"

        dir_path = os.path.dirname(path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)
