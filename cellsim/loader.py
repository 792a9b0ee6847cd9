"""
YAML config loader with schema validation.

Loads the simulation configuration from YAML and validates it against a
JSON schema. Also persists genomes (chromosome contents plus lambda) as
YAML.
"""

import yaml
import json
from pathlib import Path
from typing import Optional
import jsonschema

from .data_types import (
    SimulationConfig, AreaConfig, PhysicsConfig, MetabolismConfig,
    RewardConfig, GenomeConfig
)
from .brain import Genome
from .instructions import ChromosomeConfigError
from .constants import CELL_SPAWN_PROBABILITY

# Schemas shipped with the package
DEFAULT_SCHEMA_DIR = Path(__file__).parent / "schemas"


class DataLoadError(Exception):
    """Raised when data loading or validation fails"""
    pass


def load_yaml(file_path: Path) -> dict:
    """Load YAML file and return parsed dict"""
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise DataLoadError(f"YAML parse error in {file_path}: {e}")


def validate_against_schema(data: dict, schema_path: Path, data_path: Path):
    """Validate data dict against JSON schema"""
    if not schema_path.exists():
        # Schema validation optional when the schema file is absent
        return

    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        raise DataLoadError(f"Validation error in {data_path}: {e.message}")
    except json.JSONDecodeError as e:
        raise DataLoadError(f"Invalid JSON schema {schema_path}: {e}")


def _section(data: dict, name: str) -> dict:
    """Copy of a top-level config section (empty when absent)"""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise DataLoadError(f"Config section '{name}' must be a mapping, got {type(section).__name__}")
    return dict(section)


def parse_simulation_config(data: dict) -> SimulationConfig:
    """Build a SimulationConfig from a parsed dict; missing sections keep defaults."""
    if not isinstance(data, dict):
        raise DataLoadError(f"Simulation config must be a mapping, got {type(data).__name__}")

    area_data = _section(data, 'area')
    genome_data = _section(data, 'genome')

    try:
        for key in ('center', 'half_extent'):
            if key in area_data:
                area_data[key] = tuple(float(v) for v in area_data[key])

        if 'chromosomes' in genome_data:
            # Merge partial layouts over the default one
            layout = GenomeConfig().chromosomes
            for name, shape in dict(genome_data['chromosomes']).items():
                if name not in layout:
                    raise DataLoadError(f"Unknown chromosome '{name}' in genome config")
                layout[name] = [int(shape[0]), int(shape[1])]
            genome_data['chromosomes'] = layout

        return SimulationConfig(
            seed=data.get('seed'),
            spawn_probability=data.get('spawn_probability', CELL_SPAWN_PROBABILITY),
            area=AreaConfig(**area_data),
            physics=PhysicsConfig(**_section(data, 'physics')),
            metabolism=MetabolismConfig(**_section(data, 'metabolism')),
            reward=RewardConfig(**_section(data, 'reward')),
            genome=GenomeConfig(**genome_data),
            description=data.get('description')
        )
    except (TypeError, ValueError, IndexError) as e:
        raise DataLoadError(f"Invalid simulation config: {e}")


def load_simulation_config(file_path: Path, schema_dir: Optional[Path] = None) -> SimulationConfig:
    """Load simulation configuration from YAML"""
    file_path = Path(file_path)
    data = load_yaml(file_path)

    # Validate if schema available
    if schema_dir:
        schema_path = Path(schema_dir) / "simulation.schema.json"
        validate_against_schema(data, schema_path, file_path)

    return parse_simulation_config(data)


def save_genome(file_path: Path, genome: Genome):
    """Write a genome (chromosomes + lambda) to YAML"""
    with open(file_path, 'w') as f:
        yaml.safe_dump(genome.to_dict(), f, sort_keys=False)


def load_genome(file_path: Path, config: Optional[GenomeConfig] = None) -> Genome:
    """Load a genome written by save_genome"""
    file_path = Path(file_path)
    data = load_yaml(file_path)

    try:
        return Genome.from_dict(data, config)
    except (KeyError, TypeError, IndexError) as e:
        raise DataLoadError(f"Malformed genome file {file_path}: {e}")
    except ChromosomeConfigError as e:
        raise DataLoadError(f"Inconsistent chromosome in {file_path}: {e}")
    except ValueError as e:
        raise DataLoadError(f"Invalid instruction in {file_path}: {e}")
