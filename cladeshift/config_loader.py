#!/usr/bin/env python3
"""
Configuration loader for cladeshift supporting YAML, TOML, and legacy INI formats.

This module provides utilities to load and validate configuration files
using the Pydantic models defined in config_models.py.
"""

import configparser
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Union

import toml
import yaml
from pydantic import ValidationError

from .config_models import (
    CladeShiftConfig, ComputationalConfig, InputOutputConfig, ReconstructionConfig,
    TestingConfig
)
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Section model for each flat key accepted in a legacy INI file
_INI_SECTIONS = {
    'input_output': InputOutputConfig,
    'reconstruction': ReconstructionConfig,
    'testing': TestingConfig,
    'computational': ComputationalConfig,
}

# Older key names still found in INI files
_INI_ALIASES = {
    'tree': 'tree_file',
    'traits': 'traits_file',
    'output': 'output_prefix',
    'bootstrap_reps': 'replicates',
    'reconstruction': 'method',
}


def detect_config_format(config_path: Path) -> str:
    """Detect configuration file format based on extension and content."""
    suffix = config_path.suffix.lower()

    if suffix in ['.yaml', '.yml']:
        return 'yaml'
    elif suffix in ['.toml']:
        return 'toml'
    elif suffix in ['.ini', '.cfg', '.config', '.conf']:
        return 'ini'

    # Fall back to content sniffing for unknown extensions
    try:
        with open(config_path, 'r') as f:
            content = f.read().strip()
    except OSError:
        return 'ini'

    if content.startswith(('---', '%YAML')) or ':\n' in content or ': ' in content:
        return 'yaml'
    if '[' in content and ']' in content and '=' in content:
        if '[[' in content or content.count('"') > content.count("'"):
            return 'toml'
        return 'ini'
    return 'ini'


def load_yaml_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration file."""
    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        error_msg = f"Error parsing YAML configuration in {config_path}:"
        error_msg += f"\n  → {e}"
        error_msg += "\n  → Make sure the file uses proper YAML syntax (check indentation, colons, etc.)"
        raise ConfigurationError(error_msg, context={'config_file': str(config_path)})
    except OSError as e:
        raise ConfigurationError(f"Error loading YAML configuration from {config_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML configuration in {config_path} must be a mapping of sections")
    return data


def load_toml_config(config_path: Path) -> Dict[str, Any]:
    """Load TOML configuration file."""
    try:
        with open(config_path, 'r') as f:
            return toml.load(f)
    except toml.TomlDecodeError as e:
        raise ConfigurationError(f"Error parsing TOML configuration: {e}",
                                 context={'config_file': str(config_path)})
    except OSError as e:
        raise ConfigurationError(f"Error loading TOML configuration: {e}")


def _convert_value(value: str) -> Union[str, bool, int, float]:
    """Convert INI string values to appropriate types."""
    value = value.strip()

    if value.lower() in ('true', 'yes', 'on'):
        return True
    if value.lower() in ('false', 'no', 'off'):
        return False

    try:
        if '.' in value or 'e' in value.lower():
            return float(value)
        return int(value)
    except ValueError:
        return value


def load_ini_config(config_path: Path) -> Dict[str, Any]:
    """
    Load legacy INI configuration file and convert to the sectioned format.

    Keys may sit in [DEFAULT] or in sections named like the YAML sections;
    flat keys are routed to the section that defines them.
    """
    config = configparser.ConfigParser()

    try:
        config.read(config_path)
    except configparser.Error as e:
        error_msg = f"Error parsing INI configuration in {config_path}:"
        error_msg += f"\n  → {e}"
        if "no section headers" in str(e).lower():
            error_msg += "\n  → INI files require section headers like [DEFAULT]"
        error_msg += "\n  → For better validation, consider using YAML format instead"
        raise ConfigurationError(error_msg, context={'config_file': str(config_path)})

    items = dict(config.defaults())
    for section in config.sections():
        for key, value in config.items(section):
            items[key] = value

    data: Dict[str, Dict[str, Any]] = {}
    for key, value in items.items():
        key = _INI_ALIASES.get(key, key)
        for section, model in _INI_SECTIONS.items():
            if key in model.model_fields:
                data.setdefault(section, {})[key] = _convert_value(value)
                break
        else:
            raise ConfigurationError(f"Unknown configuration key '{key}' in {config_path}",
                                     context={'key': key})
    return data


def load_configuration(config_path: Union[str, Path]) -> CladeShiftConfig:
    """Load and validate configuration from file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}",
                                 context={'config_file': str(config_path)})

    format_type = detect_config_format(config_path)
    logger.info(f"Loading {format_type.upper()} configuration from: {config_path}")

    if format_type == 'yaml':
        data = load_yaml_config(config_path)
    elif format_type == 'toml':
        data = load_toml_config(config_path)
    else:
        data = load_ini_config(config_path)
        logger.warning(
            "INI configuration format is deprecated. "
            "Consider migrating to YAML or TOML format for better features."
        )

    try:
        config = CladeShiftConfig(**data)
    except ValidationError as e:
        error_msg = f"Configuration validation failed for {config_path} ({format_type.upper()} format)"
        if "tree_file" in str(e) or "traits_file" in str(e):
            error_msg += "\n  → An input file was not found. Please check the file path."
        elif "threads" in str(e):
            error_msg += "\n  → Invalid thread count. Use 'auto' or a positive integer"
        elif "method" in str(e):
            error_msg += "\n  → Invalid reconstruction method. Valid options: topology, branch-length"
        else:
            error_msg += f"\n  → {e}"
        error_msg += "\n  → Use --generate-config for an annotated example"
        raise ConfigurationError(error_msg, context={'config_file': str(config_path)}) from e

    logger.info("Configuration loaded and validated successfully")
    return config


def example_config() -> Dict[str, Any]:
    """Example configuration as a sectioned dictionary."""
    return {
        'input_output': {
            'tree_file': 'species.nwk',
            'traits_file': 'traits.csv',
            'label_column': 'label',
            'size_column': 'body_size',
            'state_column': 'defense',
            'output_prefix': 'cladeshift_results',
            'debug': False,
        },
        'reconstruction': {
            'method': 'topology',
            'fallback_to_topology': False,
        },
        'testing': {
            'replicates': 1000,
            'statistic': 'median',
            'alternative': 'two-sided',
            'rarefaction': True,
            'rarefaction_repeats': 20,
            'envelope': 0.95,
            'pooling': 'flat',
            'log_transform': True,
            'ttest': True,
        },
        'computational': {
            'seed': 12345,
            'threads': 'auto',
            'block_size': 250,
        },
    }


def create_example_yaml_config(output_path: Path) -> None:
    """Create an example YAML configuration file."""
    with open(output_path, 'w') as f:
        yaml.dump(example_config(), f, default_flow_style=False, sort_keys=False, indent=2)
    logger.info(f"Example YAML configuration created: {output_path}")


def create_example_toml_config(output_path: Path) -> None:
    """Create an example TOML configuration file."""
    with open(output_path, 'w') as f:
        toml.dump(example_config(), f)
    logger.info(f"Example TOML configuration created: {output_path}")


def main():
    """Command-line interface for configuration utilities."""
    import argparse

    parser = argparse.ArgumentParser(description="cladeshift configuration utilities")
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    validate_parser = subparsers.add_parser('validate', help='Validate configuration file')
    validate_parser.add_argument('config_file', help='Configuration file to validate')

    example_parser = subparsers.add_parser('example', help='Create example configuration')
    example_parser.add_argument('output_file', help='Output file (.yaml or .toml)')

    args = parser.parse_args()

    if args.command == 'validate':
        try:
            config = load_configuration(args.config_file)
            print(f"✓ Configuration file {args.config_file} is valid")
            print(f"  Reconstruction: {config.reconstruction.method}")
            print(f"  Replicates: {config.testing.replicates} ({config.testing.statistic})")
        except ConfigurationError as e:
            print(f"✗ Configuration validation failed: {e}")
            sys.exit(1)

    elif args.command == 'example':
        output = Path(args.output_file)
        try:
            if output.suffix.lower() == '.toml':
                create_example_toml_config(output)
            else:
                create_example_yaml_config(output)
            print(f"✓ Example configuration created: {args.output_file}")
        except OSError as e:
            print(f"✗ Failed to create example: {e}")
            sys.exit(1)

    else:
        parser.print_help()


if __name__ == '__main__':
    main()
