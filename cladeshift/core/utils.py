#!/usr/bin/env python3
"""
Utility functions for cladeshift.

Common utility functions used across the cladeshift modules.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .constants import DECIMAL_PLACES, SIGNIFICANCE_THRESHOLD, VERSION

PACKAGE_LOGGER = "cladeshift"


def setup_logging(debug_mode: bool = False, log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Setup structured logging for cladeshift with appropriate handlers and formatters.

    Args:
        debug_mode: Enable debug logging
        log_file: Optional log file path
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG if debug_mode or log_file else logging.INFO)
    logger.propagate = False

    # Console handler for user-friendly output
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter('%(message)s'))
    console_handler.setLevel(logging.DEBUG if debug_mode else logging.INFO)
    logger.addHandler(console_handler)

    # File handler for detailed debug output
    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    return logger


def get_display_path(path: Union[str, Path]) -> str:
    """Get a display-friendly path representation."""
    path_obj = path if isinstance(path, Path) else Path(path)

    if path_obj.is_absolute():
        try:
            rel_path = path_obj.relative_to(Path.cwd())
            if len(str(rel_path)) < len(str(path_obj)):
                return str(rel_path)
        except ValueError:
            pass  # Path is not relative to current directory

    return str(path_obj)


def print_runtime_parameters(params: Dict[str, Any]) -> None:
    """Print runtime parameters in a formatted box."""
    print("┌─" + "─" * 76 + "─┐")
    print("│" + f" cladeshift v{VERSION} - Runtime Parameters".center(76) + " │")
    print("├─" + "─" * 76 + "─┤")
    print(f"│ {'Tree:':<20} {get_display_path(params['tree_file']):<54} │")
    print(f"│ {'Traits:':<20} {get_display_path(params['traits_file']):<54} │")
    print(f"│ {'Reconstruction:':<20} {params['method']:<54} │")
    print(f"│ {'Statistic:':<20} {params['statistic']:<54} │")
    print(f"│ {'Alternative:':<20} {params['alternative']:<54} │")
    print(f"│ {'Replicates:':<20} {str(params['replicates']):<54} │")
    print(f"│ {'Pooling:':<20} {params['pooling']:<54} │")
    print(f"│ {'Seed:':<20} {str(params['seed']):<54} │")
    print(f"│ {'Threads:':<20} {str(params['threads']):<54} │")
    print(f"│ {'Output prefix:':<20} {params['output_prefix']:<54} │")

    if params.get('predator_column'):
        print(f"│ {'Predator rescaling:':<20} {params['predator_column']:<54} │")

    if params.get('rarefaction'):
        repeats = f"{params['rarefaction_repeats']} subsets per size"
        print(f"│ {'Rarefaction:':<20} {repeats:<54} │")

    print("└─" + "─" * 76 + "─┘")


def format_pvalue(pvalue: Optional[float]) -> str:
    """Format a p-value, starring significant ones."""
    if pvalue is None:
        return 'N/A'
    if pvalue < 0.001:
        return '<0.001*'
    text = f'{pvalue:.3f}'
    return text + '*' if pvalue < SIGNIFICANCE_THRESHOLD else text


def format_number(value: Optional[float], places: int = DECIMAL_PLACES) -> str:
    if value is None:
        return 'N/A'
    return f'{value:.{places}f}'


def truncate_string(text: str, max_length: int = 50, suffix: str = "...") -> str:
    """Truncate a string to a maximum length with optional suffix."""
    if len(text) <= max_length:
        return text

    truncate_length = max_length - len(suffix)
    if truncate_length <= 0:
        return suffix[:max_length]

    return text[:truncate_length] + suffix
