#!/usr/bin/env python3
"""
I/O operations for cladeshift.

This package handles all input/output operations including:
- Tree and trait table loading
- Result writing and formatting
- Annotated tree output
"""

from .data_loader import TraitTable, load_traits, load_tree
from .output_manager import OutputManager, write_outputs
from .tree_annotator import TreeAnnotator

__all__ = [
    'TraitTable',
    'load_traits',
    'load_tree',
    'OutputManager',
    'write_outputs',
    'TreeAnnotator',
]
