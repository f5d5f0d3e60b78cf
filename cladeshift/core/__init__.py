#!/usr/bin/env python3
"""
Core orchestration logic for cladeshift.

This package contains the tree model and the run orchestration:
- Tree model and traversals
- Analysis coordinator
- Progress logging and common utilities
"""

from .tree_model import Node, TreeModel
from .analysis_coordinator import AnalysisCoordinator, AnalysisReport
from .progress_logger import ProgressLogger
from .utils import setup_logging

__all__ = [
    'Node',
    'TreeModel',
    'AnalysisCoordinator',
    'AnalysisReport',
    'ProgressLogger',
    'setup_logging',
]
