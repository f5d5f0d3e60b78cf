#!/usr/bin/env python3
"""
cladeshift - clade change detection and rarefaction-corrected resampling tests.

Reconstructs a binary trait over a rooted phylogeny, partitions a continuous
trait into values measured at state changes and values consistent with the
clade's origin, and tests whether the two groups differ.
"""

from .core.constants import VERSION

__version__ = VERSION

__all__ = ['__version__']
