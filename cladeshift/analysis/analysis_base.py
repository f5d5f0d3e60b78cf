#!/usr/bin/env python3
"""
Shared types and validation for the cladeshift analysis modules.

This module defines the reconstruction method selector and the checks that
every analysis step applies to its inputs before touching the tree.
"""

import logging
import math
from enum import Enum
from typing import Any, Dict, Iterable, Mapping

from ..core.constants import METHOD_BRANCH_LENGTH, METHOD_TOPOLOGY
from ..core.tree_model import TreeModel
from ..exceptions import InvalidTraitValueError, LabelMismatchError

logger = logging.getLogger(__name__)


class ReconstructionMethod(str, Enum):
    """Ancestral state reconstruction strategy."""
    TOPOLOGY = METHOD_TOPOLOGY
    BRANCH_LENGTH = METHOD_BRANCH_LENGTH

    @classmethod
    def parse(cls, value: Any) -> "ReconstructionMethod":
        """
        Accept an enum member or its string value.

        Underscores are accepted in place of hyphens ("branch_length").
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace('_', '-')
        try:
            return cls(normalized)
        except ValueError:
            valid = ', '.join(member.value for member in cls)
            raise ValueError(f"Unknown reconstruction method '{value}'. Valid options: {valid}")


def check_labels(tree: TreeModel, labels: Iterable[str], what: str = "trait data") -> None:
    """
    Require that a set of labels matches the tree's tip labels exactly.

    Raises:
        LabelMismatchError: listing labels missing from the data and labels
            the tree does not contain
    """
    tree_labels = set(tree.tip_labels)
    data_labels = set(labels)
    missing = tree_labels - data_labels
    extra = data_labels - tree_labels
    if missing or extra:
        parts = []
        if missing:
            parts.append(f"{len(missing)} tree tip(s) absent from {what}")
        if extra:
            parts.append(f"{len(extra)} {what} label(s) not in tree")
        raise LabelMismatchError("; ".join(parts), missing=missing, extra=extra)


def check_binary_states(states: Mapping[str, Any]) -> Dict[str, int]:
    """
    Coerce a label -> state mapping to integers 0/1.

    Raises:
        InvalidTraitValueError: if any value is not 0 or 1
    """
    coerced = {}
    for label, value in states.items():
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidTraitValueError(
                f"State for '{label}' is not numeric: {value!r}", label=label, value=value
            )
        if math.isnan(number) or number not in (0.0, 1.0):
            raise InvalidTraitValueError(
                f"State for '{label}' must be 0 or 1, got {value!r}", label=label, value=value
            )
        coerced[label] = int(number)
    return coerced
