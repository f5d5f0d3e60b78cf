#!/usr/bin/env python3
"""
Continuous trait preparation and pooling.

Body sizes are optionally divided by a per-tip predator size, then
log-transformed. A change-detection bundle is pooled into one distribution
with the change values appended at the end.
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from ..exceptions import InvalidTraitValueError, LabelMismatchError
from .change_detection import ResultBundle

logger = logging.getLogger(__name__)

POOLING_MODES = ('flat', 'clade')


def _as_float(label: str, value: Any, what: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidTraitValueError(f"{what} for '{label}' is not numeric: {value!r}",
                                     label=label, value=value)
    if not math.isfinite(number):
        raise InvalidTraitValueError(f"{what} for '{label}' is not finite: {value!r}",
                                     label=label, value=value)
    return number


def prepare_continuous(sizes: Mapping[str, Any],
                       predator_sizes: Optional[Mapping[str, Any]] = None,
                       log_transform: bool = True) -> Dict[str, float]:
    """
    Turn raw body sizes into analysis values.

    Args:
        sizes: Mapping label -> body size
        predator_sizes: Optional mapping label -> predator size; sizes are
            divided by it before any transform
        log_transform: Apply the natural log (values must be positive)

    Returns:
        Mapping label -> prepared value
    """
    if predator_sizes is not None:
        missing = set(sizes) - set(predator_sizes)
        if missing:
            raise LabelMismatchError(
                f"{len(missing)} taxa lack a predator size", missing=missing
            )

    prepared = {}
    for label, raw in sizes.items():
        value = _as_float(label, raw, "Body size")
        if predator_sizes is not None:
            predator = _as_float(label, predator_sizes[label], "Predator size")
            if predator <= 0:
                raise InvalidTraitValueError(
                    f"Predator size for '{label}' must be positive, got {predator}",
                    label=label, value=predator,
                )
            value = value / predator
        if log_transform:
            if value <= 0:
                raise InvalidTraitValueError(
                    f"Cannot log-transform non-positive value for '{label}': {value}",
                    label=label, value=value,
                )
            value = math.log(value)
        prepared[label] = value

    logger.debug(
        f"Prepared {len(prepared)} continuous values "
        f"(predator rescaling: {predator_sizes is not None}, log: {log_transform})"
    )
    return prepared


def pool_bundle(bundle: ResultBundle, weighting: str = 'flat') -> Tuple[np.ndarray, np.ndarray]:
    """
    Pool a change-detection bundle into (distribution, subset_indices).

    Normal values come first and change values are appended at the end;
    subset_indices point at the appended tail.

    Args:
        bundle: Output of change detection
        weighting: 'flat' uses every tip value; 'clade' replaces each
            non-empty per-clade bucket with its median

    Returns:
        Tuple of (distribution, subset_indices)
    """
    if weighting not in POOLING_MODES:
        raise ValueError(f"Unknown pooling '{weighting}'. Valid options: {', '.join(POOLING_MODES)}")

    if weighting == 'flat':
        normal = [v for values in bundle.normal_val for v in values]
        change = [v for values in bundle.change_val for v in values]
    else:
        normal = _bucket_medians(bundle.normal_val)
        change = _bucket_medians(bundle.change_val)

    distribution = np.asarray(normal + change, dtype=float)
    subset_indices = np.arange(len(normal), len(distribution))
    return distribution, subset_indices


def _bucket_medians(buckets: List[List[float]]) -> List[float]:
    return [float(np.median(values)) for values in buckets if values]
