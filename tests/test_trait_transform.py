"""
Tests for continuous trait preparation and pooling.
"""

import math

import numpy as np
import pytest

from cladeshift.analysis.change_detection import CladeRecord, ResultBundle
from cladeshift.analysis.trait_transform import pool_bundle, prepare_continuous
from cladeshift.exceptions import InvalidTraitValueError, LabelMismatchError


@pytest.fixture
def two_clade_bundle():
    return ResultBundle(
        clades=[
            CladeRecord(node=0, origination=0, normal_values=[1.0, 2.0, 3.0], change_values=[10.0]),
            CladeRecord(node=4, origination=1, normal_values=[5.0], change_values=[20.0, 40.0]),
        ],
        node_changes=[3, 4, 7, 8],
    )


class TestPrepareContinuous:
    """Rescaling and log transform of body sizes."""

    def test_log_transform(self):
        prepared = prepare_continuous({'A': 1.0, 'B': math.e})
        assert prepared['A'] == pytest.approx(0.0)
        assert prepared['B'] == pytest.approx(1.0)

    def test_no_transform_keeps_values(self):
        assert prepare_continuous({'A': -2.5, 'B': '3'}, log_transform=False) == {'A': -2.5, 'B': 3.0}

    def test_predator_rescaling(self):
        prepared = prepare_continuous({'A': 8.0}, predator_sizes={'A': 2.0})
        assert prepared['A'] == pytest.approx(math.log(4.0))

    def test_non_positive_size_cannot_be_logged(self):
        with pytest.raises(InvalidTraitValueError) as exc_info:
            prepare_continuous({'A': 0.0})
        assert exc_info.value.label == 'A'

    def test_non_numeric_size(self):
        with pytest.raises(InvalidTraitValueError, match="not numeric"):
            prepare_continuous({'A': 'large'})

    def test_non_finite_size(self):
        with pytest.raises(InvalidTraitValueError, match="not finite"):
            prepare_continuous({'A': float('inf')}, log_transform=False)

    def test_missing_predator_size(self):
        with pytest.raises(LabelMismatchError) as exc_info:
            prepare_continuous({'A': 1.0, 'B': 2.0}, predator_sizes={'A': 1.0})
        assert exc_info.value.missing == ['B']

    def test_non_positive_predator_size(self):
        with pytest.raises(InvalidTraitValueError, match="Predator size"):
            prepare_continuous({'A': 1.0}, predator_sizes={'A': 0})


class TestPoolBundle:
    """Pooling a bundle into a distribution with the change values last."""

    def test_flat_pooling(self, two_clade_bundle):
        distribution, subset = pool_bundle(two_clade_bundle)
        assert distribution.tolist() == [1.0, 2.0, 3.0, 5.0, 10.0, 20.0, 40.0]
        assert subset.tolist() == [4, 5, 6]

    def test_clade_pooling_uses_bucket_medians(self, two_clade_bundle):
        distribution, subset = pool_bundle(two_clade_bundle, weighting='clade')
        assert distribution.tolist() == [2.0, 5.0, 10.0, 30.0]
        assert subset.tolist() == [2, 3]

    def test_empty_buckets_are_skipped(self):
        bundle = ResultBundle(
            clades=[CladeRecord(node=0, origination=0, normal_values=[1.0, 3.0]),
                    CladeRecord(node=2, origination=1, normal_values=[4.0])],
            node_changes=[2],
        )
        distribution, subset = pool_bundle(bundle, weighting='clade')
        assert distribution.tolist() == [2.0, 4.0]
        assert len(subset) == 0

    def test_subset_points_at_change_values(self, two_clade_bundle):
        distribution, subset = pool_bundle(two_clade_bundle)
        assert sorted(distribution[subset]) == [10.0, 20.0, 40.0]
        assert isinstance(distribution, np.ndarray)

    def test_unknown_pooling(self, two_clade_bundle):
        with pytest.raises(ValueError, match="Unknown pooling"):
            pool_bundle(two_clade_bundle, weighting='weighted')
