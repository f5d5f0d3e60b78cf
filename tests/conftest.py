"""
Pytest configuration and shared fixtures.

This module contains shared test fixtures and configuration
for the cladeshift test suite.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Dict

import pytest

from cladeshift.core.tree_model import TreeModel
from cladeshift.core.utils import PACKAGE_LOGGER

# Configure logging for tests
logging.basicConfig(level=logging.DEBUG)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for each test."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def star_tree():
    """Four tips hanging from the root."""
    return TreeModel.from_newick("(A:1,B:1,C:1,D:1);")


@pytest.fixture
def balanced_tree():
    """Two cherries: ids 0 root, 1 (A,B), 2 A, 3 B, 4 (C,D), 5 C, 6 D."""
    return TreeModel.from_newick("((A:1,B:1):1,(C:1,D:1):1);")


@pytest.fixture
def nested_tree():
    """
    Eight tips with a nested clade.

    ids: 0 root, 1 (A..D), 2 (A,B), 3 A, 4 B, 5 (C,D), 6 C, 7 D,
    8 (E..H), 9 (E,F), 10 E, 11 F, 12 (G,H), 13 G, 14 H
    """
    return TreeModel.from_newick(
        "(((A:0.5,B:0.5):0.5,(C:0.5,D:0.5):0.5):1,((E:0.5,F:0.5):0.5,(G:0.5,H:0.5):0.5):1);"
    )


@pytest.fixture
def caterpillar():
    """Builder for a caterpillar tree with n tips, deeper than the recursion limit for large n."""
    def build(n_tips: int, branch_length: float = 0.1) -> TreeModel:
        n_internal = n_tips - 1
        parents = [None] + list(range(n_internal - 1))
        parents += list(range(n_internal)) + [n_internal - 1]
        labels = {n_internal + i: f"T{i}" for i in range(n_tips)}
        return TreeModel.from_parents(parents, labels=labels,
                                      branch_lengths=[branch_length] * len(parents))
    return build


@pytest.fixture
def nested_sizes() -> Dict[str, float]:
    """Body sizes for nested_tree; E and G are large."""
    return {
        'A': 2.0, 'B': 2.2, 'C': 1.8, 'D': 2.1,
        'E': 9.0, 'F': 2.4, 'G': 11.0, 'H': 1.9,
    }


@pytest.fixture
def nested_states() -> Dict[str, int]:
    """Defense present in E and G only, so every internal node reconstructs to 0."""
    return {
        'A': 0, 'B': 0, 'C': 0, 'D': 0,
        'E': 1, 'F': 0, 'G': 1, 'H': 0,
    }


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog sees package records in later tests."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def caplog_debug(caplog):
    """Capture debug logs during tests."""
    with caplog.at_level(logging.DEBUG):
        yield caplog


def create_test_file(temp_dir: Path, filename: str, content: str) -> Path:
    """Helper function to create test files."""
    file_path = temp_dir / filename
    file_path.write_text(content)
    return file_path


@pytest.fixture
def dataset_files(temp_dir, nested_sizes, nested_states):
    """Tree and trait files for the nested dataset."""
    tree_file = create_test_file(
        temp_dir, "species.nwk",
        "(((A:0.5,B:0.5):0.5,(C:0.5,D:0.5):0.5):1,((E:0.5,F:0.5):0.5,(G:0.5,H:0.5):0.5):1);\n",
    )
    rows = ["label,body_size,defense,predator"]
    for label in sorted(nested_sizes):
        rows.append(f"{label},{nested_sizes[label]},{nested_states[label]},2.0")
    traits_file = create_test_file(temp_dir, "traits.csv", "\n".join(rows) + "\n")
    return tree_file, traits_file


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test names."""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)

        if any(keyword in item.name.lower() for keyword in ['large', 'calibration', 'deep']):
            item.add_marker(pytest.mark.slow)
