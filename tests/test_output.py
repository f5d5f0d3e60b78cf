"""
Tests for result files: JSON report, text summary and annotated tree.
"""

import json

import pytest

from cladeshift.analysis.ancestral_states import estimate
from cladeshift.analysis.change_detection import detect
from cladeshift.core.analysis_coordinator import AnalysisCoordinator
from cladeshift.core.tree_model import TreeModel
from cladeshift.io.output_manager import OutputManager, describe_node, write_outputs
from cladeshift.io.tree_annotator import TreeAnnotator, format_annotation, format_label


@pytest.fixture
def nested_report(nested_tree, nested_sizes, nested_states):
    coordinator = AnalysisCoordinator(replicates=60, seed=4, threads=1, rarefaction=True,
                                      rarefaction_repeats=3)
    return coordinator.run(nested_tree, nested_sizes, nested_states)


class TestTreeAnnotator:
    """Annotated Newick output."""

    def test_balanced_tree_annotation(self, balanced_tree):
        states = estimate(balanced_tree, {'A': 0, 'B': 0, 'C': 1, 'D': 1})
        bundle = detect(balanced_tree, states, {'A': 1, 'B': 2, 'C': 3, 'D': 4})
        newick = TreeAnnotator().to_newick(balanced_tree, states, bundle.node_changes)

        assert newick == (
            "((A[&state=0,change=0]:1,B[&state=0,change=0]:1)[&state=0,change=0]:1,"
            "(C[&state=1,change=0]:1,D[&state=1,change=0]:1)[&state=1,change=1]:1)"
            "[&state=0,change=0];"
        )

    def test_tip_change_flag(self, star_tree):
        states = estimate(star_tree, {'A': 0, 'B': 0, 'C': 0, 'D': 1})
        bundle = detect(star_tree, states, {'A': 1, 'B': 1, 'C': 1, 'D': 5})
        newick = TreeAnnotator().to_newick(star_tree, states, bundle.node_changes)

        assert "D[&state=1,change=1]:1" in newick
        assert newick.count("change=1") == 1

    def test_missing_lengths_are_omitted(self):
        tree = TreeModel.from_newick("((A,B),C);")
        states = {n: 0 for n in range(len(tree))}
        newick = TreeAnnotator().to_newick(tree, states, [])

        assert ":" not in newick

    def test_written_tree_can_be_read_back(self, temp_dir, nested_tree, nested_states):
        states = estimate(nested_tree, nested_states)
        output = TreeAnnotator().write_annotated_tree(nested_tree, states, [10, 13],
                                                      temp_dir / "changes.nwk")
        reread = TreeModel.from_newick(output.read_text().strip())

        assert reread.tip_labels == nested_tree.tip_labels
        assert reread.branch_length(10) == pytest.approx(0.5)

    @pytest.mark.parametrize("label, expected", [
        ("Homo_sapiens", "Homo_sapiens"),
        ("Homo sapiens", "'Homo sapiens'"),
        ("O'Brien", "'O''Brien'"),
        ("sp:1", "'sp:1'"),
    ])
    def test_label_quoting(self, label, expected):
        assert format_label(label) == expected

    def test_format_annotation(self):
        assert format_annotation(1, True) == "[&state=1,change=1]"
        assert format_annotation(0, False) == "[&state=0,change=0]"

    def test_deep_tree_annotation(self, caterpillar):
        tree = caterpillar(4000)
        states = {n: 0 for n in range(len(tree))}
        newick = TreeAnnotator().to_newick(tree, states, [])

        assert newick.count("(") == tree.n_tips - 1
        assert newick.endswith(";")


class TestOutputManager:
    """JSON and text summaries."""

    def test_write_outputs(self, temp_dir, nested_report, nested_tree):
        prefix = temp_dir / "results" / "run1"
        written = write_outputs(nested_report, nested_tree, str(prefix))

        assert [path.name for path in written] == ["run1.json", "run1.txt", "run1_changes.nwk"]
        assert all(path.exists() for path in written)

    def test_json_content(self, temp_dir, nested_report, nested_tree):
        output = OutputManager().write_json(nested_report, nested_tree, temp_dir / "run.json")
        with open(output) as f:
            data = json.load(f)

        assert data['n_tips'] == 8
        assert data['n_change'] == 2
        assert data['changes']['node_changes'] == [10, 13]
        assert data['changes']['clades'][0]['change_tips'] == ['E', 'G']
        assert data['test']['subset_size'] == 2
        assert [point['size'] for point in data['test']['rarefaction']] == [1, 2]
        assert data['parameters']['replicates'] == 60
        assert 'version' in data and 'timestamp' in data

    def test_summary_content(self, temp_dir, nested_report, nested_tree):
        output = OutputManager().write_summary(nested_report, nested_tree, temp_dir / "run.txt")
        text = output.read_text()

        assert "Resampling Test" in text
        assert "Rarefaction Curve" in text
        assert "Clade Details" in text
        assert "Change points: 2" in text
        assert "change (2): E, G" in text
        assert "┌" in text

    def test_ascii_style(self, temp_dir, nested_report, nested_tree):
        output = OutputManager(output_style="ascii").write_summary(
            nested_report, nested_tree, temp_dir / "run.txt")
        text = output.read_text()

        assert "┌" not in text
        assert "+" in text

    def test_fallback_is_reported(self, temp_dir, nested_sizes, nested_states):
        tree = TreeModel.from_newick("(((A,B),(C,D)),((E,F),(G,H)));")
        coordinator = AnalysisCoordinator(method="branch-length", fallback_to_topology=True,
                                          replicates=30, threads=1)
        report = coordinator.run(tree, nested_sizes, nested_states)
        text = OutputManager().write_summary(report, tree, temp_dir / "run.txt").read_text()

        assert "topology (fallback from branch-length)" in text
        assert "Warning:" in text

    @pytest.mark.parametrize("pvalue, expected", [
        (0.0005, "***"), (0.005, "**"), (0.03, "*"), (0.2, "ns"),
    ])
    def test_significance_marks(self, pvalue, expected):
        assert OutputManager()._format_significance(pvalue) == expected

    def test_describe_node(self, nested_tree):
        assert describe_node(nested_tree, 10) == "E"
        assert describe_node(nested_tree, 8) == "node 8 (4 tips: E..H)"
