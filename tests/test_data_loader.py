"""
Tests for tree and trait table loading.
"""

import pytest

from cladeshift.exceptions import DataLoadError, MalformedTreeError
from cladeshift.io.data_loader import load_traits, load_tree
from conftest import create_test_file


class TestLoadTree:
    """Reading Newick files."""

    def test_load_dataset_tree(self, dataset_files):
        tree_file, _ = dataset_files
        tree = load_tree(tree_file)

        assert tree.n_tips == 8
        assert tree.tip_labels == list('ABCDEFGH')
        assert tree.node_for_label('E') == 10

    def test_first_tree_is_used(self, temp_dir):
        tree_file = create_test_file(temp_dir, "two.nwk", "(A:1,B:1);\n(C:1,D:1,E:1);\n")
        assert load_tree(tree_file).tip_labels == ['A', 'B']

    def test_missing_file(self, temp_dir):
        with pytest.raises(DataLoadError, match="not found") as exc_info:
            load_tree(temp_dir / "absent.nwk")
        assert exc_info.value.context['file_path'].endswith("absent.nwk")

    def test_empty_file(self, temp_dir):
        tree_file = create_test_file(temp_dir, "empty.nwk", "\n")
        with pytest.raises(DataLoadError, match="empty"):
            load_tree(tree_file)

    def test_unbalanced_parentheses(self, temp_dir):
        tree_file = create_test_file(temp_dir, "bad.nwk", "((A:1,B:1):1,C:1;\n")
        with pytest.raises(DataLoadError, match="Could not parse"):
            load_tree(tree_file)

    def test_duplicate_tips_are_malformed(self, temp_dir):
        tree_file = create_test_file(temp_dir, "dup.nwk", "(A:1,(A:1,B:1):1);\n")
        with pytest.raises(MalformedTreeError) as exc_info:
            load_tree(tree_file)
        assert exc_info.value.context['file_path'] == str(tree_file)


class TestLoadTraits:
    """Reading the per-taxon trait table."""

    def test_load_dataset_traits(self, dataset_files, nested_states):
        _, traits_file = dataset_files
        table = load_traits(traits_file, predator_column='predator')

        assert len(table) == 8
        assert table.labels == list('ABCDEFGH')
        assert table.states['E'] == '1'
        assert table.sizes['G'] == '11.0'
        assert table.predator_sizes['A'] == '2.0'
        assert table.columns == ['label', 'body_size', 'defense', 'predator']
        assert table.source == traits_file

    def test_predator_sizes_absent_without_column(self, dataset_files):
        _, traits_file = dataset_files
        assert load_traits(traits_file).predator_sizes is None

    def test_tab_delimited_with_custom_columns(self, temp_dir):
        traits_file = create_test_file(
            temp_dir, "traits.tsv",
            "taxon\tmass\tspines\nsp_one\t1.5\t0\nsp_two\t2.5\t1\nsp_three\t0.7\t0\n"
        )
        table = load_traits(traits_file, label_column='taxon', size_column='mass', state_column='spines')

        assert table.labels == ['sp_one', 'sp_two', 'sp_three']
        assert table.states == {'sp_one': '0', 'sp_two': '1', 'sp_three': '0'}

    def test_whitespace_and_bom_are_stripped(self, temp_dir):
        traits_file = temp_dir / "traits.csv"
        traits_file.write_text("\ufefflabel, body_size, defense\n A , 2.0 , 1\n B , 3.0 , 0\n",
                               encoding='utf-8')
        table = load_traits(traits_file)

        assert table.labels == ['A', 'B']
        assert table.sizes['A'] == '2.0'

    def test_missing_columns(self, temp_dir):
        traits_file = create_test_file(temp_dir, "traits.csv", "label,mass\nA,1\nB,2\n")
        with pytest.raises(DataLoadError) as exc_info:
            load_traits(traits_file)
        assert exc_info.value.context['missing_columns'] == ['body_size', 'defense']

    def test_duplicate_label(self, temp_dir):
        traits_file = create_test_file(
            temp_dir, "traits.csv", "label,body_size,defense\nA,1,0\nB,2,1\nA,3,0\n"
        )
        with pytest.raises(DataLoadError, match="Duplicate label 'A'") as exc_info:
            load_traits(traits_file)
        assert exc_info.value.context['line'] == 4

    def test_blank_label(self, temp_dir):
        traits_file = create_test_file(temp_dir, "traits.csv", "label,body_size,defense\nA,1,0\n,2,1\n")
        with pytest.raises(DataLoadError, match="Blank label"):
            load_traits(traits_file)

    def test_no_rows(self, temp_dir):
        traits_file = create_test_file(temp_dir, "traits.csv", "label,body_size,defense\n")
        with pytest.raises(DataLoadError, match="no data rows"):
            load_traits(traits_file)

    def test_missing_file(self, temp_dir):
        with pytest.raises(DataLoadError, match="not found"):
            load_traits(temp_dir / "absent.csv")
