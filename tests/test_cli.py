"""
Integration tests for the command-line entry point.
"""

import json

import pytest
import yaml

from cladeshift.cli import build_configuration, main, setup_argument_parser
from cladeshift.core.constants import VERSION
from cladeshift.exceptions import ConfigurationError
from conftest import create_test_file


def run_args(dataset_files, prefix, *extra):
    tree_file, traits_file = dataset_files
    return [str(tree_file), str(traits_file), "--output", str(prefix),
            "--replicates", "40", "--threads", "1", *extra]


class TestArgumentParsing:
    """Command-line options and their merge with config files."""

    def test_defaults_come_from_the_models(self, dataset_files):
        tree_file, traits_file = dataset_files
        args = setup_argument_parser().parse_args([str(tree_file), str(traits_file)])
        config = build_configuration(args)

        assert config.input_output.tree_file == tree_file
        assert config.reconstruction.method == "topology"
        assert config.testing.log_transform is True

    def test_options_override(self, dataset_files):
        tree_file, traits_file = dataset_files
        args = setup_argument_parser().parse_args([
            str(tree_file), str(traits_file), "--method", "branch-length", "--rate", "0.3",
            "--statistic", "mean", "--pooling", "clade", "--no-log", "--no-ttest",
            "--rarefaction", "--threads", "2", "--seed", "17",
        ])
        config = build_configuration(args)

        assert config.reconstruction.method == "branch-length"
        assert config.reconstruction.rate == 0.3
        assert config.testing.statistic == "mean"
        assert config.testing.pooling == "clade"
        assert config.testing.log_transform is False
        assert config.testing.ttest is False
        assert config.testing.rarefaction is True
        assert config.computational.threads == 2
        assert config.computational.seed == 17

    def test_command_line_wins_over_config_file(self, temp_dir):
        config_file = create_test_file(temp_dir, "run.yaml",
                                       "testing:\n  replicates: 500\n  statistic: mean\n")
        args = setup_argument_parser().parse_args(["--config", str(config_file), "--replicates", "40"])
        config = build_configuration(args)

        assert config.testing.replicates == 40
        assert config.testing.statistic == "mean"

    def test_invalid_option_value(self, dataset_files):
        tree_file, traits_file = dataset_files
        args = setup_argument_parser().parse_args([str(tree_file), str(traits_file), "--replicates", "0"])

        with pytest.raises(ConfigurationError):
            build_configuration(args)

    def test_invalid_threads(self):
        with pytest.raises(SystemExit):
            setup_argument_parser().parse_args(["--threads", "many"])


class TestMainIntegration:
    """End-to-end runs through main()."""

    def test_full_run_writes_outputs(self, temp_dir, dataset_files, capsys):
        prefix = temp_dir / "out" / "run"
        main(run_args(dataset_files, prefix, "--rarefaction", "--rarefaction-repeats", "3"))

        with open(f"{prefix}.json") as f:
            data = json.load(f)
        assert data['n_change'] == 2
        assert data['test']['replicates'] == 40
        assert len(data['test']['rarefaction']) == 2
        assert (temp_dir / "out" / "run.txt").exists()
        assert (temp_dir / "out" / "run_changes.nwk").exists()
        assert "Runtime Parameters" in capsys.readouterr().out

    def test_run_from_config_file(self, temp_dir, dataset_files):
        tree_file, traits_file = dataset_files
        prefix = temp_dir / "configured"
        config_file = temp_dir / "run.yaml"
        with open(config_file, 'w') as f:
            yaml.dump({
                'input_output': {'tree_file': str(tree_file), 'traits_file': str(traits_file),
                                 'output_prefix': str(prefix), 'predator_column': 'predator'},
                'testing': {'replicates': 30},
                'computational': {'threads': 1},
            }, f)
        main(["--config", str(config_file)])

        with open(f"{prefix}.json") as f:
            data = json.load(f)
        assert data['parameters']['replicates'] == 30

    def test_same_seed_same_pvalue(self, temp_dir, dataset_files):
        main(run_args(dataset_files, temp_dir / "first", "--seed", "5"))
        main(run_args(dataset_files, temp_dir / "second", "--seed", "5"))

        first = json.loads((temp_dir / "first.json").read_text())
        second = json.loads((temp_dir / "second.json").read_text())
        assert first['test']['pvalue'] == second['test']['pvalue']
        assert first['test']['null_summary'] == second['test']['null_summary']

    def test_missing_inputs_exit(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1
        assert "usage:" in capsys.readouterr().out

    def test_missing_config_file_exits(self, temp_dir):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(temp_dir / "absent.yaml")])
        assert exc_info.value.code == 1

    def test_analysis_error_exits(self, temp_dir):
        tree_file = create_test_file(temp_dir, "tree.nwk", "((A:1,B:1):1,(C:1,D:1):1);\n")
        traits_file = create_test_file(temp_dir, "traits.csv",
                                       "label,body_size,defense\nA,1,0\nB,2,0\nC,3,0\nD,4,0\n")
        with pytest.raises(SystemExit) as exc_info:
            main([str(tree_file), str(traits_file), "--output", str(temp_dir / "none"), "--threads", "1"])
        assert exc_info.value.code == 1
        assert not (temp_dir / "none.json").exists()

    def test_generate_config(self, temp_dir):
        output = temp_dir / "example.yaml"
        main(["--generate-config", str(output)])

        with open(output) as f:
            data = yaml.safe_load(f)
        assert data['testing']['replicates'] == 1000

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert VERSION in capsys.readouterr().out
