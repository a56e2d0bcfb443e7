"""Tests for the command line entry point."""

from unittest.mock import patch

from radar_label import __main__ as cli


def test_parser_defaults():
    args = cli.build_parser().parse_args([])
    assert args.project is None
    assert args.backup_dir is None
    assert not args.verbose


def test_main_passes_options():
    with patch.object(cli, "run_app", return_value=0) as run_app:
        assert cli.main(["proj.json", "--backup-dir", "/tmp/bk", "-v"]) == 0
    run_app.assert_called_once_with(project_path="proj.json", backup_dir="/tmp/bk")
