"""CLI startup sequence and exit-code tests.

Verifies how ``infradeck.cli.main`` loads config, prepares the clone, and
hands off to the interactive session.
"""

from __future__ import annotations

import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from infradeck import cli
from infradeck.config import AppConfig
from infradeck.errors import RepositoryError


class CliStartupTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.config_path = self.root / "config.json"
        self.data_dir = self.root / "data"
        self.argv = ["--config", str(self.config_path), "--data-dir", str(self.data_dir)]
        logging_patch = mock.patch("infradeck.cli.configure_logging")
        self.configure_logging = logging_patch.start()
        self.addCleanup(logging_patch.stop)

    def test_main_clones_then_runs_session(self) -> None:
        repo_path = self.data_dir / "infra"
        out = io.StringIO()
        with mock.patch("infradeck.cli.ensure_repository", return_value=repo_path) as ensure, mock.patch(
            "infradeck.cli.os.isatty", return_value=True
        ), mock.patch("infradeck.cli.sys.stdin") as stdin, mock.patch("infradeck.cli.run_session") as run_session:
            stdin.fileno.return_value = 0
            with redirect_stdout(out):
                cli.main([*self.argv, "--no-color", "--style", "native"])

        ensure.assert_called_once_with("https://github.com/jlgore/nsfw-infra", "main", self.data_dir / "infra")
        self.configure_logging.assert_called_once_with(self.data_dir / "infradeck.log", "INFO")
        self.assertTrue(self.config_path.exists())
        self.assertIn("Cloning repository...", out.getvalue())
        self.assertIn(f"Terraform repository is located at: {repo_path}", out.getvalue())

        path, config, options = run_session.call_args.args
        self.assertEqual(path, repo_path)
        self.assertEqual(config, AppConfig())
        self.assertTrue(options.no_color)
        self.assertEqual(options.style, "native")
        self.assertEqual(options.repo_path, repo_path)

    def test_existing_clone_is_updated_not_cloned(self) -> None:
        repo_path = self.data_dir / "infra"
        (repo_path / ".git").mkdir(parents=True)
        out = io.StringIO()
        with mock.patch("infradeck.cli.ensure_repository", return_value=repo_path), mock.patch(
            "infradeck.cli.os.isatty", return_value=True
        ), mock.patch("infradeck.cli.sys.stdin") as stdin, mock.patch("infradeck.cli.run_session"):
            stdin.fileno.return_value = 0
            with redirect_stdout(out):
                cli.main(self.argv)

        self.assertIn("Updating repository...", out.getvalue())
        self.assertNotIn("Cloning repository...", out.getvalue())

    def test_config_values_drive_clone(self) -> None:
        self.config_path.write_text(
            json.dumps({"repo_url": "file:///srv/infra.git", "default_branch": "prod"}),
            encoding="utf-8",
        )
        with mock.patch("infradeck.cli.ensure_repository", return_value=self.data_dir) as ensure, mock.patch(
            "infradeck.cli.os.isatty", return_value=True
        ), mock.patch("infradeck.cli.sys.stdin") as stdin, mock.patch("infradeck.cli.run_session"):
            stdin.fileno.return_value = 0
            with redirect_stdout(io.StringIO()):
                cli.main([*self.argv, "--log-level", "debug"])

        ensure.assert_called_once_with("file:///srv/infra.git", "prod", self.data_dir / "infra")
        self.assertEqual(self.configure_logging.call_args.args[1], "DEBUG")

    def test_malformed_config_exits_with_message(self) -> None:
        self.config_path.write_text("{oops", encoding="utf-8")
        with mock.patch("infradeck.cli.ensure_repository") as ensure:
            with self.assertRaises(SystemExit) as ctx:
                cli.main(self.argv)

        self.assertIn("error decoding config file", str(ctx.exception.code))
        ensure.assert_not_called()

    def test_clone_failure_exits(self) -> None:
        error = RepositoryError("auth", "error cloning repository: Authentication failed")
        with mock.patch("infradeck.cli.ensure_repository", side_effect=error), mock.patch(
            "infradeck.cli.run_session"
        ) as run_session:
            with redirect_stdout(io.StringIO()), self.assertRaises(SystemExit) as ctx:
                cli.main(self.argv)

        self.assertEqual(ctx.exception.code, "infradeck: error cloning repository: Authentication failed")
        run_session.assert_not_called()

    def test_non_tty_stdin_exits(self) -> None:
        with mock.patch("infradeck.cli.ensure_repository", return_value=self.data_dir), mock.patch(
            "infradeck.cli.os.isatty", return_value=False
        ), mock.patch("infradeck.cli.sys.stdin") as stdin, mock.patch("infradeck.cli.run_session") as run_session:
            stdin.fileno.return_value = 0
            with redirect_stdout(io.StringIO()), self.assertRaises(SystemExit) as ctx:
                cli.main(self.argv)

        self.assertEqual(ctx.exception.code, "infradeck: stdin is not a terminal")
        run_session.assert_not_called()


class RunSessionTests(unittest.TestCase):
    def test_session_shuts_down_workers_after_loop(self) -> None:
        with mock.patch("infradeck.cli.TerminalController"), mock.patch(
            "infradeck.cli.sys.stdin"
        ) as stdin, mock.patch("infradeck.cli.run_main_loop", side_effect=RuntimeError("boom")), mock.patch(
            "infradeck.cli.BackgroundRefresher"
        ) as refresher_cls, mock.patch("infradeck.cli.CommandDispatcher") as dispatcher_cls:
            stdin.fileno.return_value = 0
            with self.assertRaises(RuntimeError):
                cli.run_session(Path("/srv/infra"), AppConfig(), cli.RenderOptions())

        refresher_cls.return_value.start.assert_called_once()
        refresher_cls.return_value.stop.assert_called_once()
        dispatcher_cls.return_value.fetch_branches.assert_called_once_with()
        dispatcher_cls.return_value.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
