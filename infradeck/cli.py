"""Command-line front door for infradeck.

Loads config, sets up file logging, and clones or refreshes the
infrastructure repository. Then wires the cache, dispatcher, and
refresher together and runs the terminal UI until the user quits.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .branch_cache import STALENESS_WINDOW_SECONDS, BranchCache
from .config import DEFAULT_CONFIG_PATH, DEFAULT_DATA_DIR, REPO_DIRNAME, AppConfig, init_config
from .dispatcher import CommandDispatcher
from .errors import ConfigurationError, RepositoryError
from .git_repo import GitRepository, ensure_repository
from .highlight import DEFAULT_STYLE
from .logs import configure_logging
from .loop import RuntimeLoopCallbacks, run_main_loop
from .navigation import NavigationStateMachine
from .provisioner import TerraformProvisioner
from .refresh import BackgroundRefresher
from .render import RenderOptions
from .state import NavigationState
from .terminal import TerminalController

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="infradeck",
        description="Browse infrastructure branches, read their slides, and deploy them with terraform.",
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="config file location")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DEFAULT_DATA_DIR,
        help="directory holding the repository clone and relative log files",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="INFO", type=str.upper)
    parser.add_argument("--style", default=DEFAULT_STYLE, help="pygments style for slides")
    parser.add_argument("--no-color", action="store_true", help="disable colors")
    return parser


def run_session(repo_path: Path, config: AppConfig, options: RenderOptions) -> None:
    """Run the interactive UI against an existing clone at ``repo_path``."""
    repo = GitRepository(repo_path)
    cache = BranchCache(repo, staleness_seconds=STALENESS_WINDOW_SECONDS)
    provisioner = TerraformProvisioner(config.terraform_path)
    dispatcher = CommandDispatcher(cache, repo, provisioner)
    refresher = BackgroundRefresher(cache)

    state = NavigationState()
    machine = NavigationStateMachine(state, dispatcher)
    terminal = TerminalController(sys.stdin.fileno(), sys.stdout.fileno())
    callbacks = RuntimeLoopCallbacks(
        drain_results=dispatcher.drain_results,
        handle_message=machine.handle_message,
        handle_key=machine.handle_key,
    )

    logger.info("session started for %s", repo_path)
    try:
        refresher.start()
        machine.start()
        run_main_loop(state, terminal, sys.stdin.fileno(), callbacks, options)
    finally:
        refresher.stop()
        dispatcher.close()
        logger.info("session ended")


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and launch the UI; startup failures exit with status 1."""
    args = build_parser().parse_args(argv)
    data_dir = args.data_dir.expanduser()

    try:
        config = init_config(args.config.expanduser())
        configure_logging(config.log_path(data_dir), args.log_level)
    except ConfigurationError as exc:
        raise SystemExit(f"infradeck: {exc}") from exc

    repo_dir = data_dir / REPO_DIRNAME
    print("Updating repository..." if (repo_dir / ".git").exists() else "Cloning repository...")
    try:
        repo_path = ensure_repository(config.repo_url, config.default_branch, repo_dir)
    except RepositoryError as exc:
        logger.error("repository setup failed (%s): %s", exc.kind, exc)
        raise SystemExit(f"infradeck: {exc}") from exc
    print(f"Terraform repository is located at: {repo_path}")

    if not os.isatty(sys.stdin.fileno()):
        raise SystemExit("infradeck: stdin is not a terminal")

    options = RenderOptions(repo_path=repo_path, style=args.style, no_color=args.no_color)
    run_session(repo_path, config, options)
