import logging
import os

import click
from rich.logging import RichHandler

from .constants import DEFAULT_CONFIG_FILE
from .core import ReleaseError, ReleaseOrchestrator
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("version")
@click.option(
    "-d",
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print every git action the release would take without changing the repository.",
)
@click.option(
    "-p",
    "--push",
    is_flag=True,
    default=False,
    help="Push the stable branch, the development branch and the tag after a successful release.",
)
@click.option(
    "-c",
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} in the repository if present.",
)
@click.option(
    "--repo",
    required=False,
    type=click.Path(file_okay=False),
    help="Path to the repository to release (default: current directory).",
)
@click.option("-v", "--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--report-file",
    type=click.Path(),
    help="Write a JSON report of the run (steps, checkpoints, rollback) to this path.",
)
def main(version, dry_run, push, config, repo, verbose, log_file, report_file):
    """Release VERSION: merge into the stable branch, bump version markers, tag, and merge back.

    Any failure after the first merge rolls the repository back to where it was.
    Only one release may run against a repository at a time.
    """
    logger = logging.getLogger("releaseflow")
    repo_path = os.path.abspath(repo or os.getcwd())

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(repo_path, DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
        release_config = config_loader.build_release_config(config_values)
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    report_file = _resolve_option(report_file, config_values, "report_file")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    orchestrator = ReleaseOrchestrator(
        target_version=version,
        repo_path=repo_path,
        config=release_config,
        dry_run=dry_run,
        push=push,
        report_file=report_file,
    )

    raise SystemExit(orchestrator.run())


if __name__ == "__main__":
    main()
