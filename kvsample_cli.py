"""
kvsample command line entry point.

Reads configuration from the environment (and an optional .env / settings file),
runs the Key Vault workflow once, and exits with its status.
"""
from pathlib import Path

import click
from loguru import logger as log

from kvazure.workflow import VaultWorkflow
from kvcontext.config import Settings, WorkflowConfig
from kvcontext.envloader import EnvLoader
from kvcontext.logger import Logger
from kvutil.error_handling import ConfigurationError

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


@click.command(name="kvsample")
@click.option("--env-file", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Optional .env file read before the process environment.")
@click.option("--settings", "settings_file", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Optional TOML settings file (default: ./kvsample_settings.toml).")
@click.option("--location", default=None, help="Azure region for the resource group and vault.")
@click.option("--settle-delay-ms", type=click.IntRange(min=0), default=None,
              help="Wait after vault creation before data-plane calls (default 5000).")
@click.option("--log-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Directory for the run's log file.")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None,
              help="Log level (default INFO, or [logging] level in the settings file).")
@click.pass_context
def main(ctx, env_file, settings_file, location, settle_delay_ms, log_dir, log_level):
    """
    Provision a resource group and Key Vault, use keys and secrets, grant access, then tear it all down.
    """
    try:
        settings = Settings.load(settings_file)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        ctx.exit(EXIT_CONFIG)

    logging_cfg = settings["logging"]
    try:
        Logger.init_logger(
            log_dir=Path(log_dir or logging_cfg["dir"]),
            label="kvsample",
            level=str(log_level or logging_cfg["level"]).upper(),
        )
    except ValueError as e:
        click.echo(f"Configuration error: [Logger] {e}", err=True)
        ctx.exit(EXIT_CONFIG)

    try:
        env = EnvLoader.load_env(env_file)
        config = WorkflowConfig.from_env(env, settings).with_overrides(
            location=location,
            settle_delay_ms=settle_delay_ms,
        )
    except ConfigurationError as e:
        log.error(f"[kvsample] {e}")
        click.echo(f"Configuration error: {e}", err=True)
        ctx.exit(EXIT_CONFIG)

    log.info(f"[kvsample] Starting workflow with {config!r}")

    try:
        result = VaultWorkflow(config).run()
    except Exception as e:
        click.echo(f"Workflow failed: {type(e).__name__}: {e}", err=True)
        click.echo(f"See {Logger.log_path()} for the full log.", err=True)
        ctx.exit(EXIT_FAILED)

    if result.cleanup_errors:
        for error in result.cleanup_errors:
            click.echo(f"Cleanup warning: {error}", err=True)

    click.echo(
        f"Workflow succeeded: vault {result.vault_name} in {result.resource_group} "
        f"({result.key_count} key(s), {result.secret_count} secret(s), "
        f"{result.access_policy_count} access policy entr(y/ies))"
    )
    ctx.exit(EXIT_OK)


if __name__ == "__main__":
    main()
