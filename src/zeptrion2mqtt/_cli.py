"""Typer command line for the bridge.

:func:`build_cli` wraps an :class:`~zeptrion2mqtt._app.App` in a
single-command Typer app with ``--version``, ``--log-level``,
``--log-format`` and ``--env-file``.  :func:`main` is the console
script entry point.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from typing import TYPE_CHECKING, Annotated, get_args

import typer
from pydantic import ValidationError

from zeptrion2mqtt._settings import LoggingSettings

if TYPE_CHECKING:
    from zeptrion2mqtt._app import App
    from zeptrion2mqtt._settings import Settings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 3

_VALID_LOG_LEVELS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["level"].annotation,
)
_VALID_LOG_FORMATS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["format"].annotation,
)


def build_cli(app: App) -> typer.Typer:
    """Construct the Typer CLI for *app*.

    When invoked the command loads settings from the environment and
    the ``--env-file``, applies the logging overrides, and runs
    :meth:`App._run_async` until shutdown.
    """
    cli = typer.Typer(help=f"{app.name} v{app.version} — {app.description}")

    @cli.callback(invoke_without_command=True)
    def main(
        version_flag: Annotated[
            bool | None,
            typer.Option("--version", is_eager=True, help="Show version and exit."),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help="Override log level."),
        ] = None,
        log_format: Annotated[
            str | None,
            typer.Option("--log-format", help="Override log format (json|text)."),
        ] = None,
        env_file: Annotated[
            str,
            typer.Option("--env-file", help="Path to .env file."),
        ] = ".env",
    ) -> None:
        if version_flag:
            typer.echo(f"{app.name} v{app.version}")
            raise typer.Exit()

        if log_level is not None and log_level.upper() not in _VALID_LOG_LEVELS:
            raise typer.BadParameter(
                f"Invalid log level '{log_level}'. "
                f"Choose from: {', '.join(_VALID_LOG_LEVELS)}",
                param_hint="'--log-level'",
            )

        if log_format is not None and log_format.lower() not in _VALID_LOG_FORMATS:
            raise typer.BadParameter(
                f"Invalid log format '{log_format}'. "
                f"Choose from: {', '.join(_VALID_LOG_FORMATS)}",
                param_hint="'--log-format'",
            )

        try:
            settings: Settings = app.settings_class(_env_file=env_file)  # type: ignore[call-arg]
        except ValidationError as exc:
            logger.error("Configuration error: %s", exc)
            raise SystemExit(EXIT_CONFIG_ERROR) from exc

        overrides: dict[str, str] = {}
        if log_level is not None:
            overrides["level"] = log_level.upper()
        if log_format is not None:
            overrides["format"] = log_format.lower()
        if overrides:
            settings.logging = settings.logging.model_copy(update=overrides)

        try:
            with contextlib.suppress(KeyboardInterrupt):
                asyncio.run(app._run_async(settings=settings))  # noqa: SLF001
        except SystemExit:
            raise
        except Exception as exc:
            logger.error("Runtime error: %s", exc)
            sys.exit(EXIT_RUNTIME_ERROR)

    return cli


def main() -> None:
    """Console script entry point."""
    from zeptrion2mqtt import App, __version__  # noqa: PLC0415

    App(name="zeptrion2mqtt", version=__version__).cli()
