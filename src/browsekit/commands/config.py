"""Config commands -- view and modify global configuration.

Provides the ``browsekit config`` sub-command group for reading, updating,
and resetting the user's global configuration file
(:class:`~browsekit.models.GlobalConfig`): cache TTLs, page size and the
ranking constants.
"""

from __future__ import annotations

import typer

from browsekit.exit_codes import EXIT_INVALID_USAGE
from browsekit.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration (file plus environment overrides).

    Example::

        browsekit config show --json
    """
    from browsekit.config import get_config_dir, resolve_config

    config = resolve_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


def _coerce(key: str, current: object, value: str) -> object:
    """Convert *value* to the type of the field's current value."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    try:
        if isinstance(current, int):
            return int(value)
        if isinstance(current, float):
            return float(value)
    except ValueError:
        error(f"Expected a number for {key}, got: {value}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g. 'pagination.page_size')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the existing field and the result
    validated against :class:`~browsekit.models.GlobalConfig` before saving.

    Example::

        browsekit config set pagination.page_size 100
        browsekit config set cache.ttl_overrides.workitems 300
        browsekit config set ranker.capacities.code-branch 40
    """
    from pydantic import ValidationError

    from browsekit.config import load_global_config, save_global_config
    from browsekit.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.
    """
    from browsekit.config import save_global_config
    from browsekit.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
