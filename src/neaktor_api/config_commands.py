"""Configuration commands for the neaktor CLI."""

from cyclopts import App

from neaktor_api.config import SECRET_KEYS, SETTINGS, Config, get_config, validate_setting

config_app = App(name="config", help="Manage credentials and client settings")


def _scope(config: Config) -> str:
    return "global" if config.is_global else "local"


def _masked(key: str, value: object) -> str:
    if key in SECRET_KEYS and value:
        text = str(value)
        return "*" * 8 + text[-4:] if len(text) > 8 else "*" * 8
    return str(value)


@config_app.command(name="set")
def set_setting(key: str, value: str, global_: bool = False) -> None:
    """Store a setting.

    Args:
        key: One of the settings listed by ``neaktor config keys``
        value: New value; api_limit and page_size take positive integers
        global_: Store in ~/.neaktor instead of the current directory
    """
    normalized = validate_setting(key, value)
    config = get_config(use_global=global_)
    config.set(key, normalized)
    print(f"{key} = {_masked(key, normalized)} ({_scope(config)})")


@config_app.command(name="unset")
def unset_setting(key: str, global_: bool = False) -> None:
    """Remove a setting from one scope."""
    if key not in SETTINGS:
        raise ValueError(f"Unknown setting {key!r}")
    config = get_config(use_global=global_)
    config.unset(key)
    print(f"Removed {key} ({_scope(config)})")


@config_app.command(name="get")
def show_setting(key: str, global_: bool = False) -> None:
    """Show the effective value of a setting, secrets masked."""
    value = get_config(use_global=global_).get(key)
    print(f"{key} is not set" if value is None else f"{key} = {_masked(key, value)}")


@config_app.command(name="list")
def list_settings(global_: bool = False) -> None:
    """Show every known setting with its effective value."""
    config = get_config(use_global=global_)
    stored = config.list()

    print(f"Settings ({_scope(config)}):")
    for key in SETTINGS:
        value = stored.get(key)
        print(f"  {key} = {'-' if value is None else _masked(key, value)}")

    unknown = sorted(set(stored) - set(SETTINGS))
    if unknown:
        print(f"Ignored keys: {', '.join(unknown)}")


@config_app.command(name="keys")
def describe_settings() -> None:
    """Describe the settings the client reads."""
    width = max(len(key) for key in SETTINGS)
    for key, description in SETTINGS.items():
        print(f"{key.ljust(width)}  {description}")
