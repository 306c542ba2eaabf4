"""
CLI for the Relaying Services SDK.
"""

import asyncio
from pathlib import Path
from typing import Any, Optional

import typer
from dotenv import load_dotenv

from . import __version__
from .config import RelayingServicesConfig
from .configuration import DEFAULT_PREFERRED_RELAYS
from .errors import RelayingServicesError
from .log import configure_logging
from .relay_server import RelayServerClient
from .sdk import RelayingServices

app = typer.Typer(
    name="relaying-services",
    help="Smart wallet deployment and relayed transactions",
    add_completion=False,
)


def _config_option() -> Any:
    return typer.Option(
        None,
        "--config",
        "-c",
        help="Path to .env configuration file",
    )


def main() -> None:
    """Entry point."""
    load_dotenv()
    app()


def _load_config(config_path: Optional[Path]) -> RelayingServicesConfig:
    config = RelayingServicesConfig.from_env(config_path)
    configure_logging(config.settings.log_level, json_logs=config.settings.json_logs)
    return config


async def _open_services(config: RelayingServicesConfig) -> RelayingServices:
    """Initialized SDK without a relay provider (read-only and owner operations)."""
    services = RelayingServices(config)
    await services.initialize()
    return services


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except (RelayingServicesError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def generate(
    index: int = typer.Argument(..., help="Smart wallet index"),
    config_path: Optional[Path] = _config_option(),
) -> None:
    """
    Compute the smart wallet address for an index and report whether it is deployed.
    """
    config = _load_config(config_path)

    async def _generate() -> None:
        services = await _open_services(config)
        wallet = await services.generate_smart_wallet(index)
        deployed = await services.is_smart_wallet_deployed(wallet.address)

        typer.echo(f"Owner:    {services.get_account_address()}")
        typer.echo(f"Index:    {wallet.index}")
        typer.echo(f"Address:  {wallet.address}")
        typer.echo(f"Deployed: {'yes' if deployed else 'no'}")

    _run(_generate())


@app.command()
def is_deployed(
    address: str = typer.Argument(..., help="Smart wallet address"),
    config_path: Optional[Path] = _config_option(),
) -> None:
    """
    Check whether a smart wallet has been deployed.
    """
    config = _load_config(config_path)

    async def _check() -> None:
        services = await _open_services(config)
        deployed = await services.is_smart_wallet_deployed(address)
        typer.echo(f"{address}: {'deployed' if deployed else 'not deployed'}")

    _run(_check())


@app.command()
def allowed_tokens(
    config_path: Optional[Path] = _config_option(),
) -> None:
    """
    List the tokens accepted by the verifiers.
    """
    config = _load_config(config_path)

    async def _list() -> None:
        services = await _open_services(config)
        tokens = await services.get_allowed_tokens()

        if not tokens:
            typer.echo("No allowed tokens")
            return

        typer.echo(f"Allowed tokens ({len(tokens)}):")
        for token in tokens:
            typer.echo(f"  {token}")

    _run(_list())


@app.command()
def is_allowed(
    token: str = typer.Argument(..., help="ERC20 token address"),
    config_path: Optional[Path] = _config_option(),
) -> None:
    """
    Check whether both verifiers accept a token.
    """
    config = _load_config(config_path)

    async def _check() -> None:
        services = await _open_services(config)
        allowed = await services.is_allowed_token(token)
        typer.echo(f"{token}: {'allowed' if allowed else 'not allowed'}")

    _run(_check())


@app.command()
def allow_token(
    token: str = typer.Argument(..., help="ERC20 token address"),
    config_path: Optional[Path] = _config_option(),
) -> None:
    """
    Accept a token on the deploy and relay verifiers (verifier owner only).
    """
    config = _load_config(config_path)

    async def _allow() -> None:
        services = await _open_services(config)
        typer.echo(f"Allowing token {token} from {services.get_account_address()}...")
        await services.allow_token(token)
        typer.echo("Token allowed on deploy and relay verifiers")

    _run(_allow())


@app.command()
def relay_info(
    url: Optional[str] = typer.Argument(None, help="Relay server URL (defaults to the first preferred relay)"),
    config_path: Optional[Path] = _config_option(),
) -> None:
    """
    Show the addresses advertised by a relay server.
    """
    config = _load_config(config_path)
    relay_url = url or (config.settings.preferred_relays or DEFAULT_PREFERRED_RELAYS)[0]

    async def _info() -> None:
        client = RelayServerClient(relay_url, timeout=config.settings.relay_server_timeout)
        info = await client.get_address_info()

        typer.echo(f"Relay:    {relay_url}")
        typer.echo(f"Worker:   {info.relay_worker_address}")
        typer.echo(f"Manager:  {info.relay_manager_address}")
        typer.echo(f"Hub:      {info.relay_hub_address}")
        typer.echo(f"Ready:    {'yes' if info.ready else 'no'}")
        if info.version:
            typer.echo(f"Version:  {info.version}")

    _run(_info())


@app.command()
def version() -> None:
    """
    Show version information.
    """
    typer.echo(f"relaying-services v{__version__}")


if __name__ == "__main__":
    main()
