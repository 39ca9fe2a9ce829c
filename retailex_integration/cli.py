"""Command line helpers for checking a Retail Express connection."""

import json
import logging
import sys

import click

from .config import RetailexConfig
from .errors import RetailexError
from .soap_client import RetailexSoapClient


@click.group()
@click.option("--env-file", default=None, help="Path to a .env file with RETAILEX_* settings.")
@click.option("--verbose", is_flag=True, help="Log SOAP traffic.")
@click.pass_context
def cli(ctx, env_file, verbose):
    """Retail Express connector tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file


def _load_config(ctx) -> RetailexConfig:
    try:
        return RetailexConfig.from_env(ctx.obj.get("env_file"))
    except RetailexError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.pass_context
def check(ctx):
    """Validate the connection settings and build a SOAP client.

    No request is sent, so a wrong password only shows on the first call.
    """
    config = _load_config(ctx)
    with RetailexSoapClient() as client:
        if not client.init(config):
            click.echo("✗ SOAP initialisation failed: check client id, username and password.", err=True)
            sys.exit(1)
    click.echo(f"✓ SOAP client configured for {config.service_url}")


@cli.command()
@click.argument("operation")
@click.option("--data", "data_json", default="{}", help="Call payload as JSON.")
@click.pass_context
def call(ctx, operation, data_json):
    """Issue a raw SOAP call and print the normalized result as JSON."""
    try:
        data = json.loads(data_json)
    except ValueError as e:
        raise click.BadParameter(f"--data is not valid JSON: {e}")

    config = _load_config(ctx)
    with RetailexSoapClient() as client:
        try:
            if not client.init(config):
                raise click.ClickException("SOAP initialisation failed: check client id, username and password.")
            result = client.call(operation, data)
        except RetailexError as e:
            raise click.ClickException(str(e))
    click.echo(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    cli()
