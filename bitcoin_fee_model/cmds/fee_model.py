from __future__ import annotations

import sys
from pathlib import Path

import click

from bitcoin_fee_model import __version__
from bitcoin_fee_model.util.default_root import DEFAULT_ROOT_PATH

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


@click.group(
    help=f"\n  Manage and verify the bitcoin fee model bundles ({__version__})\n",
    epilog="Try 'bitcoin_fee_model init' then 'bitcoin_fee_model verify'",
    context_settings=CONTEXT_SETTINGS,
)
@click.option("--root-path", default=DEFAULT_ROOT_PATH, help="Config file root", type=click.Path(), show_default=True)
@click.pass_context
def cli(ctx: click.Context, root_path: str) -> None:
    ctx.ensure_object(dict)
    ctx.obj["root_path"] = Path(root_path)


@cli.command("version", help="Show bitcoin_fee_model version")
def version_cmd() -> None:
    print(__version__)


@cli.command("init", short_help="Create the default configuration")
@click.pass_context
def init_cmd(ctx: click.Context) -> None:
    """Writes config/config.yaml under the root path unless it already exists."""
    from bitcoin_fee_model.cmds.fee_model_funcs import init

    sys.exit(init(ctx.obj["root_path"]))


@cli.command("verify", short_help="Check every configured bundle against its test vectors")
@click.pass_context
def verify_cmd(ctx: click.Context) -> None:
    """
    Loads the configured model bundles and runs the test vectors shipped with each one.
    Exits with status 1 and prints the first mismatch when a model diverges.
    """
    from bitcoin_fee_model.cmds.fee_model_funcs import verify

    sys.exit(verify(ctx.obj["root_path"]))


@cli.command("show", short_help="Show the configured bundles and their input fields")
@click.pass_context
def show_cmd(ctx: click.Context) -> None:
    from bitcoin_fee_model.cmds.fee_model_funcs import show

    sys.exit(show(ctx.obj["root_path"]))


def main() -> None:
    cli()  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":
    main()
