"""CLI application — the ``namo`` command."""

from __future__ import annotations

from typing import Optional

import click


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--profile", "-p", default=None, metavar="<profile>", help="AWS profile")
@click.option(
    "--endpoint", "-e", default=None, metavar="<endpoint>", help="Local or alternate service endpoint"
)
@click.pass_context
def cli(ctx: click.Context, profile: Optional[str], endpoint: Optional[str]) -> None:
    """namo - interactive query shell."""
    from namo.cli.repl import run_repl

    ctx.exit(run_repl(profile=profile, endpoint=endpoint))
