"""CLI entrypoint: Typer app definition and command registration"""

import typer

from mdsite.cli.commands import build_cmd, check_cmd, index_cmd, plan_cmd


app = typer.Typer(name="mdsite", no_args_is_help=True, help="Incremental static site builder for Markdown document corpora")

app.command(name="build")(build_cmd)
app.command(name="plan")(plan_cmd)
app.command(name="check")(check_cmd)
app.command(name="index")(index_cmd)
