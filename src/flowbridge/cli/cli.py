"""CLI entrypoint: Typer app definition and command registration"""

import typer

from flowbridge.cli.commands import check_cmd, convert_cmd, sections_cmd, tokens_cmd, trace_cmd


app = typer.Typer(name="flowbridge", no_args_is_help=True, help="Page markup to design-tool clipboard document converter")

app.command(name="sections")(sections_cmd)
app.command(name="tokens")(tokens_cmd)
app.command(name="convert")(convert_cmd)
app.command(name="check")(check_cmd)
app.command(name="trace")(trace_cmd)
