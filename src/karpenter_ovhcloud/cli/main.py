# src/karpenter_ovhcloud/cli/main.py
"""
This module is the main entry point for the karpenter-ovhcloud CLI.
"""

import logging

import typer

from ..core.config import config
from . import inspect

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


app = typer.Typer(
    name="karpenter-ovhcloud",
    help="Elastic node pool orchestration for OVHcloud Managed Kubernetes.",
    add_completion=False,
)


def version_callback(value: bool):
    if value:
        from .. import __version__

        typer.echo(f"karpenter-ovhcloud version: {__version__}")
        raise typer.Exit()


@app.command()
def version():
    """
    Show the version of karpenter-ovhcloud.
    """
    from .. import __version__

    typer.echo(f"karpenter-ovhcloud version: {__version__}")


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    """
    karpenter-ovhcloud CLI main entry point.
    """
    pass


app.add_typer(inspect.app, name="inspect")


if __name__ == "__main__":
    app()
