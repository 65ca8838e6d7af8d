# src/karpenter_ovhcloud/cli/inspect.py
"""
Implements the `inspect` commands: read-only views of what the orchestrator
sees through the OVH API and the pricing catalog.
"""

import asyncio
import logging
import traceback
from typing import Optional

import typer
from typing_extensions import Annotated

from ..core.config import config
from ..core.factory import build_orchestrator, get_metrics_sink, get_ovh_client, get_pricing_client
from ..core.node_class import StaticNodeClassResolver
from ..core.orchestrator import PoolOrchestrator
from ..reporters.console_reporter import ConsoleReporter

logger = logging.getLogger(__name__)

app = typer.Typer(help="Inspect instance types, prices and managed pools.", add_completion=False)


def _run(coro, what: str):
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        logger.error("Failed to %s: %s", what, e)
        logger.debug("%s", traceback.format_exc())
        raise typer.Exit(code=1)


@app.command("instance-types")
def instance_types(
    no_pricing: Annotated[
        bool, typer.Option("--no-pricing", help="Use estimated prices instead of the public catalog.")
    ] = False,
):
    """
    List the instance types built from the OVH flavors of the cluster's region.
    """

    async def _instance_types():
        orchestrator = await build_orchestrator(StaticNodeClassResolver(), with_pricing=not no_pricing)
        return orchestrator.get_instance_types()

    result = _run(_instance_types(), "build instance types")
    ConsoleReporter().report_instance_types(result)


@app.command("price")
def price(
    flavor: Annotated[str, typer.Argument(help="Flavor name, e.g. 'b3-8'.")],
    region: Annotated[Optional[str], typer.Option("--region", help="OVHcloud region, e.g. 'GRA7'.")] = None,
):
    """
    Look up the hourly price of a flavor.
    """
    region = region or config.OVH_REGION
    if not region:
        logger.error("No region given. Use --region or set OVH_REGION.")
        raise typer.Exit(code=1)

    result = _run(get_pricing_client().get_flavor_price(flavor, region), "look up price")
    ConsoleReporter().report_price(flavor, region, result)


@app.command("pools")
def pools():
    """
    List the nodes of every Karpenter-managed node pool.
    """

    async def _pools():
        ovh_client = get_ovh_client()
        await ovh_client.ensure_region()
        orchestrator = PoolOrchestrator(ovh_client, StaticNodeClassResolver(), metrics=get_metrics_sink())
        return await orchestrator.list()

    claims = _run(_pools(), "list managed pools")
    ConsoleReporter().report_node_claims(claims)
