# src/karpenter_ovhcloud/reporters/console_reporter.py
"""
Renders instance types, prices and node claims as tables in the console.
"""

import logging
from typing import List

from rich.console import Console
from rich.table import Table

from ..models.instance_type import InstanceType
from ..models.labels import (
    ANNOTATION_POOL_ID,
    LABEL_INSTANCE_TYPE,
    LABEL_TOPOLOGY_ZONE,
    RESOURCE_CPU,
    RESOURCE_EPHEMERAL_STORAGE,
    RESOURCE_GPU,
    RESOURCE_MEMORY,
)
from ..models.nodeclaim import NodeClaim

logger = logging.getLogger(__name__)


class ConsoleReporter:
    """
    Renders orchestrator data to the console using the 'rich' library.
    """

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def report_instance_types(self, instance_types: List[InstanceType]):
        if not instance_types:
            self.console.print("No instance types available.", style="yellow")
            return

        table = Table(title="OVHcloud Instance Types", header_style="bold magenta")
        table.add_column("Flavor", style="cyan")
        table.add_column("CPU", justify="right")
        table.add_column("Memory", justify="right")
        table.add_column("Disk", justify="right")
        table.add_column("GPU", justify="right")
        table.add_column("Cheapest Zone", style="dim")
        table.add_column("Price (EUR/h)", style="green", justify="right")

        sorted_types = sorted(instance_types, key=lambda it: it.name)
        for instance_type in sorted_types:
            offering = instance_type.cheapest_offering()
            table.add_row(
                instance_type.name,
                instance_type.capacity.get(RESOURCE_CPU, ""),
                instance_type.capacity.get(RESOURCE_MEMORY, ""),
                instance_type.capacity.get(RESOURCE_EPHEMERAL_STORAGE, ""),
                instance_type.capacity.get(RESOURCE_GPU, "-"),
                (offering.zone or "") if offering else "",
                f"{offering.price:.4f}" if offering else "n/a",
            )

        self.console.print(table)

    def report_price(self, flavor: str, region: str, price: float):
        self.console.print(f"[cyan]{flavor}[/cyan] in [magenta]{region}[/magenta]: [green]{price:.4f}[/green] EUR/hour")

    def report_node_claims(self, claims: List[NodeClaim]):
        if not claims:
            self.console.print("No managed node pools found.", style="yellow")
            return

        table = Table(title="Karpenter-managed Nodes", header_style="bold magenta")
        table.add_column("Node", style="cyan")
        table.add_column("Pool ID", style="dim")
        table.add_column("Flavor")
        table.add_column("Zone")
        table.add_column("Provider ID", style="blue")

        for claim in claims:
            table.add_row(
                claim.name,
                claim.annotations.get(ANNOTATION_POOL_ID, ""),
                claim.labels.get(LABEL_INSTANCE_TYPE, ""),
                claim.labels.get(LABEL_TOPOLOGY_ZONE, ""),
                claim.status.provider_id,
            )

        self.console.print(table)
