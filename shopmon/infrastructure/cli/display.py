import json
import logging
from datetime import datetime
from typing import Any, Optional, Tuple

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from shopmon.domain.interfaces.observer import ApiObserver
from shopmon.domain.models.response import GraphQLResponse
from shopmon.domain.models.throttle import ThrottleStatus, UsageBucket, UsageSummary
from shopmon.infrastructure.resilience.error_classifier import friendly_message

logger = logging.getLogger(__name__)


def _format_timestamp(timestamp: float, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    return datetime.fromtimestamp(timestamp).strftime(fmt)


class ConsoleDisplay(ApiObserver):
    """Console output with rich; also surfaces rate-limit callbacks as warnings."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console (tests pass one that records output)."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        return self._console

    # --- ApiObserver ---

    def on_rate_limit_approaching(self, status: ThrottleStatus) -> None:
        self.display_warning(
            f"API rate limit approaching: {status.usage_percentage:.1f}% used "
            f"({status.currently_available:g}/{status.maximum_available:g} points left)"
        )

    def on_throttled(self, status: ThrottleStatus) -> None:
        self.display_warning("API rate limit exceeded: request throttled.")

    def on_error(self, error: object) -> None:
        logger.debug(f"Observer received error: {error}")
        self.console.print(Text(friendly_message(error), style="dim yellow"))

    # --- Messages ---

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    # --- Documents & responses ---

    def display_document(self, document: str, title: str = "GraphQL") -> None:
        # Printed verbatim (no markup, no wrapping) so the output can be piped
        self.console.rule(f"[bold]{title}[/bold]", align="left")
        self.console.print(document, markup=False, highlight=False, soft_wrap=True)

    def display_json(self, payload: Any, title: str) -> None:
        self.console.print(Panel(
            Syntax(json.dumps(payload, indent=2, ensure_ascii=False), "json", word_wrap=True),
            title=f"[bold]{title}[/bold]",
            title_align="left",
            box=ROUNDED,
        ))

    def display_response(self, response: GraphQLResponse) -> None:
        """Prints data, in-band errors and the cost line of a response."""
        if response.data is not None:
            self.display_json(response.data, "Data (cached)" if response.from_cache else "Data")
        if response.errors:
            self.display_json(response.errors, "[red]Errors[/red]")
            for error in response.errors:
                self.console.print(Text(friendly_message(error), style="yellow"))
        cost = response.cost
        if cost is not None:
            status = cost.throttle_status
            self.console.print(
                f"[dim]Cost:[/dim] requested {cost.requested_query_cost:g}, actual {cost.actual_query_cost:g} "
                f"[dim]|[/dim] bucket {status.currently_available:g}/{status.maximum_available:g} "
                f"(restores {status.restore_rate:g}/s)"
            )
        elif response.from_cache:
            self.console.print("[dim]Served from cache; no cost incurred.[/dim]")

    # --- Usage ---

    def _bucket_table(self, title: str, buckets: Tuple[UsageBucket, ...], fmt: str) -> Table:
        table = Table(title=title, box=SIMPLE)
        table.add_column("Window start")
        table.add_column("Requests", justify="right")
        table.add_column("Total cost", justify="right")
        for bucket in buckets:
            table.add_row(_format_timestamp(bucket.timestamp, fmt), str(bucket.count), f"{bucket.total_cost:g}")
        return table

    def display_usage_summary(self, summary: UsageSummary, limit: int = 10) -> None:
        """Renders the usage summary: status, aggregates and recent requests."""
        if summary.total_records == 0:
            self.display_info("No API usage recorded yet.")
            return

        overview = Table(box=ROUNDED, show_header=False)
        overview.add_column("Metric", style="bold")
        overview.add_column("Value", justify="right")
        status = summary.current_status
        if status is not None:
            overview.add_row(
                "Bucket",
                f"{status.currently_available:g}/{status.maximum_available:g} (restores {status.restore_rate:g}/s)",
            )
        overview.add_row("Usage", f"{summary.usage_percentage:.1f}%")
        overview.add_row("Records", str(summary.total_records))
        overview.add_row("Throttled requests", str(summary.throttled_requests))
        overview.add_row("Average cost", f"{summary.average_cost_per_request:.2f}")
        self.console.print(Panel(overview, title="[bold]API Usage[/bold]", title_align="left", box=ROUNDED))

        if summary.hourly_usage:
            self.console.print(self._bucket_table("Hourly", summary.hourly_usage, "%Y-%m-%d %H:00"))
        if summary.daily_usage:
            self.console.print(self._bucket_table("Daily", summary.daily_usage, "%Y-%m-%d"))

        recent = Table(title="Recent requests", box=SIMPLE)
        recent.add_column("Time")
        recent.add_column("Operation")
        recent.add_column("Cost", justify="right")
        recent.add_column("Status")
        for record in summary.recent_records[:limit]:
            outcome = "[red]throttled[/red]" if record.throttled else ("ok" if record.success else "[red]failed[/red]")
            recent.add_row(
                _format_timestamp(record.timestamp),
                record.operation or "-",
                f"{record.actual_query_cost:g}",
                outcome,
            )
        self.console.print(recent)
