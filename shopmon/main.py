"""Main entry point for the shopmon application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any, Coroutine, Dict, Optional

import typer

from shopmon.core.command_handler import CommandHandler
from shopmon.core.context_directive import ContextDirectiveInjector
from shopmon.core.rate_limit_monitor import RateLimitMonitor
from shopmon.core.request_executor import RequestExecutor
from shopmon.domain.models.context import BuyerIdentity, RequestContext
from shopmon.domain.models.errors import ConfigurationError
from shopmon.infrastructure.cache.response_cache import ResponseCache
from shopmon.infrastructure.cli.display import ConsoleDisplay
from shopmon.infrastructure.config.settings import load_settings
from shopmon.infrastructure.monitoring.logger_setup import setup_logging
from shopmon.infrastructure.resilience.api_retry import RetryCoordinator
from shopmon.infrastructure.telemetry.history_store import JsonFileHistoryStore
from shopmon.infrastructure.telemetry.usage_telemetry import UsageTelemetry
from shopmon.infrastructure.transport.http_transport import HttpGraphQLTransport

logger = logging.getLogger(__name__)

# --- Dependency Injection Container (Manual) ---

def create_dependencies(require_credentials: bool = False) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root. The request pipeline is only built
    when store credentials are configured.
    """
    logger.info("Initializing application dependencies...")
    dependencies: Dict[str, Any] = {}
    ui = ConsoleDisplay()
    dependencies['ui'] = ui

    settings = load_settings(require_credentials=require_credentials)
    dependencies['settings'] = settings

    store = JsonFileHistoryStore(settings.history_file)
    telemetry = UsageTelemetry(max_history_length=settings.max_history_length, store=store)
    dependencies['history_store'] = store
    dependencies['telemetry'] = telemetry

    executor = None
    if settings.has_credentials:
        transport = HttpGraphQLTransport(
            store_domain=settings.store_domain,
            public_token=settings.public_token,
            private_token=settings.private_token,
            api_version=settings.api_version,
            timeout=settings.timeout,
            custom_headers=settings.custom_headers,
            buyer_ip=settings.buyer_ip,
        )
        executor = RequestExecutor(
            transport=transport,
            cache=ResponseCache(default_ttl=settings.cache_ttl),
            telemetry=telemetry,
            observer=ui,
            monitor=RateLimitMonitor(observer=ui, warning_percentage=settings.warning_percentage),
            retry_coordinator=RetryCoordinator(default_policy=settings.retry_policy()),
            enable_caching=settings.enable_caching,
            default_cache_ttl=settings.cache_ttl,
        )
    else:
        logger.debug("Store credentials not configured; request pipeline disabled.")
    dependencies['executor'] = executor

    dependencies['command_handler'] = CommandHandler(
        ui=ui,
        telemetry=telemetry,
        executor=executor,
        injector=ContextDirectiveInjector(),
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


def _get_handler(require_credentials: bool = False) -> CommandHandler:
    try:
        return create_dependencies(require_credentials)['command_handler']
    except ConfigurationError as e:
        logger.error(f"Fatal Error during application initialization: {e}")
        ConsoleDisplay().display_error(f"Configuration error: {e}")
        raise typer.Exit(code=1)


# --- Typer App Definition ---
app = typer.Typer(
    name="shopmon",
    help="shopmon: Storefront GraphQL client with context directives, caching, retries and usage telemetry.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, int]) -> int:
    """Runs an async command handler from a sync Typer command."""
    return asyncio.run(coro)

# --- CLI Options ---

DocumentArgument = Annotated[
    Path,
    typer.Argument(exists=True, file_okay=True, dir_okay=False, readable=True, help="Path to a GraphQL document.")
]
CountryOption = Annotated[Optional[str], typer.Option("--country", "-c", help="Country code, e.g. CA.")]
LanguageOption = Annotated[Optional[str], typer.Option("--language", "-l", help="Language code, e.g. FR.")]
EmailOption = Annotated[Optional[str], typer.Option("--email", help="Buyer email.")]
PhoneOption = Annotated[Optional[str], typer.Option("--phone", help="Buyer phone number.")]
CustomerTokenOption = Annotated[Optional[str], typer.Option("--customer-token", help="Customer access token.")]
BuyerCountryOption = Annotated[Optional[str], typer.Option("--buyer-country", help="Buyer country code.")]


def build_context(
    country: Optional[str] = None,
    language: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    customer_token: Optional[str] = None,
    buyer_country: Optional[str] = None,
) -> Optional[RequestContext]:
    """Builds a RequestContext from CLI options, or None when none were given."""
    identity = BuyerIdentity(
        customer_access_token=customer_token,
        email=email,
        phone=phone,
        country_code=buyer_country,
    )
    context = RequestContext(
        country=country,
        language=language,
        buyer_identity=None if identity.is_empty() else identity,
    )
    return None if context.is_empty() else context

# --- CLI Commands ---

@app.command()
def query(
    file: DocumentArgument,
    variables: Annotated[Optional[str], typer.Option("--variables", "-v", help="Variables as a JSON object.")] = None,
    country: CountryOption = None,
    language: LanguageOption = None,
    email: EmailOption = None,
    phone: PhoneOption = None,
    customer_token: CustomerTokenOption = None,
    buyer_country: BuyerCountryOption = None,
    skip_cache: Annotated[bool, typer.Option("--skip-cache", help="Bypass the response cache.")] = False,
):
    """Run a GraphQL document against the configured store."""
    handler = _get_handler(require_credentials=True)
    context = build_context(country, language, email, phone, customer_token, buyer_country)
    raise typer.Exit(code=run_async(handler.handle_query(file, variables, context, skip_cache)))


@app.command()
def inject(
    file: DocumentArgument,
    country: CountryOption = None,
    language: LanguageOption = None,
    email: EmailOption = None,
    phone: PhoneOption = None,
    customer_token: CustomerTokenOption = None,
    buyer_country: BuyerCountryOption = None,
):
    """Print a document with the @inContext directive applied (offline)."""
    handler = _get_handler()
    context = build_context(country, language, email, phone, customer_token, buyer_country)
    raise typer.Exit(code=handler.handle_inject(file, context))


@app.command()
def usage(
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Number of recent requests to list.")] = 10,
):
    """Show the persisted API usage summary."""
    raise typer.Exit(code=_get_handler().handle_usage(limit))


@app.command(name="clear-history")
def clear_history_command():
    """Clear the persisted API usage history."""
    raise typer.Exit(code=run_async(_get_handler().handle_clear_history()))


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", is_flag=True, help="Enable debug logging.")] = False,
    log_file: Annotated[Optional[Path], typer.Option("--log-file", help="Also write logs to this file.")] = None,
):
    """Storefront API client with usage telemetry."""
    setup_logging(log_level=logging.DEBUG if verbose else logging.WARNING, log_file=log_file)

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
