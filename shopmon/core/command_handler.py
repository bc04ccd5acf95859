"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the
work to the request pipeline, the directive injector and usage telemetry.
Failures are reported through the UI and turned into a non-zero exit code.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from shopmon.core.context_directive import ContextDirectiveInjector
from shopmon.core.request_executor import RequestExecutor
from shopmon.domain.models.context import RequestContext
from shopmon.domain.models.errors import ConfigurationError, StorefrontError
from shopmon.domain.models.response import CacheOptions
from shopmon.infrastructure.cli.display import ConsoleDisplay
from shopmon.infrastructure.resilience.error_classifier import friendly_message
from shopmon.infrastructure.telemetry.usage_telemetry import UsageTelemetry

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def read_document(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Could not read GraphQL document {path}: {e}") from e


def parse_variables(variables_json: Optional[str]):
    if not variables_json:
        return None
    try:
        variables = json.loads(variables_json)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"--variables is not valid JSON: {e}") from e
    if not isinstance(variables, dict):
        raise ConfigurationError("--variables must be a JSON object")
    return variables


class CommandHandler:
    """Handles incoming commands and delegates to the appropriate services."""

    def __init__(
        self,
        ui: ConsoleDisplay,
        telemetry: UsageTelemetry,
        executor: Optional[RequestExecutor] = None,
        injector: Optional[ContextDirectiveInjector] = None,
    ):
        self.ui = ui
        self.telemetry = telemetry
        self.executor = executor
        self.injector = injector or ContextDirectiveInjector()

    async def handle_query(
        self,
        file_path: Path,
        variables_json: Optional[str] = None,
        context: Optional[RequestContext] = None,
        skip_cache: bool = False,
    ) -> int:
        """Runs a document against the configured store and prints the result."""
        if self.executor is None:
            self.ui.display_error("Store credentials are not configured (see SHOPIFY_STORE_DOMAIN).")
            return EXIT_FAILURE
        try:
            document = read_document(file_path)
            variables = parse_variables(variables_json)
            if context is not None:
                self.executor.set_context(context)
            async with self.executor:
                response = await self.executor.request(
                    document, variables, cache_options=CacheOptions(skip_cache=skip_cache)
                )
        except StorefrontError as e:
            logger.error(f"Query from {file_path} failed: {e}")
            self.ui.display_error(friendly_message(e) if not isinstance(e, ConfigurationError) else str(e))
            return EXIT_FAILURE
        except ValueError as e:
            self.ui.display_error(str(e))
            return EXIT_FAILURE

        self.ui.display_response(response)
        return EXIT_FAILURE if response.has_errors else EXIT_OK

    def handle_inject(self, file_path: Path, context: Optional[RequestContext]) -> int:
        """Prints the document with the context directive applied (no network)."""
        try:
            document = read_document(file_path)
            injected = self.injector.inject(document, context)
        except (ConfigurationError, ValueError) as e:
            self.ui.display_error(str(e))
            return EXIT_FAILURE
        if injected == document and context is not None and not context.is_empty():
            self.ui.display_warning("Document left unchanged: no operation header found or @inContext already present.")
        self.ui.display_document(injected, title=Path(file_path).name)
        return EXIT_OK

    def handle_usage(self, limit: int = 10) -> int:
        self.ui.display_usage_summary(self.telemetry.summary(), limit=limit)
        return EXIT_OK

    async def handle_clear_history(self) -> int:
        removed = len(self.telemetry.history)
        self.telemetry.clear_history()
        await self.telemetry.flush()
        self.ui.display_info(f"Cleared {removed} usage records.")
        return EXIT_OK
