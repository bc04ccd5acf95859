import pytest
from pathlib import Path
from unittest.mock import MagicMock

from shopmon.core.command_handler import EXIT_FAILURE, EXIT_OK, CommandHandler
from shopmon.core.request_executor import RequestExecutor
from shopmon.domain.models.context import RequestContext
from shopmon.domain.models.errors import NetworkError
from shopmon.domain.models.throttle import CostExtensions, ThrottleStatus
from shopmon.infrastructure.cache.response_cache import ResponseCache
from shopmon.infrastructure.cli.display import ConsoleDisplay
from shopmon.infrastructure.resilience.api_retry import RetryCoordinator
from shopmon.infrastructure.telemetry.usage_telemetry import UsageTelemetry


@pytest.fixture
def mock_ui():
    return MagicMock(spec=ConsoleDisplay)

@pytest.fixture
def telemetry(clock):
    return UsageTelemetry(clock=clock)

@pytest.fixture
def executor(fake_transport, telemetry, no_sleep):
    return RequestExecutor(
        transport=fake_transport,
        cache=ResponseCache(),
        telemetry=telemetry,
        retry_coordinator=RetryCoordinator(sleep=no_sleep),
    )

@pytest.fixture
def command_handler(mock_ui, telemetry, executor):
    """Fixture to create CommandHandler with a UI mock and a fake transport."""
    return CommandHandler(ui=mock_ui, telemetry=telemetry, executor=executor)


@pytest.mark.asyncio
async def test_handle_query(command_handler: CommandHandler, fake_transport, make_body, mock_ui, sample_query_file: Path):
    fake_transport.queue(make_body())
    exit_code = await command_handler.handle_query(sample_query_file, '{"first": 2}', RequestContext(country="CA"))

    assert exit_code == EXIT_OK
    call = fake_transport.calls[0]
    assert call["variables"] == {"first": 2}
    assert "@inContext(country: CA)" in call["query"]
    mock_ui.display_response.assert_called_once()
    assert fake_transport.closed


@pytest.mark.asyncio
async def test_handle_query_with_graphql_errors_fails(command_handler: CommandHandler, fake_transport, make_body, sample_query_file: Path):
    fake_transport.queue(make_body(errors=[{"message": "bad", "extensions": {"code": "GRAPHQL_VALIDATION_FAILED"}}]))
    assert await command_handler.handle_query(sample_query_file) == EXIT_FAILURE


@pytest.mark.asyncio
async def test_handle_query_network_failure(command_handler: CommandHandler, fake_transport, mock_ui, sample_query_file: Path):
    fake_transport.queue(NetworkError(), NetworkError(), NetworkError())
    assert await command_handler.handle_query(sample_query_file) == EXIT_FAILURE
    message = mock_ui.display_error.call_args.args[0]
    assert message.startswith("Network error")


@pytest.mark.asyncio
async def test_handle_query_rejects_bad_variables(command_handler: CommandHandler, fake_transport, mock_ui, sample_query_file: Path):
    assert await command_handler.handle_query(sample_query_file, "[1, 2]") == EXIT_FAILURE
    assert fake_transport.calls == []
    mock_ui.display_error.assert_called_once_with("--variables must be a JSON object")


@pytest.mark.asyncio
async def test_handle_query_without_credentials(mock_ui, telemetry, sample_query_file: Path):
    handler = CommandHandler(ui=mock_ui, telemetry=telemetry)
    assert await handler.handle_query(sample_query_file) == EXIT_FAILURE
    mock_ui.display_error.assert_called_once()


def test_handle_inject(command_handler: CommandHandler, mock_ui, sample_query_file: Path):
    assert command_handler.handle_inject(sample_query_file, RequestContext(language="FR")) == EXIT_OK
    document = mock_ui.display_document.call_args.args[0]
    assert document.startswith("query Products @inContext(language: FR) ($first: Int!)")


def test_handle_inject_invalid_context(command_handler: CommandHandler, mock_ui, sample_query_file: Path):
    assert command_handler.handle_inject(sample_query_file, RequestContext(country="not valid")) == EXIT_FAILURE
    mock_ui.display_error.assert_called_once()


def test_handle_usage(command_handler: CommandHandler, telemetry, mock_ui):
    telemetry.record(CostExtensions(5, 4, ThrottleStatus(1000, 996, 50)))
    assert command_handler.handle_usage(limit=5) == EXIT_OK
    summary = mock_ui.display_usage_summary.call_args.args[0]
    assert summary.total_records == 1


@pytest.mark.asyncio
async def test_handle_clear_history(command_handler: CommandHandler, telemetry, mock_ui):
    telemetry.record(CostExtensions(5, 4, ThrottleStatus(1000, 996, 50)))
    assert await command_handler.handle_clear_history() == EXIT_OK
    assert telemetry.history == ()
    mock_ui.display_info.assert_called_once_with("Cleared 1 usage records.")
