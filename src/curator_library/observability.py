"""Logfire observability for the Curator Library server."""

import functools
import logging
import os
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import logfire
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class ObservabilityConfig(BaseModel):
    """Configuration for Logfire observability."""

    token: str | None = Field(default_factory=lambda: os.getenv("LOGFIRE_TOKEN") or None)
    service_name: str = "curator-library"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    enabled: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_ENABLED", "true").lower() == "true"
    )
    console_output: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_CONSOLE", "false").lower() == "true"
    )
    send_to_logfire: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_SEND", "false").lower() == "true"
    )


lending_transitions = logfire.metric_counter(
    "library.lending.transitions", description="Book availability transitions by event"
)

metadata_lookups = logfire.metric_counter(
    "library.metadata.lookups", description="Metadata enricher lookups by outcome"
)

_config: ObservabilityConfig | None = None


def record_lending_event(event_type: str) -> None:
    lending_transitions.add(1, {"event_type": event_type})


def record_metadata_lookup(outcome: str) -> None:
    metadata_lookups.add(1, {"outcome": outcome})


def initialize_observability(config: ObservabilityConfig | None = None) -> None:
    """Configure logfire once for the running process."""
    global _config  # noqa: PLW0603
    _config = config or ObservabilityConfig()

    if not _config.enabled:
        logger.debug("Observability disabled via configuration")
        return

    logfire.configure(
        token=_config.token,
        service_name=_config.service_name,
        environment=_config.environment,
        send_to_logfire=_config.send_to_logfire,
        console=None if _config.console_output else False,
    )
    logger.info(
        "Observability initialized (environment=%s, send=%s)",
        _config.environment,
        _config.send_to_logfire,
    )


def trace_tool(tool_name: str) -> Callable[[ToolHandler], ToolHandler]:
    """Wrap a tool handler in a logfire span recording its outcome."""

    def decorator(func: ToolHandler) -> ToolHandler:
        @functools.wraps(func)
        async def wrapper(arguments: dict[str, Any]) -> dict[str, Any]:
            with logfire.span(
                "tool.execution.{tool_name}",
                tool_name=tool_name,
                tool_category=_categorize_tool(tool_name),
            ) as span:
                start_time = datetime.now()
                _add_attributes(span, "input", arguments or {})

                result = await func(arguments)

                span.set_attribute("tool.success", not result.get("isError", False))
                span.set_attribute("tool.status", result.get("status", 200))
                if result.get("errorType"):
                    span.set_attribute("tool.error_type", result["errorType"])
                span.set_attribute(
                    "tool.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                )
                return result

        return wrapper

    return decorator


def _categorize_tool(tool_name: str) -> str:
    if "borrow" in tool_name or "return" in tool_name:
        return "lending"
    if "acquisition" in tool_name:
        return "ledger"
    if "curator" in tool_name or "notice" in tool_name:
        return "curator"
    if "metadata" in tool_name:
        return "enrichment"
    return "catalog"


def _add_attributes(span: Any, prefix: str, data: dict[str, Any]) -> None:
    # borrower contact details stay out of traces
    for key, value in data.items():
        if key in {"email", "phone", "delivery_address", "name", "requester"}:
            continue
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)
