"""
Cached catalog of the tools the MCP server exposes.

The classifier prompt lists every tool with its description and parameter
schema. Fetching that on every command is wasteful, so the catalog is kept
for a fixed time. When a refresh fails the stale copy is used; when there
has never been a copy the catalog is empty and the classifier works from
its built-in examples.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
import structlog

from exceptions import AppError
from models.command import ToolInvocation, ToolName

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 600


@dataclass
class ToolSchema:
    """Description of one backend tool, as advertised by tools/list."""
    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)
    sample_payload: Optional[dict[str, Any]] = None

    @classmethod
    def from_listing(cls, item: dict) -> "ToolSchema":
        return cls(
            name=item["name"],
            description=item.get("description") or "",
            input_schema=item.get("inputSchema") or {},
            sample_payload=item.get("samplePayload")
        )

    @property
    def properties(self) -> dict[str, Any]:
        return self.input_schema.get("properties") or {}

    @property
    def required(self) -> list[str]:
        return list(self.input_schema.get("required") or [])


class ToolCatalog:
    """
    TTL cache over the backend's tools/list.

    Args:
        backend: Object with `async call_or_raise(ToolInvocation)`
        ttl_seconds: How long a fetched catalog stays fresh
        clock: Injectable for tests
    """

    def __init__(
        self,
        backend,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = datetime.now
    ):
        self._backend = backend
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._tools: dict[str, ToolSchema] = {}
        self._fetched_at: Optional[datetime] = None

    @property
    def fetched_at(self) -> Optional[datetime]:
        return self._fetched_at

    def _is_fresh(self) -> bool:
        return (
            bool(self._tools)
            and self._fetched_at is not None
            and self._clock() - self._fetched_at < self.ttl
        )

    async def get_tools(self) -> dict[str, ToolSchema]:
        """
        Return the tool catalog, refreshing it when stale.

        Never raises for backend failures: a stale or empty catalog is
        returned instead.
        """
        if self._is_fresh():
            logger.debug("tool_catalog_cache_hit", tools=len(self._tools))
            return self._tools

        try:
            listing = await self._backend.call_or_raise(ToolInvocation(tool=ToolName.LIST_TOOLS.value))
            tools = self._parse_listing(listing)
        except AppError as e:
            if self._tools:
                logger.warning("tool_catalog_stale_fallback", error=e.message, tools=len(self._tools))
            else:
                logger.warning("tool_catalog_unavailable", error=e.message)
            return self._tools

        if tools:
            self._tools = tools
            self._fetched_at = self._clock()
            logger.info("tool_catalog_refreshed", tools=sorted(tools))
        else:
            logger.warning("tool_catalog_empty_listing")
        return self._tools

    @staticmethod
    def _parse_listing(listing: Any) -> dict[str, ToolSchema]:
        items = listing.get("tools", []) if isinstance(listing, dict) else []
        return {
            item["name"]: ToolSchema.from_listing(item)
            for item in items
            if isinstance(item, dict) and item.get("name")
        }

    def get_tool(self, name: str) -> Optional[ToolSchema]:
        return self._tools.get(name)

    def validate_parameters(self, invocation: ToolInvocation) -> bool:
        """
        Check an invocation against the advertised schema's required keys.

        Unknown tools fail; tools the catalog has not seen are not vouched for.
        """
        schema = self.get_tool(invocation.tool)
        if schema is None:
            return False
        return all(key in invocation.parameters for key in schema.required)
