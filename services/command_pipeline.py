"""
Command pipeline.

Orchestrates one command end to end:
    cache lookup → intent → pattern matcher or classifier → dispatch and
    post-processing → cache store/invalidate

Each command is one coroutine with sequential awaits. The pipeline owns
the response cache; tests construct their own pipeline with fakes.
"""

from typing import Any, Optional
import structlog

from config import settings
from exceptions import AppError
from integrations.classifier_client import ClaudeCommandClassifier
from integrations.gcp_auth import GcloudTokenProvider
from integrations.mcp_client import MCPClient
from models.command import CommandIntent, ToolInvocation
from services.intent_service import SELF_RESOLVING_INTENTS, classify_intent, reconcile_intent
from services.pattern_matcher import match_pattern
from services.response_cache_service import ResponseCache
from services.result_processor import ResultProcessor
from services.tool_catalog_service import ToolCatalog
from utils.text_utils import normalize_command

logger = structlog.get_logger(__name__)

# The text alone names the target; a failed classifier call only loses the hint
HINT_OPTIONAL_INTENTS = frozenset({
    CommandIntent.SINGLE_DELETE,
    CommandIntent.SINGLE_UPDATE,
})


class CommandPipeline:
    """
    Resolve free-text commands into backend operations.

    Args:
        backend: MCP client
        classifier: Object with `async classify(command) -> ToolInvocation`
        cache: Response cache shared by every command
        catalog: Tool catalog, exposed for health reporting
    """

    def __init__(
        self,
        backend: MCPClient,
        classifier: ClaudeCommandClassifier,
        cache: ResponseCache,
        catalog: Optional[ToolCatalog] = None
    ):
        self.backend = backend
        self.classifier = classifier
        self.cache = cache
        self.catalog = catalog
        self.processor = ResultProcessor(backend, cache)

    async def handle(self, command: str) -> Any:
        """
        Run one command.

        Args:
            command: Free-text command (non-blank)

        Returns:
            Result payload

        Raises:
            AppError subclasses
        """
        normalized = normalize_command(command)

        cached = self.cache.get(normalized)
        if cached is not None:
            return cached

        intent = classify_intent(command)
        logger.info("command_received", command=command, intent=intent.value)

        invocation = match_pattern(normalized)
        if invocation is None and intent not in SELF_RESOLVING_INTENTS:
            invocation = await self._classify(command, intent)
            intent = reconcile_intent(intent, invocation)

        result = await self.processor.process(command, intent, invocation)
        logger.info(
            "command_completed",
            intent=intent.value,
            tool=invocation.tool if invocation else None
        )
        return result

    async def _classify(self, command: str, intent: CommandIntent) -> Optional[ToolInvocation]:
        try:
            return await self.classifier.classify(command)
        except AppError as e:
            if intent not in HINT_OPTIONAL_INTENTS:
                raise
            logger.warning("classifier_hint_unavailable", intent=intent.value, error=e.message)
            return None

    async def aclose(self) -> None:
        await self.backend.aclose()


def build_pipeline() -> CommandPipeline:
    """Wire the production pipeline from settings."""
    token_provider = GcloudTokenProvider() if settings.mcp_use_gcloud_auth else None
    backend = MCPClient(
        server_url=settings.mcp_server_url,
        timeout=settings.mcp_timeout_seconds,
        auth_token=settings.mcp_auth_token,
        token_provider=token_provider
    )
    catalog = ToolCatalog(backend, ttl_seconds=settings.tool_catalog_ttl_seconds)
    classifier = ClaudeCommandClassifier(
        catalog,
        api_key=settings.anthropic_api_key,
        model=settings.classifier_model,
        max_tokens=settings.classifier_max_tokens
    )
    cache = ResponseCache(ttl_seconds=settings.response_cache_ttl_seconds)
    return CommandPipeline(backend, classifier, cache, catalog=catalog)


# Singleton instance for convenience
_command_pipeline: Optional[CommandPipeline] = None


def get_command_pipeline() -> CommandPipeline:
    """Get or create the process-wide CommandPipeline."""
    global _command_pipeline
    if _command_pipeline is None:
        _command_pipeline = build_pipeline()
    return _command_pipeline


async def close_command_pipeline() -> None:
    """Close the process-wide CommandPipeline, if one was ever built."""
    global _command_pipeline
    if _command_pipeline is None:
        return
    await _command_pipeline.aclose()
    _command_pipeline = None
