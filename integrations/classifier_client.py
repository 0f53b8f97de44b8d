"""
Claude-backed command classifier.

Turns free text the pattern matcher does not recognize into a coarse
{"tool", "parameters"} guess. The guess is advisory: the pipeline
re-derives names, prices and filters itself.
"""

import json
import re
from typing import Any, Optional
import structlog

import anthropic
from pydantic import ValidationError as PydanticValidationError

from exceptions import ClassifierFormatError, ExternalServiceError
from models.command import ToolInvocation
from services.tool_catalog_service import ToolCatalog, ToolSchema

logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


SYSTEM_PROMPT = """You convert product catalog commands into a single JSON tool call.
The handler resolves product names to ids, so pass names where an id is expected.

RULES:
- Query "show/find/get X": match by name first, then segment, then category.
- If the command names a specific category or segment, use the matching filter tool.
- Create: extract name, price, and optionally category and segment.
- Update: use list_products (the handler extracts names and prices itself).
- Delete: use delete_product with the product name as "id".
- Count: use list_products or the specific filter tool.
- "all"/"every" with delete means delete_products; with update it is a bulk update.

MATCHING:
- Electronics, Furniture, Office furniture are categories.
- Laptops, mobiles, HomeOffice are segments.
- iPhone, MacBook are product names.

EXAMPLES:
"Show Furniture" -> {"tool":"get_products_by_category","parameters":{"category":"Furniture"}}
"How many products are in Electronics category" -> {"tool":"get_products_by_category","parameters":{"category":"Electronics"}}
"Find Laptops" -> {"tool":"get_products_by_segment","parameters":{"segment":"Laptops"}}
"Get iPhone" -> {"tool":"get_product_by_name","parameters":{"name":"iPhone"}}
"List everything" -> {"tool":"list_products","parameters":{}}
"Create iPhone 16 at 899" -> {"tool":"create_product","parameters":{"name":"iPhone 16","price":899}}
"Create Desk Lamp 45 in Office furniture, HomeOffice segment" -> {"tool":"create_product","parameters":{"name":"Desk Lamp","price":45,"category":"Office furniture","segment":"HomeOffice"}}
"Update iPhone 17 to 799" -> {"tool":"list_products","parameters":{}}
"Delete HP Spectre" -> {"tool":"delete_product","parameters":{"id":"HP Spectre"}}
"Delete product named Dell Laptop" -> {"tool":"delete_product","parameters":{"id":"Dell Laptop"}}
"How many in Laptops segment" -> {"tool":"get_products_by_segment","parameters":{"segment":"Laptops"}}

IMPORTANT: Return ONLY valid JSON in the form {"tool":"tool_name","parameters":{...}}.
No markdown, no explanation."""


def _scan_json_object(text: str) -> Optional[str]:
    """
    Find the first balanced {...} block in text.

    Braces inside JSON strings are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def _candidates(raw: str):
    """Raw text, then fenced block, then brace-scanned block."""
    cleaned = raw.strip()
    yield cleaned
    fence = _FENCE_RE.search(cleaned)
    if fence:
        yield fence.group(1)
    scanned = _scan_json_object(cleaned)
    if scanned:
        yield scanned


def parse_tool_invocation(raw: str) -> ToolInvocation:
    """
    Parse classifier output into a ToolInvocation.

    Tries the text as-is, then a markdown-fenced block, then the first
    balanced brace block.

    Raises:
        ClassifierFormatError: No attempt produced a usable tool call
    """
    data: Any = None
    for candidate in _candidates(raw or ""):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            break
    else:
        logger.error("classifier_output_not_json", response_preview=(raw or "")[:200])
        raise ClassifierFormatError(
            "Classifier returned invalid JSON. Please try rephrasing your command.",
            raw_output=raw or ""
        )

    try:
        return ToolInvocation.model_validate(data)
    except PydanticValidationError:
        logger.error("classifier_output_not_tool_call", keys=sorted(data))
        raise ClassifierFormatError(
            "Classifier output is not a valid tool call",
            raw_output=raw
        )


def build_prompt(command: str, tools: dict[str, ToolSchema]) -> str:
    """Tool listing plus the user command."""
    lines = ["Available tools:"]
    if not tools:
        lines.append("(tool list unavailable; use the tools from the examples)")
    for index, schema in enumerate(tools.values(), start=1):
        lines.append(f"{index}. {schema.name}: {schema.description}")
        if schema.properties:
            lines.append(f"   Parameters: {json.dumps(schema.properties)}")
        if schema.sample_payload:
            lines.append(f"   Example: {json.dumps(schema.sample_payload)}")
    lines.append("")
    lines.append(f"User command: {command}")
    lines.append("JSON response:")
    return "\n".join(lines)


class ClaudeCommandClassifier:
    """
    Classify commands with Claude.

    Without an API key the classifier is unavailable and every call
    raises ExternalServiceError; fast-path commands still work.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        api_key: Optional[str],
        model: str,
        max_tokens: int = 512,
        client: Optional[anthropic.AsyncAnthropic] = None
    ):
        self.catalog = catalog
        self.model = model
        self.max_tokens = max_tokens
        if client is not None:
            self.client = client
        elif api_key:
            self.client = anthropic.AsyncAnthropic(api_key=api_key)
        else:
            self.client = None
            logger.warning("classifier_not_configured")

    async def classify(self, command: str) -> ToolInvocation:
        """
        Ask Claude for a tool call.

        Args:
            command: Raw command text

        Returns:
            ToolInvocation (advisory)

        Raises:
            ExternalServiceError: Classifier not configured or API failure
            ClassifierFormatError: Unparseable output
        """
        if self.client is None:
            raise ExternalServiceError(
                service="classifier",
                message="Classifier not available. Set ANTHROPIC_API_KEY."
            )

        tools = await self.catalog.get_tools()
        prompt = build_prompt(command, tools)

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}]
            )
        except anthropic.APIError as e:
            logger.error("classifier_api_error", error=str(e))
            raise ExternalServiceError(service="classifier", message=f"Classifier call failed: {e}")

        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )
        logger.debug("classifier_response_received", response_length=len(text))

        invocation = parse_tool_invocation(text)
        if tools and not self.catalog.validate_parameters(invocation):
            logger.warning(
                "classifier_hint_schema_mismatch",
                tool=invocation.tool,
                parameters=sorted(invocation.parameters)
            )

        logger.info("command_classified", tool=invocation.tool)
        return invocation
