"""
MCP server client (JSON-RPC over HTTP).

Dispatches ToolInvocations to the catalog backend. Every known tool and
the parameter shape it expects lives in TOOL_SPECS; unknown tools and
missing parameters are rejected before anything goes over the wire.
"""

import itertools
import json
from dataclasses import dataclass
from typing import Any, Optional
import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from exceptions import BackendError, InvalidToolParametersError, UnsupportedToolError
from integrations.gcp_auth import GcloudTokenProvider
from models.command import BackendErrorDetail, BackendResponse, ToolInvocation, ToolName
from models.product import Product, parse_products

logger = structlog.get_logger(__name__)

TOOLS_CALL = "tools/call"
TOOLS_LIST = "tools/list"


@dataclass(frozen=True)
class ToolSpec:
    """JSON-RPC method and argument shape of one backend tool."""
    method: str = TOOLS_CALL
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()

    @property
    def accepted(self) -> tuple[str, ...]:
        return self.required + self.optional


TOOL_SPECS: dict[str, ToolSpec] = {
    ToolName.LIST_PRODUCTS.value: ToolSpec(),
    ToolName.GET_PRODUCT.value: ToolSpec(required=("id",)),
    ToolName.GET_PRODUCTS_BY_CATEGORY.value: ToolSpec(required=("category",)),
    ToolName.GET_PRODUCTS_BY_SEGMENT.value: ToolSpec(required=("segment",)),
    ToolName.GET_PRODUCT_BY_NAME.value: ToolSpec(required=("name",)),
    ToolName.CREATE_PRODUCT.value: ToolSpec(
        required=("name", "price"),
        optional=("category", "segment")
    ),
    ToolName.CREATE_MULTIPLE_PRODUCTS.value: ToolSpec(required=("products",)),
    ToolName.UPDATE_PRODUCT.value: ToolSpec(
        required=("id",),
        optional=("name", "category", "segment", "price")
    ),
    ToolName.UPDATE_PRODUCTS.value: ToolSpec(required=("products",)),
    ToolName.DELETE_PRODUCT.value: ToolSpec(required=("id",)),
    ToolName.DELETE_PRODUCTS.value: ToolSpec(required=("ids",)),
    ToolName.LIST_TOOLS.value: ToolSpec(method=TOOLS_LIST),
}


def validate_invocation(invocation: ToolInvocation) -> ToolSpec:
    """
    Check a tool name and its parameters against TOOL_SPECS.

    Raises:
        UnsupportedToolError: Unknown tool
        InvalidToolParametersError: Required parameters missing
    """
    spec = TOOL_SPECS.get(invocation.tool)
    if spec is None:
        raise UnsupportedToolError(invocation.tool, sorted(TOOL_SPECS))

    missing = [
        key for key in spec.required
        if invocation.parameters.get(key) in (None, "", [])
    ]
    if missing:
        raise InvalidToolParametersError(invocation.tool, missing)

    return spec


def build_payload(invocation: ToolInvocation, spec: ToolSpec, rpc_id: int) -> dict:
    """Build the JSON-RPC request body for a validated invocation."""
    if spec.method == TOOLS_LIST:
        return {"jsonrpc": "2.0", "id": rpc_id, "method": TOOLS_LIST}

    arguments = {
        key: invocation.parameters[key]
        for key in spec.accepted
        if key in invocation.parameters
    }
    dropped = sorted(set(invocation.parameters) - set(arguments))
    if dropped:
        logger.debug("tool_parameters_dropped", tool=invocation.tool, dropped=dropped)

    return {
        "jsonrpc": "2.0",
        "id": rpc_id,
        "method": TOOLS_CALL,
        "params": {"name": invocation.tool, "arguments": arguments}
    }


def _unwrap_result(result: Any) -> tuple[Any, Optional[BackendErrorDetail]]:
    """
    Strip MCP wrappers from a tools/call result.

    Handles `{"content": [{"type": "text", "text": "<json>"}]}` (with
    `isError`) and a nested `{"result": ...}`.
    """
    if not isinstance(result, dict):
        return result, None

    content = result.get("content")
    if isinstance(content, list):
        texts = [
            item.get("text", "") for item in content
            if isinstance(item, dict) and item.get("type") == "text"
        ]
        text = "\n".join(texts)
        if result.get("isError"):
            return None, BackendErrorDetail(message=text or "Tool error")
        try:
            return json.loads(text), None
        except json.JSONDecodeError:
            return text, None

    if set(result) == {"result"}:
        return result["result"], None

    return result, None


def parse_rpc_response(body: Any) -> BackendResponse:
    """
    Turn a JSON-RPC response body into a BackendResponse.

    Raises:
        BackendError: Body is not a JSON-RPC object
    """
    if not isinstance(body, dict):
        raise BackendError("MCP server returned a non-object response", data=str(body)[:200])

    error = body.get("error")
    if error is not None:
        if isinstance(error, dict):
            detail = BackendErrorDetail.model_validate(error)
        else:
            detail = BackendErrorDetail(message=str(error))
        return BackendResponse(id=body.get("id"), error=detail)

    result, detail = _unwrap_result(body.get("result"))
    return BackendResponse(id=body.get("id"), result=result, error=detail)


def products_from_result(result: Any, tool: str) -> list[Product]:
    """
    Validate a list-shaped tool result into Products.

    Raises:
        BackendError: Result is not a list, or rows are not products
    """
    if not isinstance(result, list):
        raise BackendError(
            f"{tool} did not return a list",
            tool=tool,
            data=type(result).__name__
        )
    try:
        return parse_products(result)
    except PydanticValidationError as e:
        logger.error("catalog_validation_failed", tool=tool, error_count=e.error_count())
        raise BackendError(
            "Catalog contained invalid product records",
            tool=tool,
            data=e.errors(include_url=False, include_context=False)[:5]
        )


class MCPClient:
    """
    Async client for the catalog MCP server.

    One instance (and one httpx.AsyncClient) per process.
    """

    def __init__(
        self,
        server_url: str,
        timeout: float = 15.0,
        auth_token: Optional[str] = None,
        token_provider: Optional[GcloudTokenProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.server_url = server_url
        self._auth_token = auth_token
        self._token_provider = token_provider
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def _headers(self) -> dict[str, str]:
        token = self._auth_token
        if self._token_provider is not None:
            token = await self._token_provider.get_token() or token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def call(self, invocation: ToolInvocation) -> BackendResponse:
        """
        Dispatch one tool invocation.

        Args:
            invocation: Tool and parameters

        Returns:
            BackendResponse (an error envelope is returned, not raised)

        Raises:
            UnsupportedToolError: Unknown tool (nothing sent)
            InvalidToolParametersError: Missing parameters (nothing sent)
            BackendError: Transport failure or malformed response
        """
        spec = validate_invocation(invocation)
        payload = build_payload(invocation, spec, next(self._ids))

        logger.info("mcp_call", tool=invocation.tool, rpc_id=payload["id"])

        try:
            response = await self._http.post(
                self.server_url,
                json=payload,
                headers=await self._headers()
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            logger.error("mcp_call_failed", tool=invocation.tool, error=str(e), error_type=type(e).__name__)
            raise BackendError(f"MCP call failed: {e}", tool=invocation.tool)
        except ValueError as e:
            logger.error("mcp_response_not_json", tool=invocation.tool, error=str(e))
            raise BackendError("MCP server returned invalid JSON", tool=invocation.tool)

        result = parse_rpc_response(body)
        if not result.ok:
            logger.warning("mcp_error_envelope", tool=invocation.tool, error=result.error.describe())
        return result

    async def call_or_raise(self, invocation: ToolInvocation) -> Any:
        """Dispatch and return the result, raising BackendError on an error envelope."""
        response = await self.call(invocation)
        if not response.ok:
            raise BackendError(response.error.describe(), tool=invocation.tool, data=response.error.data)
        return response.result

    async def list_products(self) -> list[Product]:
        """
        Fetch the full catalog.

        Raises:
            BackendError: Error envelope or a result that is not a list
        """
        result = await self.call_or_raise(ToolInvocation(tool=ToolName.LIST_PRODUCTS.value))
        return products_from_result(result, ToolName.LIST_PRODUCTS.value)

    async def aclose(self) -> None:
        await self._http.aclose()
