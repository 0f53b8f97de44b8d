"""
Shared test fixtures.

The MCP backend is faked at the HTTP layer: FakeBackend is an in-memory
catalog that answers JSON-RPC through httpx.MockTransport, so the real
MCPClient is exercised end to end.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import json
import pytest
import httpx
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from integrations.mcp_client import MCPClient
from models.command import ToolInvocation, ToolName, is_mutation_tool
from services.command_pipeline import CommandPipeline
from services.response_cache_service import ResponseCache
from services.tool_catalog_service import ToolCatalog

SAMPLE_TOOLS = [
    {
        "name": "list_products",
        "description": "List all products",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_product_by_name",
        "description": "Get a product by exact name",
        "inputSchema": {
            "type": "object",
            "properties": {"name": {"type": "string"}},
            "required": ["name"],
        },
    },
    {
        "name": "delete_product",
        "description": "Delete a product by id",
        "inputSchema": {
            "type": "object",
            "properties": {"id": {"type": "string"}},
            "required": ["id"],
        },
        "samplePayload": {"id": "product-id"},
    },
]


# ===================
# FAKE MCP SERVER
# ===================

class FakeBackend:
    """
    In-memory catalog speaking MCP JSON-RPC.

    Usage:
        fake = FakeBackend([ProductFactory.create(name="HP Spectre")])
        client = MCPClient("http://mcp.test/mcp", http_client=fake.http_client())
        ...
        assert fake.mutations == [("delete_product", {"id": ...})]
    """

    def __init__(self, products: Optional[list] = None, tools: Optional[list] = None):
        self.products = [dict(p) for p in products or []]
        self.tools = SAMPLE_TOOLS if tools is None else tools
        self.calls: list[tuple[str, dict]] = []
        self.errors: dict[str, dict] = {}

    # Test helpers

    def fail(self, tool: str, message: str, code: int = -32000) -> None:
        """Make every call to `tool` return a JSON-RPC error."""
        self.errors[tool] = {"code": code, "message": message}

    def calls_to(self, tool: str) -> list[dict]:
        return [args for name, args in self.calls if name == tool]

    @property
    def mutations(self) -> list[tuple[str, dict]]:
        return [(name, args) for name, args in self.calls if is_mutation_tool(name)]

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    # JSON-RPC

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        rpc_id = body.get("id")

        if body["method"] == "tools/list":
            self.calls.append((ToolName.LIST_TOOLS.value, {}))
            if ToolName.LIST_TOOLS.value in self.errors:
                return self._error(rpc_id, self.errors[ToolName.LIST_TOOLS.value])
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": rpc_id, "result": {"tools": self.tools}})

        name = body["params"]["name"]
        args = body["params"].get("arguments", {})
        self.calls.append((name, args))

        if name in self.errors:
            return self._error(rpc_id, self.errors[name])

        try:
            result = getattr(self, f"_{name}")(args)
        except LookupError as e:
            return self._error(rpc_id, {"code": 404, "message": str(e)})

        return httpx.Response(200, json={
            "jsonrpc": "2.0",
            "id": rpc_id,
            "result": {"content": [{"type": "text", "text": json.dumps(result)}]},
        })

    @staticmethod
    def _error(rpc_id, error: dict) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": rpc_id, "error": error})

    def _find(self, product_id: str) -> dict:
        for product in self.products:
            if product["id"] == product_id:
                return product
        raise LookupError(f"Product {product_id} not found")

    # Tools

    def _list_products(self, args):
        return self.products

    def _get_product(self, args):
        return self._find(args["id"])

    def _get_product_by_name(self, args):
        for product in self.products:
            if product["name"] == args["name"]:
                return product
        raise LookupError(f"Product with name {args['name']} not found")

    def _get_products_by_category(self, args):
        wanted = args["category"].lower()
        return [p for p in self.products if (p.get("category") or "").lower() == wanted]

    def _get_products_by_segment(self, args):
        wanted = args["segment"].lower()
        return [p for p in self.products if (p.get("segment") or "").lower() == wanted]

    def _create_product(self, args):
        product = {"id": str(uuid4()), **args}
        self.products.append(product)
        return product

    def _create_multiple_products(self, args):
        return [self._create_product(p) for p in args["products"]]

    def _update_product(self, args):
        product = self._find(args["id"])
        product.update(args)
        return product

    def _update_products(self, args):
        return [self._update_product(p) for p in args["products"]]

    def _delete_product(self, args):
        product = self._find(args["id"])
        self.products.remove(product)
        return {"deleted": args["id"]}

    def _delete_products(self, args):
        ids = set(args["ids"])
        self.products = [p for p in self.products if p["id"] not in ids]
        return {"deleted": sorted(ids)}


# ===================
# FAKE CLASSIFIER
# ===================

class FakeClassifier:
    """
    Classifier returning canned tool calls.

    Commands not in `responses` get list_products. Set `error` to make
    every call raise.
    """

    def __init__(self, responses: Optional[dict] = None):
        self.responses = responses or {}
        self.error: Optional[Exception] = None
        self.calls: list[str] = []

    async def classify(self, command: str) -> ToolInvocation:
        self.calls.append(command)
        if self.error is not None:
            raise self.error
        return self.responses.get(command, ToolInvocation(tool=ToolName.LIST_PRODUCTS.value))


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> ResponseCache:
    """Response cache with the default 30 s TTL on a fake clock."""
    return ResponseCache(ttl_seconds=30, clock=clock)


@pytest.fixture
def fake_backend() -> FakeBackend:
    """
    Empty in-memory catalog.

    Usage:
        def test_something(fake_backend, backend):
            fake_backend.products = [ProductFactory.create(name="iPhone 15")]
    """
    return FakeBackend()


@pytest.fixture
def backend(fake_backend) -> MCPClient:
    """Real MCPClient wired to the fake server."""
    return MCPClient("http://mcp.test/mcp", http_client=fake_backend.http_client())


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def catalog(backend, clock) -> ToolCatalog:
    return ToolCatalog(backend, ttl_seconds=600, clock=clock)


@pytest.fixture
def pipeline(backend, classifier, cache, catalog) -> CommandPipeline:
    return CommandPipeline(backend, classifier, cache, catalog=catalog)
