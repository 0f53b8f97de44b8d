"""
Unit tests for the Claude command classifier.

Run: pytest tests/unit/test_classifier_client.py -v
"""

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from exceptions import ClassifierFormatError, ExternalServiceError
from integrations.classifier_client import (
    ClaudeCommandClassifier,
    build_prompt,
    parse_tool_invocation,
)
from services.tool_catalog_service import ToolSchema


class FakeMessages:
    """Stands in for AsyncAnthropic.messages."""

    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


def _anthropic(messages: FakeMessages):
    return SimpleNamespace(messages=messages)


class TestParseToolInvocation:
    """Tests for parse_tool_invocation()"""

    def test_plain_json(self):
        invocation = parse_tool_invocation('{"tool": "list_products", "parameters": {}}')

        assert invocation.tool == "list_products"
        assert invocation.parameters == {}

    def test_markdown_fence(self):
        raw = 'Here you go:\n```json\n{"tool": "get_product_by_name", "parameters": {"name": "iPhone"}}\n```'

        invocation = parse_tool_invocation(raw)

        assert invocation.parameters == {"name": "iPhone"}

    def test_brace_scanning_ignores_braces_in_strings(self):
        raw = 'Sure! {"tool": "create_product", "parameters": {"name": "Lamp {XL}", "price": 45}} Done.'

        invocation = parse_tool_invocation(raw)

        assert invocation.tool == "create_product"
        assert invocation.parameters["name"] == "Lamp {XL}"

    def test_missing_parameters_default_to_empty(self):
        assert parse_tool_invocation('{"tool": "list_tools", "parameters": null}').parameters == {}

    def test_not_json(self):
        with pytest.raises(ClassifierFormatError) as exc_info:
            parse_tool_invocation("I cannot help with that")

        assert exc_info.value.code == "CLASSIFIER_FORMAT_ERROR"
        assert exc_info.value.status_code == 503

    def test_json_without_tool(self):
        with pytest.raises(ClassifierFormatError) as exc_info:
            parse_tool_invocation('{"action": "list"}')

        assert exc_info.value.message == "Classifier output is not a valid tool call"


class TestBuildPrompt:
    """Tests for build_prompt()"""

    def test_lists_tools_and_command(self):
        tools = {
            "delete_product": ToolSchema(
                name="delete_product",
                description="Delete a product",
                input_schema={"properties": {"id": {"type": "string"}}, "required": ["id"]},
                sample_payload={"id": "abc"},
            )
        }

        prompt = build_prompt("Delete HP Spectre", tools)

        assert "1. delete_product: Delete a product" in prompt
        assert '"id": {"type": "string"}' in prompt
        assert 'Example: {"id": "abc"}' in prompt
        assert prompt.endswith("User command: Delete HP Spectre\nJSON response:")

    def test_empty_catalog_note(self):
        assert "tool list unavailable" in build_prompt("x", {})


class TestClassify:
    """Tests for ClaudeCommandClassifier.classify()"""

    @pytest.mark.asyncio
    async def test_returns_invocation(self, catalog):
        # Arrange
        messages = FakeMessages('{"tool": "delete_product", "parameters": {"id": "HP Spectre"}}')
        classifier = ClaudeCommandClassifier(catalog, api_key=None, model="test-model", client=_anthropic(messages))

        # Act
        invocation = await classifier.classify("Delete HP Spectre")

        # Assert
        assert invocation.tool == "delete_product"
        request = messages.requests[0]
        assert request["model"] == "test-model"
        assert "delete_product" in request["messages"][0]["content"]
        assert "Delete HP Spectre" in request["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_catalog_outage_still_classifies(self, catalog, fake_backend):
        fake_backend.fail("list_tools", "unavailable")
        messages = FakeMessages('{"tool": "list_products", "parameters": {}}')
        classifier = ClaudeCommandClassifier(catalog, api_key=None, model="m", client=_anthropic(messages))

        invocation = await classifier.classify("everything")

        assert invocation.tool == "list_products"

    @pytest.mark.asyncio
    async def test_without_api_key(self, catalog):
        classifier = ClaudeCommandClassifier(catalog, api_key=None, model="m")

        with pytest.raises(ExternalServiceError) as exc_info:
            await classifier.classify("Find laptops")

        assert exc_info.value.details["service"] == "classifier"

    @pytest.mark.asyncio
    async def test_api_error(self, catalog):
        error = anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
        classifier = ClaudeCommandClassifier(
            catalog, api_key=None, model="m", client=_anthropic(FakeMessages(error=error))
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await classifier.classify("Find laptops")

        assert exc_info.value.code == "CLASSIFIER_ERROR"

    @pytest.mark.asyncio
    async def test_unparseable_output(self, catalog):
        classifier = ClaudeCommandClassifier(
            catalog, api_key=None, model="m", client=_anthropic(FakeMessages("no idea"))
        )

        with pytest.raises(ClassifierFormatError):
            await classifier.classify("Find laptops")
