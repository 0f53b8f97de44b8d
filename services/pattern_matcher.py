"""
Fast-path recognition of canonical command shapes.

A handful of commands are common and unambiguous enough to map straight to
a tool call without asking the classifier. Anything else returns None.
"""

import re
from typing import Optional
import structlog

from models.command import ToolInvocation, ToolName
from models.product import canonicalize_category

logger = structlog.get_logger(__name__)

LIST_PRODUCTS_RE = re.compile(r"^(show|list|get)\s+(all\s+)?products?\s*$")
LIST_TOOLS_RE = re.compile(r"^(show|list|get)\s+(all\s+)?tools?\s*$")
CATEGORY_RE = re.compile(r"^(show|list|get)\s+.*products?\s+in\s+(\w+)\s+category$")


def match_pattern(normalized_command: str) -> Optional[ToolInvocation]:
    """
    Map a normalized command to a tool call if it has a canonical shape.

    Args:
        normalized_command: Trimmed, lowercased command

    Returns:
        ToolInvocation, or None to fall through to the classifier
    """
    if LIST_PRODUCTS_RE.match(normalized_command):
        logger.info("pattern_matched", pattern="list_products")
        return ToolInvocation(tool=ToolName.LIST_PRODUCTS.value)

    if LIST_TOOLS_RE.match(normalized_command):
        logger.info("pattern_matched", pattern="list_tools")
        return ToolInvocation(tool=ToolName.LIST_TOOLS.value)

    match = CATEGORY_RE.match(normalized_command)
    if match:
        category = canonicalize_category(match.group(2))
        logger.info("pattern_matched", pattern="category", category=category)
        return ToolInvocation(
            tool=ToolName.GET_PRODUCTS_BY_CATEGORY.value,
            parameters={"category": category}
        )

    return None


def is_list_products_command(normalized_command: str) -> bool:
    """Check for the bare "show/list/get [all] products" shape."""
    return LIST_PRODUCTS_RE.match(normalized_command) is not None
