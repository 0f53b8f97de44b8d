"""
Result post-processing and mutation resolution.

Given a command, its intent and the tool invocation chosen for it, this
service runs the backend calls and shapes the response:

- duplicate analysis and cleanup
- single update/delete by name or id
- bulk update/delete by derived criteria
- partial-name fallback for failed name lookups
- counting, grouping by category, and name filtering of listings

Every successful mutation invalidates the response cache; failed ones
leave it untouched.
"""

import re
from typing import Any, Optional
import structlog

from exceptions import (
    BackendError,
    CriteriaUndeterminedError,
    EntityNotFoundError,
    NoMatchError,
)
from integrations.mcp_client import MCPClient, products_from_result
from models.command import (
    BackendResponse,
    CommandIntent,
    FilterCriteria,
    ToolInvocation,
    ToolName,
    is_mutation_tool,
)
from models.product import Product
from services import entity_resolver
from services.duplicate_service import identify_duplicates, recommend_cleanup
from services.filter_criteria_service import (
    extract_filter_criteria,
    extract_target_price,
    filter_by_criteria,
    filter_by_name_keyword,
    find_name_keyword,
    PRICE_PATTERN,
    parse_price,
)
from services.response_cache_service import ResponseCache, is_cacheable_command

logger = structlog.get_logger(__name__)

UNCATEGORIZED = "Uncategorized"

_SINGLE_UPDATE_RE = re.compile(
    r"^(?:update|set|change)\s+(?:the\s+)?(?:price\s+of\s+)?(?:product\s+)?(?:named\s+)?"
    r"(?P<name>.+?)\s+(?:price\s+)?to\s+\$?(?P<price>" + PRICE_PATTERN + r")\s*$",
    re.IGNORECASE
)
_SINGLE_DELETE_RE = re.compile(
    r"^(?:delete|remove)\s+(?:the\s+)?(?:product\s+)?(?:named\s+|called\s+)?(?P<name>.+?)\s*$",
    re.IGNORECASE
)
_BULK_NAME_RE = re.compile(
    r"\b(?:all|every)\s+(?:products?\s+(?:named\s+|called\s+)?)?(?P<name>.+?)(?:\s+(?:to|price)\s+\$?\d.*)?$",
    re.IGNORECASE
)


def _clean_reference(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().strip("'\".!?").strip()
    return text or None


def _update_fields(product: Product, price: float) -> dict:
    """
    Full record for an update call, so the backend keeps existing fields.

    Only the price changes; the category goes back as the backend stored it.
    """
    fields = {
        "id": product.id,
        "name": product.name,
        "category": product.source_category,
        "segment": product.segment,
        "price": price,
    }
    return {k: v for k, v in fields.items() if v is not None}


class ResultProcessor:
    """
    Runs the backend side of a classified command.

    Args:
        backend: MCP client (any object with the same async methods)
        cache: Shared response cache
    """

    def __init__(self, backend: MCPClient, cache: ResponseCache):
        self.backend = backend
        self.cache = cache

    # ===================
    # ENTRY POINT
    # ===================

    async def process(
        self,
        command: str,
        intent: CommandIntent,
        invocation: Optional[ToolInvocation]
    ) -> Any:
        """
        Produce the final result for a command.

        Args:
            command: Original command text
            intent: Classified intent
            invocation: Pattern-matched or classifier-suggested tool call
                (None for intents resolved from text alone)

        Returns:
            Result payload for the response envelope

        Raises:
            AppError subclasses for resolution, backend and tool errors
        """
        if intent in (CommandIntent.DUPLICATE_ANALYSIS, CommandIntent.DUPLICATE_CLEANUP):
            return await self.handle_duplicates(intent)
        if intent is CommandIntent.SINGLE_UPDATE:
            return await self.handle_single_update(command, invocation)
        if intent is CommandIntent.SINGLE_DELETE:
            return await self.handle_single_delete(command, invocation)
        if intent is CommandIntent.BULK_UPDATE:
            return await self.handle_bulk_update(command)
        if intent is CommandIntent.BULK_DELETE:
            return await self.handle_bulk_delete(command)

        return await self._dispatch_and_shape(command, intent, invocation)

    # ===================
    # READS AND CREATES
    # ===================

    async def _dispatch_and_shape(
        self,
        command: str,
        intent: CommandIntent,
        invocation: Optional[ToolInvocation]
    ) -> Any:
        if invocation is None:
            invocation = ToolInvocation(tool=ToolName.LIST_PRODUCTS.value)
        elif is_mutation_tool(invocation.tool) and intent is not CommandIntent.CREATE:
            # A read command never runs a suggested mutation
            logger.warning("mutation_hint_ignored", intent=intent.value, tool=invocation.tool)
            invocation = ToolInvocation(tool=ToolName.LIST_PRODUCTS.value)

        response = await self.backend.call(invocation)

        if not response.ok:
            result = await self._partial_match_fallback(invocation, response)
        else:
            result = response.result
            if is_mutation_tool(invocation.tool):
                self._invalidate(f"{invocation.tool} succeeded")

        if intent is CommandIntent.COUNT and isinstance(result, list):
            return self.count_products(command, invocation, result)

        if intent is CommandIntent.GROUP_BY_CATEGORY and isinstance(result, list):
            return self.group_by_category(invocation, result)

        if (
            intent is CommandIntent.LIST
            and invocation.tool == ToolName.LIST_PRODUCTS.value
            and isinstance(result, list)
        ):
            keyword = find_name_keyword(command)
            if keyword:
                products = products_from_result(result, invocation.tool)
                filtered = filter_by_name_keyword(products, keyword)
                logger.info("name_filter_applied", keyword=keyword.pattern, matched=len(filtered))
                result = [p.to_response() for p in filtered]

        if intent is CommandIntent.LIST and is_cacheable_command(command):
            self.cache.set(command, result)

        return result

    async def _partial_match_fallback(self, invocation: ToolInvocation, response: BackendResponse) -> Any:
        """
        Recover a failed name lookup with a substring search.

        Only a get_product_by_name "not found" error is recovered; anything
        else, or an empty search, raises the original backend error.
        """
        error = response.error
        original = BackendError(error.describe(), tool=invocation.tool, data=error.data)

        name = invocation.parameters.get("name")
        if invocation.tool != ToolName.GET_PRODUCT_BY_NAME.value or not response.is_not_found or not name:
            raise original

        logger.info("partial_match_fallback", name=name)
        products = await self.backend.list_products()
        matches = entity_resolver.resolve_all(str(name), products)
        if not matches:
            raise original

        logger.info("partial_match_found", name=name, matched=len(matches))
        return [p.to_response() for p in matches]

    def count_products(self, command: str, invocation: ToolInvocation, rows: list) -> dict:
        """Replace a listing with {count, context, message}."""
        products = products_from_result(rows, invocation.tool)
        context = ""

        if invocation.tool == ToolName.LIST_PRODUCTS.value:
            keyword = find_name_keyword(command)
            if keyword:
                products = filter_by_name_keyword(products, keyword)
                context = f"{keyword.label} products"
        elif invocation.tool == ToolName.GET_PRODUCTS_BY_CATEGORY.value and invocation.parameters.get("category"):
            context = f"{invocation.parameters['category']} category"
        elif invocation.tool == ToolName.GET_PRODUCTS_BY_SEGMENT.value and invocation.parameters.get("segment"):
            context = f"{invocation.parameters['segment']} segment"

        logger.info("products_counted", count=len(products), context=context or "total")
        return {
            "count": len(products),
            "context": context or "total products",
            "message": f"Found {len(products)} {context or 'products'}",
        }

    def group_by_category(self, invocation: ToolInvocation, rows: list) -> dict:
        """Bucket a listing by canonical category, in first-seen order."""
        products = products_from_result(rows, invocation.tool)
        buckets: dict[str, list[Product]] = {}
        for product in products:
            buckets.setdefault(product.category or UNCATEGORIZED, []).append(product)

        return {
            "totalProducts": len(products),
            "totalCategories": len(buckets),
            "categories": [
                {
                    "category": category,
                    "count": len(members),
                    "products": [p.to_response() for p in members],
                }
                for category, members in buckets.items()
            ],
        }

    # ===================
    # DUPLICATES
    # ===================

    async def handle_duplicates(self, intent: CommandIntent) -> dict:
        """Analyze duplicates, and delete the extras for cleanup commands."""
        cleanup = intent is CommandIntent.DUPLICATE_CLEANUP
        products = await self.backend.list_products()
        duplicates = identify_duplicates(products)

        if not duplicates:
            result = {
                "type": "cleanup_result" if cleanup else "duplicate_analysis",
                "message": "No duplicates found to clean up." if cleanup
                else "No duplicate products found! All product names are unique.",
                "duplicateCount": 0,
                "totalProducts": len(products),
            }
            if cleanup:
                result["deletedCount"] = 0
            return result

        analysis = recommend_cleanup(duplicates)

        if not cleanup:
            return {
                "type": "duplicate_analysis",
                "message": f"Found {analysis.summary.duplicate_groups} duplicate product groups",
                **analysis.to_response(),
                "duplicates": {
                    name: [p.to_response() for p in group]
                    for name, group in duplicates.items()
                },
            }

        ids = analysis.ids_to_delete
        logger.info("duplicate_cleanup_dispatched", count=len(ids))
        await self.backend.call_or_raise(
            ToolInvocation(tool=ToolName.DELETE_PRODUCTS.value, parameters={"ids": ids})
        )
        self._invalidate(f"Duplicate cleanup: {len(ids)} products deleted")

        return {
            "type": "cleanup_result",
            "message": f"Successfully cleaned up {len(ids)} duplicate products",
            "deletedCount": len(ids),
            "duplicateGroups": analysis.summary.duplicate_groups,
            "deletedProducts": [p.to_response() for rec in analysis.recommendations for p in rec.delete],
            "keptProducts": [rec.keep.to_response() for rec in analysis.recommendations],
        }

    # ===================
    # SINGLE MUTATIONS
    # ===================

    async def handle_single_update(self, command: str, hint: Optional[ToolInvocation]) -> dict:
        """
        Update one product's price, resolving its name or id first.

        Name and price come from the text; the classifier hint fills gaps.
        """
        reference, price = None, None
        match = _SINGLE_UPDATE_RE.match(command.strip())
        if match:
            reference = _clean_reference(match.group("name"))
            price = parse_price(match.group("price"))

        if hint is not None:
            reference = reference or _clean_reference(
                hint.parameters.get("id") or hint.parameters.get("name")
            )
            if price is None and hint.parameters.get("price") is not None:
                try:
                    price = float(hint.parameters["price"])
                except (TypeError, ValueError):
                    logger.warning("hint_price_invalid", price=hint.parameters["price"])

        missing = [label for label, value in (("product name", reference), ("price", price)) if value is None]
        if missing:
            raise CriteriaUndeterminedError(
                "Could not extract price or product name from update command",
                missing=missing,
                command=command
            )

        products = await self.backend.list_products()
        product = entity_resolver.resolve(reference, products)
        if product is None:
            logger.warning("entity_not_found", reference=reference, operation="update")
            raise EntityNotFoundError(reference)

        logger.info(
            "entity_resolved",
            reference=reference,
            product_id=product.id,
            old_price=product.price,
            new_price=price
        )

        await self.backend.call_or_raise(
            ToolInvocation(tool=ToolName.UPDATE_PRODUCT.value, parameters=_update_fields(product, price))
        )
        self._invalidate(f"Product update: {product.name}")

        updated = product.model_copy(update={"price": price})
        return {
            "success": True,
            "message": f"Successfully updated '{product.name}' price to {price:g}",
            "productName": product.name,
            "oldPrice": product.price,
            "newPrice": price,
            "updatedProduct": updated.to_response(),
        }

    async def handle_single_delete(self, command: str, hint: Optional[ToolInvocation]) -> dict:
        """Delete one product by name or id."""
        reference = None
        match = _SINGLE_DELETE_RE.match(command.strip())
        if match:
            reference = _clean_reference(match.group("name"))
        if reference is None and hint is not None:
            reference = _clean_reference(hint.parameters.get("id") or hint.parameters.get("name"))

        if reference is None:
            raise CriteriaUndeterminedError(
                "Could not determine which product to delete",
                missing=["product name"],
                command=command
            )

        products = await self.backend.list_products()
        product = entity_resolver.resolve(reference, products)
        if product is None:
            logger.warning("entity_not_found", reference=reference, operation="delete")
            raise EntityNotFoundError(reference)

        logger.info("entity_resolved", reference=reference, product_id=product.id, operation="delete")

        await self.backend.call_or_raise(
            ToolInvocation(tool=ToolName.DELETE_PRODUCT.value, parameters={"id": product.id})
        )
        self._invalidate(f"Product delete: {product.name}")

        return {
            "success": True,
            "message": f"Successfully deleted '{product.name}'",
            "productName": product.name,
            "deletedProduct": product.to_response(),
        }

    # ===================
    # BULK MUTATIONS
    # ===================

    def _bulk_name(self, command: str) -> Optional[str]:
        match = _BULK_NAME_RE.search(command.strip())
        return _clean_reference(match.group("name")) if match else None

    async def _bulk_targets(self, command: str, criteria: FilterCriteria) -> tuple[list[Product], dict]:
        """
        Products a bulk command applies to, plus a description of the match.

        Raises:
            CriteriaUndeterminedError: Neither criteria nor an "all <name>" phrase
            NoMatchError: Criteria matched nothing
        """
        if not criteria.is_empty:
            products = await self.backend.list_products()
            return filter_by_criteria(products, criteria), criteria.describe()

        name = self._bulk_name(command)
        if name is None:
            raise CriteriaUndeterminedError(
                "Could not determine which products to change",
                missing=["filter criteria"],
                command=command
            )
        products = await self.backend.list_products()
        return entity_resolver.resolve_all(name, products), {"name": name}

    async def handle_bulk_update(self, command: str) -> dict:
        """Set one price on every product matching the command's criteria."""
        criteria = extract_filter_criteria(command)
        price = extract_target_price(command)

        if price is None:
            missing = ["price"]
            if criteria.is_empty and self._bulk_name(command) is None:
                missing.append("filter criteria")
            logger.warning("bulk_update_price_missing", command=command, missing=missing)
            raise CriteriaUndeterminedError(
                "Could not determine new price from command",
                missing=missing,
                command=command
            )

        targets, description = await self._bulk_targets(command, criteria)
        if not targets:
            logger.warning("bulk_update_no_match", criteria=description)
            raise NoMatchError(description)

        logger.info(
            "bulk_update_dispatched",
            criteria=description,
            count=len(targets),
            new_price=price
        )
        await self.backend.call_or_raise(
            ToolInvocation(
                tool=ToolName.UPDATE_PRODUCTS.value,
                parameters={"products": [_update_fields(p, price) for p in targets]}
            )
        )
        self._invalidate(f"Bulk update: {len(targets)} products updated")

        return {
            "success": True,
            "message": f"Successfully updated {len(targets)} products to price {price:g}",
            "updatedCount": len(targets),
            "newPrice": price,
            "criteria": description,
            "updatedProducts": [
                {"id": p.id, "name": p.name, "oldPrice": p.price, "newPrice": price}
                for p in targets
            ],
        }

    async def handle_bulk_delete(self, command: str) -> dict:
        """Delete every product matching the command's criteria."""
        criteria = extract_filter_criteria(command)
        targets, description = await self._bulk_targets(command, criteria)
        if not targets:
            logger.warning("bulk_delete_no_match", criteria=description)
            raise NoMatchError(description)

        ids = [p.id for p in targets]
        logger.info("bulk_delete_dispatched", criteria=description, count=len(ids))
        await self.backend.call_or_raise(
            ToolInvocation(tool=ToolName.DELETE_PRODUCTS.value, parameters={"ids": ids})
        )
        self._invalidate(f"Bulk delete: {len(ids)} products deleted")

        return {
            "success": True,
            "message": f"Successfully deleted {len(ids)} products",
            "deletedCount": len(ids),
            "criteria": description,
            "deletedProducts": [p.to_response() for p in targets],
        }

    # ===================
    # CACHE
    # ===================

    def _invalidate(self, reason: str) -> None:
        """Invalidate product responses; a failure here never fails the command."""
        try:
            self.cache.invalidate(reason)
        except Exception as e:
            logger.error("cache_invalidation_failed", reason=reason, error=str(e), error_type=type(e).__name__)
