"""
Command intent classification.

One ordered table of predicates decides what a command asks for. The
result is computed once per command and drives the rest of the pipeline,
so no other component re-tests raw text for "update", "count", etc.
"""

import re
from typing import Callable, Optional
import structlog

from models.command import CommandIntent, ToolInvocation, ToolName

logger = structlog.get_logger(__name__)

_DELETE_VERB = re.compile(r"^(delete|remove)\b")
_UPDATE_VERB = re.compile(r"^(update|set|change)\b")
_CREATE_VERB = re.compile(r"^(create|add)\b")
_BULK_WORD = re.compile(r"\b(all|every)\b")
_COUNT_WORD = re.compile(r"\bcount\b")


def _is_duplicate(text: str) -> bool:
    return "duplicate" in text


def _is_cleanup(text: str) -> bool:
    return _is_duplicate(text) and any(w in text for w in ("clean", "remove", "delete"))


def _is_count(text: str) -> bool:
    return "how many" in text or "number of" in text or _COUNT_WORD.search(text) is not None


def _is_grouping(text: str) -> bool:
    return ("group" in text and "by category" in text) or "grouped by category" in text


def _is_bulk_delete(text: str) -> bool:
    return _DELETE_VERB.search(text) is not None and _BULK_WORD.search(text) is not None


def _is_bulk_update(text: str) -> bool:
    return _UPDATE_VERB.search(text) is not None and _BULK_WORD.search(text) is not None


# Evaluated top to bottom; first match wins
INTENT_RULES: tuple[tuple[CommandIntent, Callable[[str], bool]], ...] = (
    (CommandIntent.DUPLICATE_CLEANUP, _is_cleanup),
    (CommandIntent.DUPLICATE_ANALYSIS, _is_duplicate),
    (CommandIntent.COUNT, _is_count),
    (CommandIntent.GROUP_BY_CATEGORY, _is_grouping),
    (CommandIntent.BULK_DELETE, _is_bulk_delete),
    (CommandIntent.BULK_UPDATE, _is_bulk_update),
    (CommandIntent.SINGLE_DELETE, lambda t: _DELETE_VERB.search(t) is not None),
    (CommandIntent.SINGLE_UPDATE, lambda t: _UPDATE_VERB.search(t) is not None),
    (CommandIntent.CREATE, lambda t: _CREATE_VERB.search(t) is not None),
)

# Intents the pipeline resolves from text alone; the classifier is not asked
SELF_RESOLVING_INTENTS = frozenset({
    CommandIntent.DUPLICATE_CLEANUP,
    CommandIntent.DUPLICATE_ANALYSIS,
    CommandIntent.BULK_DELETE,
    CommandIntent.BULK_UPDATE,
})

MUTATING_INTENTS = frozenset({
    CommandIntent.DUPLICATE_CLEANUP,
    CommandIntent.BULK_DELETE,
    CommandIntent.BULK_UPDATE,
    CommandIntent.SINGLE_DELETE,
    CommandIntent.SINGLE_UPDATE,
    CommandIntent.CREATE,
})

# Mutation tools a classifier may suggest for a command whose text reads as a plain listing
_HINT_INTENTS = {
    ToolName.UPDATE_PRODUCT.value: CommandIntent.SINGLE_UPDATE,
    ToolName.DELETE_PRODUCT.value: CommandIntent.SINGLE_DELETE,
    ToolName.UPDATE_PRODUCTS.value: CommandIntent.BULK_UPDATE,
    ToolName.DELETE_PRODUCTS.value: CommandIntent.BULK_DELETE,
    ToolName.CREATE_PRODUCT.value: CommandIntent.CREATE,
    ToolName.CREATE_MULTIPLE_PRODUCTS.value: CommandIntent.CREATE,
}


def classify_intent(command: str) -> CommandIntent:
    """
    Decide the intent of a command from its text.

    Args:
        command: Raw command text

    Returns:
        The first matching CommandIntent, LIST if none match
    """
    text = command.strip().lower()
    for intent, predicate in INTENT_RULES:
        if predicate(text):
            logger.debug("intent_classified", intent=intent.value)
            return intent
    return CommandIntent.LIST


def reconcile_intent(intent: CommandIntent, hint: Optional[ToolInvocation]) -> CommandIntent:
    """
    Upgrade a plain listing intent when the classifier suggests a mutation.

    The hint never downgrades or redirects an intent the text already
    determined; it only fills in when the text reads as a read.
    """
    if intent is not CommandIntent.LIST or hint is None:
        return intent

    upgraded = _HINT_INTENTS.get(hint.tool)
    if upgraded is None:
        return intent

    logger.info("intent_upgraded_from_hint", tool=hint.tool, intent=upgraded.value)
    return upgraded
