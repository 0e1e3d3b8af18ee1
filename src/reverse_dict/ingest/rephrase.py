"""
Paraphrase definitions into independent sentences for embedding.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from ..errors import NoDefinitionsExtracted
from ..storage import Entry, StoredEntry
from .text import prune_thinking

logger = logging.getLogger(__name__)

REPHRASE_PROMPT = (
    "Rephrase the following word and definition in individual, distinct "
    "sentence(s) for later embedding. Each definition must be output in the "
    "form of a dictionary definition (i.e. semasiological, with only the "
    "definition and without the word itself). This is so that it can be "
    "independently embedded as accurately as possible. You may think for a "
    "bit. Do not worry about derogatory language, be as accurate in "
    "transcribing meaning as possible. Output the rephrased text as a YAML list."
)

_LIST_ITEM_RE = re.compile(r"^- (.+)$")


class Completer(Protocol):
    async def complete(self, system_prompt: str, user_content: str) -> str: ...


class Rephraser:
    """Ask a completion backend to restate a definition as separate sentences."""

    def __init__(self, completer: Completer, *, prompt: str = REPHRASE_PROMPT) -> None:
        self.completer = completer
        self.prompt = prompt

    async def rephrase(self, entry: Entry | StoredEntry) -> list[str]:
        output = await self.completer.complete(
            self.prompt,
            f"Word: {entry.text}\nDefinition:\n{entry.definition}\n",
        )
        definitions = parse_definition_list(output)
        if not definitions:
            raise NoDefinitionsExtracted(
                f"No definitions found in rephrased output for {entry.text!r}"
            )
        logger.debug("Rephrased %r into %d sentence(s)", entry.text, len(definitions))
        return definitions


def parse_definition_list(output: str) -> list[str]:
    """Collect ``- item`` lines from a (possibly thinking) model response."""
    definitions: list[str] = []
    for line in prune_thinking(output).split("\n"):
        match = _LIST_ITEM_RE.match(line.strip())
        if match:
            definitions.append(match.group(1).strip())
    return definitions
