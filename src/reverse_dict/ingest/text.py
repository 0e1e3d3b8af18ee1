"""
Helpers for turning raw definitions into embeddable phrases.
"""

from __future__ import annotations

import re

from ..storage import Feature

_REFERENCE_RE = re.compile(r"\[([^\]]+)\]")
_THINKING_RE = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)


def split_definition(definition: str) -> list[str]:
    """Split a definition into non-empty lines, unwrapping ``[references]``."""
    lines = (
        _REFERENCE_RE.sub(r"\1", line.strip()) for line in definition.split("\n")
    )
    return [line for line in lines if line]


def prune_thinking(text: str) -> str:
    """Drop ``<think>...</think>`` blocks from model output."""
    return _THINKING_RE.sub("", text).strip()


def build_features(
    definition: str, rephrased: list[str] | tuple[str, ...] = ()
) -> list[Feature]:
    """
    Derive the features to embed for a definition.

    A single-line definition that needed no cleanup is kept verbatim;
    anything split or rewritten is marked autogenerated.
    """
    lines = split_definition(definition)
    verbatim = len(lines) == 1 and lines[0] == definition.strip()
    features = [Feature(phrase=line, autogenerated=not verbatim) for line in lines]

    seen = {feature.phrase for feature in features}
    for sentence in rephrased:
        sentence = sentence.strip()
        if sentence and sentence not in seen:
            seen.add(sentence)
            features.append(Feature(phrase=sentence, autogenerated=True))
    return features
