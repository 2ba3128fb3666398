"""
Relevance scoring shared by every provider.

The default chain is: embeddings cosine similarity, falling back to keyword
overlap whenever embedding generation fails. Nothing in here raises.
"""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Sequence

import numpy as np

from .config import get_logger
from .models import RelevanceMethod, RelevanceScore
from .utils import extract_keywords

if TYPE_CHECKING:
    from .providers.interface import TextIntelligenceProvider

logger = get_logger("relevance")

SEMANTIC_CONFIDENCE = 0.8
KEYWORD_CONFIDENCE = 0.6


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when undefined."""
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def keyword_relevance_score(context: str, query: str) -> RelevanceScore:
    """Fraction of the query's keywords that appear in the context."""
    query_words = set(extract_keywords(query))
    context_words = set(extract_keywords(context))

    if not query_words:
        return RelevanceScore(
            score=0.0,
            confidence=KEYWORD_CONFIDENCE,
            method="keyword",
            reasoning="Query has no usable keywords",
        )

    matched = query_words & context_words
    return RelevanceScore(
        score=len(matched) / len(query_words),
        confidence=KEYWORD_CONFIDENCE,
        method="keyword",
        reasoning=f"Found {len(matched)} of {len(query_words)} query keywords in context",
    )


async def semantic_relevance_score(
    provider: "TextIntelligenceProvider",
    context: str,
    query: str,
    method: RelevanceMethod = "semantic",
) -> RelevanceScore:
    """
    Score relevance with the provider's embeddings.

    Both texts are embedded concurrently. Any failure (not initialized,
    remote error, bad vector) degrades to keyword overlap.

    Args:
        provider: Provider whose generate_embeddings() is used
        context: Passage being scored
        query: What the caller is looking for
        method: Method label reported on success

    Returns:
        RelevanceScore, never raises
    """
    try:
        results = await asyncio.gather(
            provider.generate_embeddings(context),
            provider.generate_embeddings(query),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        context_embed, query_embed = results
        if len(context_embed.embeddings) != len(query_embed.embeddings):
            raise ValueError(
                f"embedding lengths differ ({len(context_embed.embeddings)} "
                f"vs {len(query_embed.embeddings)})"
            )
        similarity = cosine_similarity(context_embed.embeddings, query_embed.embeddings)
        return RelevanceScore(
            score=min(1.0, max(0.0, similarity)),
            confidence=SEMANTIC_CONFIDENCE,
            method=method,
            reasoning=f"Semantic similarity using {context_embed.model}",
        )
    except Exception as e:
        logger.info("Embedding relevance unavailable, using keywords: %s", e)
        return keyword_relevance_score(context, query)
