"""
Default model loader for the on-device provider.

Builds Hugging Face ``transformers`` pipelines. Requires the ``local``
extra (``pip install textintel[local]``). Tests and alternative runtimes
pass their own loader to ``LocalProvider`` instead.
"""
from __future__ import annotations

import asyncio
from typing import Any

from transformers import pipeline

from ..config import get_logger

logger = get_logger("providers.loaders")


async def load_transformers_pipeline(task: str, model_id: str) -> Any:
    """
    Load a pipeline in a worker thread (first use downloads the weights).

    Args:
        task: Pipeline task name
        model_id: Hugging Face model identifier

    Returns:
        Callable pipeline object
    """
    logger.info("Loading %s model %s (first run may download weights)", task, model_id)
    return await asyncio.to_thread(pipeline, task, model=model_id)
