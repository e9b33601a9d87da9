"""
Opik Tracing Setup

Provides tracing for:
- LLM extraction calls (prompt, model reply, latency)
- Smart Upload analysis steps (which session, which step, success/fail)

Usage:
    from src.observability import init_tracing, trace_llm_call, trace_analysis_step

    init_tracing()  # Safe to call repeatedly

    with trace_llm_call("gemini/gemini-2.0-flash", prompt="...") as span:
        response = litellm.completion(...)
        span.update(output={"content": ...})

    with trace_analysis_step("split", session_id="...") as span:
        parts = split_by_page_ranges(...)
        span.update(output={"parts": len(parts)})
"""

import logging
import os
from contextlib import contextmanager
from typing import Any

import opik
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Global client reference
_client: opik.Opik | None = None


def init_tracing(project_name: str = "ensemble-library") -> opik.Opik | None:
    """
    Initialise Opik tracing once per process.

    Args:
        project_name: Name of the project in Opik dashboard

    Returns:
        Opik client instance, or None when OPIK_API_KEY is unset
    """
    global _client

    if _client is not None:
        return _client

    api_key = os.getenv("OPIK_API_KEY")
    if not api_key:
        logger.debug("OPIK_API_KEY not set, tracing disabled")
        return None

    _client = opik.Opik(project_name=project_name)
    logger.info(f"Opik tracing initialised for project: {project_name}")
    return _client


def get_client() -> opik.Opik | None:
    """Get the global Opik client."""
    return _client


@contextmanager
def trace_llm_call(
    model: str,
    prompt: str,
    metadata: dict[str, Any] | None = None,
):
    """
    Context manager for tracing LLM calls.

    Args:
        model: Model name (e.g., "gemini/gemini-2.0-flash")
        prompt: The prompt sent to the LLM
        metadata: Additional metadata to attach

    Yields:
        Trace span that can be updated with output
    """
    if _client is None:
        # Tracing disabled, yield a no-op object
        yield _NoOpSpan()
        return

    trace = _client.trace(
        name="llm_call",
        input={"prompt": prompt},
        metadata={"model": model, **(metadata or {})},
    )

    try:
        yield trace
    except Exception as e:
        trace.update(metadata={"error": str(e)})
        raise
    finally:
        trace.end()


@contextmanager
def trace_analysis_step(
    step: str,
    session_id: str,
    input_data: dict[str, Any] | None = None,
):
    """
    Context manager for tracing one step of upload analysis.

    Args:
        step: Step name (e.g., "extract", "split", "upload_parts")
        session_id: UploadSession being analysed
        input_data: Additional input parameters
    """
    if _client is None:
        yield _NoOpSpan()
        return

    trace = _client.trace(
        name=f"analysis_{step}",
        input={"session_id": session_id, **(input_data or {})},
        metadata={"step": step},
    )

    try:
        yield trace
    except Exception as e:
        trace.update(metadata={"error": str(e), "success": False})
        raise
    finally:
        trace.end()


class _NoOpSpan:
    """No-op span for when tracing is disabled."""

    def update(self, **kwargs):
        pass

    def end(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        pass
