"""Observability module for LLM and analysis tracing."""

from .tracing import init_tracing, trace_analysis_step, trace_llm_call

__all__ = ["init_tracing", "trace_analysis_step", "trace_llm_call"]
