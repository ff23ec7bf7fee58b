"""Agents: YAML-configured pydantic-ai registry and the digest summarizer."""

from inbox_digest.agents.summarizer import SummarizationEngine

__all__ = ["SummarizationEngine"]
