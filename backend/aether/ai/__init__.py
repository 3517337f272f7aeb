"""AI package for reply, title and image-summary generation.

This package contains:
- Response generator for advisor replies and chat titles
- Vision summarizer with ordered model fallback
- Prompt templates

Import directly from submodules (e.g. ``from aether.ai.llm import response_generator``).
"""
