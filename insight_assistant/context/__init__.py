"""Chat context: query classification and system prompts.

This module provides:
- Layered query classification (keywords, optional LLM, default)
- Strategy-aware system prompt building
"""
