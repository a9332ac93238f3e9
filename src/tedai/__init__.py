"""TedAI: a small web chat assistant backed by an LLM with web search."""

__version__ = "0.1.0"
