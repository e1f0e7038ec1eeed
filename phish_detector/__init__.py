"""LLM-driven phishing email detection service."""
