"""site_audit.ai: chat providers and the AI page/site analyzer."""
from site_audit.ai.analyzer import AIAnalyzer, parse_ai_response
from site_audit.ai.providers import AIProvider, OllamaProvider, OpenAIProvider, create_provider

__all__ = [
    "AIAnalyzer",
    "AIProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "create_provider",
    "parse_ai_response",
]
