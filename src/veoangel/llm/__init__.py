"""
LLM module - language model provider abstraction.

Providers:
- anthropic: Anthropic Messages API, static model list
- openrouter: OpenRouter chat completions, catalog fetched and cached
- ollama: Local Ollama daemon, installed models cached

Router dispatches to the preferred provider and fails over once.
"""
