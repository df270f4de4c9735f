"""
VeoAngel - video prompt enhancement over multiple LLM providers.

Package structure:
- core: Config, logging, orchestrator, service facade
- llm: Provider adapters, model catalogs, router with failover
"""

__version__ = "0.1.0"
