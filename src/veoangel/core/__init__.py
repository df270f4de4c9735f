"""
Core module - configuration, orchestration, service wiring.

Components:
- config: Settings management via pydantic-settings
- orchestrator: Builds instructions, runs analysis and enhancement
- service: Facade used by the CLI and outer layers
- logging: Logging setup
"""

from veoangel.core.config import Settings

__all__ = ["Settings"]
