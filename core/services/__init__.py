"""
Core services for the MCP context server.

Services own the server's two pieces of durable state (contexts and server
configuration) and the guarded pipeline that evolves the configuration.
"""

from .context_service import (
    ContextStore,
    ContextStoreError,
    ContextNotFoundError,
    ContextValidationError,
    ContextPersistenceError,
)
from .config_service import (
    ConfigStore,
    ConfigStoreError,
    ConfigValidationError,
    ConfigPersistenceError,
)
from .config_evolution_service import (
    ConfigEvolutionService,
    ConfigEvolutionError,
    EvolutionErrorKind,
    EvolutionResult,
)

__all__ = [
    # Context Store
    "ContextStore",
    "ContextStoreError",
    "ContextNotFoundError",
    "ContextValidationError",
    "ContextPersistenceError",
    # Config Store
    "ConfigStore",
    "ConfigStoreError",
    "ConfigValidationError",
    "ConfigPersistenceError",
    # Config Evolution
    "ConfigEvolutionService",
    "ConfigEvolutionError",
    "EvolutionErrorKind",
    "EvolutionResult",
]
