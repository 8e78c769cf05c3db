"""FastAPI dependencies handing the application's stores to the routers.

The stores are created once in the application lifespan and kept on
``app.state``; tests replace them through ``app.dependency_overrides``.
"""

from typing import Optional

from fastapi import Depends, Request

from core.auth import get_admin_secret
from core.config import settings
from core.llm import LLMGateway, llm_gateway
from core.services.config_evolution_service import ConfigEvolutionService
from core.services.config_service import ConfigStore
from core.services.context_service import ContextStore


def get_context_store(request: Request) -> ContextStore:
    return request.app.state.context_store


def get_config_store(request: Request) -> ConfigStore:
    return request.app.state.config_store


def get_llm_gateway() -> LLMGateway:
    return llm_gateway


def get_config_evolution_service(
    config_store: ConfigStore = Depends(get_config_store),
    gateway: LLMGateway = Depends(get_llm_gateway),
    admin_secret: Optional[str] = Depends(get_admin_secret),
) -> ConfigEvolutionService:
    return ConfigEvolutionService(
        config_store=config_store,
        llm_gateway=gateway,
        admin_secret=admin_secret,
        provider=settings.EVOLUTION_PROVIDER,
    )
