"""
Admin endpoints for live server configuration.

All routes require the ``X-Admin-Secret`` shared secret. The evolution
route checks it as the first stage of the pipeline; the others use the
``require_admin`` dependency.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from core.auth import get_admin_credential, require_admin
from core.dependencies import get_config_evolution_service, get_config_store
from core.services.config_evolution_service import (
    ConfigEvolutionError,
    ConfigEvolutionService,
    EvolutionErrorKind,
)
from core.services.config_service import ConfigStore
from schemas.config import (
    EvolveConfigErrorResponse,
    EvolveConfigRequest,
    EvolveConfigResponse,
    ServerConfigResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])

EVOLUTION_ERROR_STATUS = {
    EvolutionErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    EvolutionErrorKind.INVALID_TARGET: status.HTTP_400_BAD_REQUEST,
    EvolutionErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    EvolutionErrorKind.MODEL_REJECTED: status.HTTP_400_BAD_REQUEST,
    EvolutionErrorKind.INVALID_PROPOSAL: status.HTTP_400_BAD_REQUEST,
    EvolutionErrorKind.UPSTREAM_ERROR: status.HTTP_502_BAD_GATEWAY,
    EvolutionErrorKind.BACKUP_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    EvolutionErrorKind.APPLY_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post(
    "/evolve-config",
    response_model=EvolveConfigResponse,
    responses={
        400: {"model": EvolveConfigErrorResponse, "description": "Invalid target, request or proposal"},
        403: {"model": EvolveConfigErrorResponse, "description": "Missing or wrong admin secret"},
        500: {"model": EvolveConfigErrorResponse, "description": "Backup or apply failed"},
        502: {"model": EvolveConfigErrorResponse, "description": "Language model provider failed"},
    },
)
async def evolve_config(
    body: EvolveConfigRequest,
    credential: Optional[str] = Depends(get_admin_credential),
    service: ConfigEvolutionService = Depends(get_config_evolution_service),
):
    """
    Change an allow-listed config field from a natural-language request.

    The config file is backed up before the change is written; the
    response carries the previous and new values and the backup path.
    """
    try:
        result = await service.evolve(body.target, body.request, credential)
    except ConfigEvolutionError as e:
        if e.kind not in (EvolutionErrorKind.FORBIDDEN, EvolutionErrorKind.INVALID_TARGET):
            logger.warning(f"[Evolve Config] Rejected at {e.kind.value}: {e.message}")
        content = EvolveConfigErrorResponse(error=e.kind.value, message=e.message, **e.details)
        return JSONResponse(
            status_code=EVOLUTION_ERROR_STATUS[e.kind],
            content=content.model_dump(mode="json"),
        )

    return EvolveConfigResponse(
        target=result.target,
        previous_value=result.previous_value,
        new_value=result.new_value,
        backup_path=result.backup_path,
        natural_language_request=result.request,
    )


@router.get("/config", response_model=ServerConfigResponse, dependencies=[Depends(require_admin)])
async def get_server_config(
    config_store: ConfigStore = Depends(get_config_store),
):
    """Return the configuration currently in effect."""
    config = await config_store.get()
    return JSONResponse(content=config.to_file_dict())


@router.post("/config/reload", response_model=ServerConfigResponse, dependencies=[Depends(require_admin)])
async def reload_server_config(
    config_store: ConfigStore = Depends(get_config_store),
):
    """Re-read the configuration file from disk."""
    config = await config_store.reload()
    return JSONResponse(content=config.to_file_dict())
