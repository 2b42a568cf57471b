from fastapi import APIRouter, Depends

from src.medverify.container import ServiceContainer, get_container

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1(container: ServiceContainer = Depends(get_container)) -> dict:
    """API v1 health endpoint.

    Reports whether the messaging channel is configured; an unconfigured
    channel still lets the service persist conversations, it just cannot reply.
    """

    return {
        "status": "ok",
        "version": "v1",
        "messaging": "configured" if container.gateway.is_configured else "not_configured",
    }
