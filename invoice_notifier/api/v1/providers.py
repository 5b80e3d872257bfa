import logging

from fastapi import APIRouter, Depends, HTTPException, status

from invoice_notifier.api.deps import AppSettings
from invoice_notifier.auth.security import require_api_token
from invoice_notifier.providers.catalog import list_providers

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_api_token)])


@router.get("")
async def get_providers(settings: AppSettings):
    try:
        providers = list_providers(settings.PROVIDERS_CONFIG_PATH)
    except (OSError, ValueError, KeyError) as e:
        logger.error("Provider catalog %s unreadable: %s", settings.PROVIDERS_CONFIG_PATH, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Provider catalog unavailable")

    return {
        "providers": [p.model_dump() for p in providers],
        "count": len(providers),
    }
