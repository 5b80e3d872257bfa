from typing import Annotated

from fastapi import Depends, Request

from invoice_notifier.providers.registry import ProviderRegistry
from invoice_notifier.services.queue import QueueEngine
from invoice_notifier.settings import Settings


def get_queue(request: Request) -> QueueEngine:
    return request.app.state.queue


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


Queue = Annotated[QueueEngine, Depends(get_queue)]
Registry = Annotated[ProviderRegistry, Depends(get_registry)]
AppSettings = Annotated[Settings, Depends(get_settings)]
