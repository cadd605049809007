"""
FastAPI dependency injection providers.

The lifespan in api/main.py stores the long-lived components on app.state;
these providers hand them to route handlers via Depends().

CHANGELOG:
- 2026-10-18: Initial creation
"""

from typing import Annotated

from fastapi import Depends, Request

from collector.src.config import CollectorSettings
from collector.src.db.store import StatsStore
from collector.src.device_client import DeviceAPI
from collector.src.health import HealthAggregator
from collector.src.poller import CollectionService


def get_settings(request: Request) -> CollectorSettings:
    return request.app.state.settings


def get_store(request: Request) -> StatsStore:
    return request.app.state.store


def get_device(request: Request) -> DeviceAPI:
    return request.app.state.device


def get_service(request: Request) -> CollectionService:
    return request.app.state.service


def get_health(request: Request) -> HealthAggregator:
    return request.app.state.health


# Type aliases for injecting components via FastAPI Depends().
# Usage in route handlers:
#   async def my_route(device: DeviceDep):
#       result = await device.get_info()
SettingsDep = Annotated[CollectorSettings, Depends(get_settings)]
StoreDep = Annotated[StatsStore, Depends(get_store)]
DeviceDep = Annotated[DeviceAPI, Depends(get_device)]
ServiceDep = Annotated[CollectionService, Depends(get_service)]
HealthDep = Annotated[HealthAggregator, Depends(get_health)]
