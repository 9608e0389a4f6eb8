from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .deps import get_package_store
from .package_store import PackageStore

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    description: str
    packages: int


@router.get("/health", response_model=HealthResponse)
def get_health(store: PackageStore = Depends(get_package_store)) -> HealthResponse:
    """
    Lightweight liveness probe. Returns HTTP 200 when the package API is reachable.
    """
    return HealthResponse(status="Healthy", description="Service reachable.", packages=len(store))
