from fastapi import APIRouter

from stylebatch.api.v1.endpoints import preset_batches

api_router = APIRouter()

api_router.include_router(preset_batches.router, prefix="/preset-batches", tags=["preset_batches"])
