from fastapi import APIRouter
from timetiles.api.routers import imports

api_router = APIRouter()
api_router.include_router(imports.router, prefix="/imports", tags=["imports"])
