from fastapi import APIRouter

from llmgrid.api.routes import jobs, settings, sheet

api_router = APIRouter()

api_router.include_router(sheet.router)

api_router.include_router(jobs.router)

api_router.include_router(settings.router)
