from fastapi import APIRouter

from commit_gateway.app.api.routes import batch_upload

api_router = APIRouter()
api_router.include_router(batch_upload.router)
