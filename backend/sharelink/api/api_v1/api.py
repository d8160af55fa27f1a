from fastapi import APIRouter

from sharelink.api.api_v1.endpoints import upload, shares, qr

api_router = APIRouter()
api_router.include_router(upload.router, prefix="/upload", tags=["upload"])
api_router.include_router(shares.router, prefix="/share", tags=["share"])
api_router.include_router(qr.router, prefix="/qr", tags=["qr"])
