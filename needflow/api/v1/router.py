from fastapi import APIRouter
from needflow.api.v1.endpoints import approval_chains, auth, notifications, requests, settings

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(requests.router, prefix="/requests", tags=["Requests"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(approval_chains.router, prefix="/approval-chains", tags=["Approval Chains"])
api_router.include_router(settings.router, prefix="/settings", tags=["Settings"])
