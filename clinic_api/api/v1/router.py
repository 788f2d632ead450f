from fastapi import APIRouter
from clinic_api.api.v1.endpoints import appointments, subscriptions, billing

api_router = APIRouter()
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
