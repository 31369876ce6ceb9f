"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from tripsplit.api.routes import users, trips, bills, receipts

api_router = APIRouter()

# Include all route modules
api_router.include_router(users.router)
api_router.include_router(trips.router)
api_router.include_router(bills.router)
api_router.include_router(receipts.router)
