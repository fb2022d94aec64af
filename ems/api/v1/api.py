"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from ems.api.v1.endpoints import accounts, auth, health, reservations

api_router = APIRouter()

# Login, refresh, logout, me
api_router.include_router(auth.router)

# Admin / user provisioning
api_router.include_router(accounts.router)

# Reservation CRUD, scoped by role
api_router.include_router(reservations.router)

# Health
api_router.include_router(health.router)
