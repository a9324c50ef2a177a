"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from doorlock.api.v1.endpoints import (access, attendance, auth, dashboard,
                                      system, users)

api_router = APIRouter()

# Auth (login, refresh, register, me)
api_router.include_router(auth.router)

# Door devices: verification and the access-log ledger
api_router.include_router(access.router)

# Attendance, stats, holidays
api_router.include_router(attendance.router)

# Enrollment and credentials
api_router.include_router(users.router)

# Admin overview
api_router.include_router(dashboard.router)

# Health, status
api_router.include_router(system.router)
