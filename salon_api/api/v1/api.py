"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from salon_api.api.v1.endpoints import (analytics, attendance, auth, employees,
                                        realtime, salary, tasks)

api_router = APIRouter()

# Auth (login, registration, user management)
api_router.include_router(auth.router)

# Registry, punches, tasks, ledger
api_router.include_router(employees.router)
api_router.include_router(attendance.router)
api_router.include_router(tasks.router)
api_router.include_router(salary.router)

# Read-only projections
api_router.include_router(analytics.router)

# Live dashboards
api_router.include_router(realtime.router)
