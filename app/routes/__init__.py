# app/routes/__init__.py
from .auth import auth_router
from .bookings import bookings_router
from .payments import payments_router
from .team_leader import team_leader_router

routers = [
    auth_router,
    bookings_router,
    payments_router,
    team_leader_router
]

__all__ = ["routers"]
