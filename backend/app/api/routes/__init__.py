# API Routes Module
from app.api.routes import (
    admin,
    plans,
    subscriptions,
)

__all__ = [
    "admin",
    "plans",
    "subscriptions",
]
