from app.services.auth import auth_service
from app.services.user import user_service
from .organization import organization_service

__all__ = ["auth_service", "user_service", "organization_service"]
