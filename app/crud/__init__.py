from app.crud.base import CRUDBase
from app.crud.user import user
from .refresh_token import refresh_token
from .organization import organization
from .membership import membership

__all__ = ["CRUDBase", "user", "refresh_token", "organization", "membership"]
