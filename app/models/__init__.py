from .organization import Organization, OrganizationUser, Role
from .refresh_token import RefreshToken
from .user import User, UserProfile
