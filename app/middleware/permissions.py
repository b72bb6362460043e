"""
Permission Middleware
Role-based dependencies for route protection
"""
from typing import List, Union

from app.core.auth import AuthSession, get_auth_session
from app.core.error_handling import ForbiddenException
from app.models import UserRole
from fastapi import Depends


class RequireRole:
    """
    Dependency class to check if user has one of the required roles
    """
    
    def __init__(self, roles: Union[UserRole, List[UserRole]]):
        """
        Args:
            roles: Single role or list of roles (e.g. UserRole.DOCTOR)
        """
        if isinstance(roles, UserRole):
            self.roles = [roles]
        else:
            self.roles = list(roles)
    
    async def __call__(self, auth: AuthSession = Depends(get_auth_session)) -> AuthSession:
        """
        Returns:
            The caller's AuthSession if the role matches
            
        Raises:
            ForbiddenException: If the user has no matching role
        """
        if auth.role not in self.roles:
            raise ForbiddenException(
                f"Access denied. Required roles: {', '.join(r.value for r in self.roles)}"
            )
        return auth


require_doctor = RequireRole(UserRole.DOCTOR)
require_patient = RequireRole(UserRole.PATIENT)
