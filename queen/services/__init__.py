from .auth_service import AuthService
from .mount_service import MountService

__all__ = ["AuthService", "MountService"]
