from fastapi import HTTPException

from models.enums import UserRole


class CheckRolePermission:
    async def check_admin(self, current_user):
        if current_user.role != UserRole.ADMIN:
            raise HTTPException(status_code=403, detail="Access Denied.")

    async def check_agent(self, current_user):
        if current_user.role != UserRole.AGENT:
            raise HTTPException(status_code=403, detail="Only agents can do this.")

    async def check_roles(self, current_user, *roles: UserRole):
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="Access Denied")
