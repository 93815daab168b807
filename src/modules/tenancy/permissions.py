"""Permission checking service for multi-tenant RBAC."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from src.models.enums import MembershipStatus
from src.models.organization_membership import OrganizationMembership
from src.models.role import Role

logger = logging.getLogger(__name__)

WILDCARD_PERMISSION = "*"


class PermissionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_permission(
        self, user_id: uuid.UUID, organization_id: uuid.UUID, permission: str
    ) -> bool:
        """Check if user has a specific permission in an org via their membership role."""
        role = await self.get_user_role_in_org(user_id, organization_id)
        if role is None:
            logger.info(
                "No active membership for user %s in org %s", user_id, organization_id
            )
            return False
        return self.role_grants(role.permissions, permission)

    @staticmethod
    def role_grants(permissions: list[str], permission: str) -> bool:
        """``*`` grants everything; ``settlements:*`` grants every settlements permission."""
        if WILDCARD_PERMISSION in permissions or permission in permissions:
            return True
        resource = permission.split(":", 1)[0]
        return f"{resource}:{WILDCARD_PERMISSION}" in permissions

    async def get_user_role_in_org(
        self, user_id: uuid.UUID, organization_id: uuid.UUID
    ) -> Role | None:
        """Get the user's role in an organization via a single query with joinedload."""
        result = await self.db.execute(
            select(OrganizationMembership)
            .options(joinedload(OrganizationMembership.role))
            .where(
                OrganizationMembership.user_id == user_id,
                OrganizationMembership.organization_id == organization_id,
                OrganizationMembership.status == MembershipStatus.ACTIVE,
            )
        )
        membership = result.unique().scalar_one_or_none()
        if membership is None:
            return None
        return membership.role

    async def get_user_permissions(
        self, user_id: uuid.UUID, organization_id: uuid.UUID
    ) -> list[str]:
        role = await self.get_user_role_in_org(user_id, organization_id)
        if role is None:
            return []
        return list(role.permissions)
