# apps/core/permissions/roles.py
from rest_framework import permissions

ROLE_SUPER_ADMIN = 'SUPER_ADMIN'
ROLE_ADMIN = 'ADMIN'
ROLE_CASHIER = 'CASHIER'
ROLE_TEACHER = 'TEACHER'

ELEVATED_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN)


class SchoolRolePermission(permissions.BasePermission):
    """
    Allow authenticated users that belong to a school and hold one of
    `allowed_roles`. An empty tuple admits every school role.
    """
    allowed_roles = ()
    message = 'Your role is not allowed to perform this action.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        # Superusers have all permissions
        if user.is_superuser:
            return True

        if not getattr(user, 'tenant_id', None):
            return False

        if not self.allowed_roles:
            return getattr(user, 'role', None) is not None
        return getattr(user, 'role', None) in self.allowed_roles

    def has_object_permission(self, request, view, obj):
        user = request.user
        if user.is_superuser:
            return True

        # Object must belong to the user's school
        if hasattr(obj, 'tenant_id') and obj.tenant_id != user.tenant_id:
            return False
        return True


class IsSchoolMember(SchoolRolePermission):
    pass


class IsSchoolAdmin(SchoolRolePermission):
    allowed_roles = ELEVATED_ROLES


class IsFinanceStaff(SchoolRolePermission):
    allowed_roles = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_CASHIER)


class IsAttendanceStaff(SchoolRolePermission):
    allowed_roles = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_TEACHER)


class ReadOnlyOrSchoolAdmin(SchoolRolePermission):
    """Any school member may read; only administrators write"""

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if request.method in permissions.SAFE_METHODS or request.user.is_superuser:
            return True
        return request.user.role in ELEVATED_ROLES
