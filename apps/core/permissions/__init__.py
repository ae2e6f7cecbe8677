from .roles import (
    ROLE_SUPER_ADMIN,
    ROLE_ADMIN,
    ROLE_CASHIER,
    ROLE_TEACHER,
    ELEVATED_ROLES,
    SchoolRolePermission,
    IsSchoolMember,
    IsSchoolAdmin,
    IsFinanceStaff,
    IsAttendanceStaff,
    ReadOnlyOrSchoolAdmin,
)
