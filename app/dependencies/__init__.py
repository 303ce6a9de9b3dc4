from app.dependencies.dependencies import (
    get_current_user,
    get_current_admin,
    get_current_staff,
    get_current_student,
    require_roles
)
