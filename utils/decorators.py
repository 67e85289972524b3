"""Authorization decorators for role-based access control."""
from functools import wraps

from flask import current_app, request
from flask_login import current_user, login_required

from models import UserRole
from utils.activity import log_activity
from utils.errors import PermissionDenied


def roles_required(*roles):
    allowed = {UserRole(r) for r in roles}

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapped(*args, **kwargs):
            if current_user.role in allowed:
                return view_func(*args, **kwargs)

            current_app.logger.warning(
                "Unauthorized role access attempt",
                extra={"user_id": current_user.id, "role": current_user.role.value, "endpoint": request.endpoint},
            )
            log_activity(current_user.id, "unauthorized_access", {"endpoint": request.endpoint})
            if allowed == {UserRole.ADMIN}:
                raise PermissionDenied("Acesso negado. Apenas administradores.")
            raise PermissionDenied("Acesso negado.")

        return wrapped

    return decorator


admin_required = roles_required(UserRole.ADMIN)
staff_required = roles_required(UserRole.ADMIN, UserRole.CITY_HALL)
