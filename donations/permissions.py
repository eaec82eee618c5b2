from rest_framework import permissions

from .exceptions import NotPermitted


def is_staff(user):
    # None is an internal caller (management command, task) and is trusted.
    return user is None or (user.is_active and user.is_staff)


def require_staff(user, action='perform this action'):
    if not is_staff(user):
        raise NotPermitted(f"Only staff may {action}.")


def require_self_or_staff(user, donor, action='act for this donor'):
    if is_staff(user):
        return
    if donor.user_id is None or donor.user_id != user.pk:
        raise NotPermitted(f"You may only {action} for yourself.")


class IsStaffOrReadOnly(permissions.BasePermission):
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.user.is_staff
