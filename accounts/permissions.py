from rest_framework import permissions


class IsNotBanned(permissions.BasePermission):
    """
    Permission to check if user is not banned.
    """

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False

        # Admins can always access
        if request.user.is_admin_role():
            return True

        return not request.user.is_banned


class IsPlatformAdmin(permissions.BasePermission):
    """
    Permission for role=ADMIN users and Django staff.
    """

    def has_permission(self, request, view):
        return bool(request.user.is_authenticated and request.user.is_admin_role())


class IsOrganizer(permissions.BasePermission):
    """
    Permission for users allowed to create and run events.
    """
    message = 'Only organizers can perform this action.'

    def has_permission(self, request, view):
        return bool(request.user.is_authenticated and request.user.can_organize())


class IsEventOrganizerOrAdmin(permissions.BasePermission):
    """
    Object permission: the organizer of the event (or an admin).
    Works for events and for objects that carry an `event` attribute.
    """
    message = 'Insufficient permissions'

    def has_object_permission(self, request, view, obj):
        if not request.user.is_authenticated:
            return False

        if request.user.is_admin_role():
            return True

        event = getattr(obj, 'event', obj)
        return event.organizer_id == request.user.id


def is_event_organizer_or_admin(user, event):
    """Plain-function form of IsEventOrganizerOrAdmin for service code and consumers"""
    if not user or not user.is_authenticated:
        return False
    return user.is_admin_role() or event.organizer_id == user.id
