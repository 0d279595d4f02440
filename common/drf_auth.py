"""
Django REST Framework authentication and permission classes for JWT-based HMS authentication.

These work with :class:`common.middleware.JWTAuthenticationMiddleware`, which
validates the token and attaches a ``TenantUser`` to the request.
"""

from rest_framework import authentication, permissions
from django.contrib.auth.models import AnonymousUser
import logging

logger = logging.getLogger(__name__)


class JWTAuthentication(authentication.BaseAuthentication):
    """
    DRF authentication class that returns the TenantUser set by the JWT middleware.
    """

    def authenticate(self, request):
        # Read from the underlying Django request to avoid recursing into
        # DRF's own request.user property
        django_request = getattr(request, '_request', request)
        user = getattr(django_request, 'user', None)

        if user is not None and not isinstance(user, AnonymousUser):
            return (user, None)
        return None

    def authenticate_header(self, request):
        return 'Bearer realm="api"'


class HMSPermission(permissions.BasePermission):
    """
    Checks HMS permissions from the nested structure in the JWT payload:

        {
            "permissions": {
                "hms": {
                    "billing": {
                        "view_invoices": "all",
                        "create_invoice": true,
                        "record_payment": "own",
                        ...
                    }
                }
            }
        }

    Views declare ``hms_module`` and optionally ``action_permission_map``.
    Scope values ``all``/``team``/``own`` grant the permission; ``own`` is
    narrowed to the caller's objects in ``has_object_permission``.
    """

    action_permission_map = {
        'list': 'view',
        'retrieve': 'view',
        'create': 'create',
        'update': 'edit',
        'partial_update': 'edit',
        'destroy': 'delete',
    }

    # Used for plain APIViews, which have no `action`
    method_action_map = {
        'get': 'list',
        'head': 'list',
        'options': 'list',
        'post': 'create',
        'put': 'update',
        'patch': 'partial_update',
        'delete': 'destroy',
    }

    def has_permission(self, request, view):
        if not request.user or isinstance(request.user, AnonymousUser):
            return False

        if getattr(request.user, 'is_super_admin', False):
            return True

        hms_module = self.get_hms_permission_module(view)
        if not hms_module:
            logger.warning(f"No HMS module defined for view {view.__class__.__name__}")
            return False

        action = self.get_action(request, view)
        if not action:
            logger.warning(f"Could not determine action for view {view.__class__.__name__}")
            return False

        permission_name = self.get_permission_name(action, view)
        if not permission_name:
            logger.warning(f"No permission mapping for action '{action}' on {view.__class__.__name__}")
            return False

        granted = self.check_hms_permission(request, hms_module, permission_name)
        if not granted:
            logger.info(
                f"Permission denied - user={getattr(request.user, 'email', None)} "
                f"module={hms_module} permission={permission_name}"
            )
        return granted

    def has_object_permission(self, request, view, obj):
        if not request.user or isinstance(request.user, AnonymousUser):
            return False

        if getattr(request.user, 'is_super_admin', False):
            return True

        hms_module = self.get_hms_permission_module(view)
        permission_name = self.get_permission_name(self.get_action(request, view), view)
        if not hms_module or not permission_name:
            return False

        permission_value = self.get_permission_value(request, hms_module, permission_name)

        if isinstance(permission_value, str):
            if permission_value in ("all", "team"):
                return True
            if permission_value == "own":
                return self.check_ownership(request, obj)

        return bool(permission_value)

    def get_hms_permission_module(self, view):
        return getattr(view, 'hms_module', None)

    def get_action(self, request, view):
        action = getattr(view, 'action', None)
        if action:
            return action
        return self.method_action_map.get(request.method.lower())

    def get_permission_name(self, action, view):
        """Map DRF action to HMS permission name, preferring the view's own map."""
        if hasattr(view, 'action_permission_map'):
            return view.action_permission_map.get(action)
        return self.action_permission_map.get(action)

    def check_hms_permission(self, request, module, permission_name):
        permission_value = self.get_permission_value(request, module, permission_name)

        if isinstance(permission_value, bool):
            return permission_value

        if isinstance(permission_value, str):
            return permission_value in ("all", "team", "own")

        return False

    def get_permission_value(self, request, module, permission_name):
        """Return permissions -> hms -> module -> permission_name, or None."""
        user_permissions = getattr(request.user, 'permissions', None)
        if not isinstance(user_permissions, dict):
            return None

        hms_perms = user_permissions.get('hms') or {}
        module_perms = hms_perms.get(module) or {}
        return module_perms.get(permission_name)

    def check_ownership(self, request, obj):
        """
        Check if the object was created by the current user.

        Billing records are owned by the staff member recorded in
        ``created_by_id``.
        """
        user_id = getattr(request.user, '_original_id', None) or getattr(request.user, 'id', None)

        for field_name in ['created_by_id', 'updated_by_id', 'user_id']:
            if hasattr(obj, field_name):
                return str(getattr(obj, field_name)) == str(user_id)

        logger.warning(f"Could not determine ownership for {obj.__class__.__name__}")
        return False


class IsAuthenticated(permissions.BasePermission):
    """
    Only checks that the request was authenticated via JWT.
    """

    def has_permission(self, request, view):
        if not request.user or isinstance(request.user, AnonymousUser):
            return False
        return bool(getattr(request.user, 'is_authenticated', False))
