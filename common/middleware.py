import jwt
import uuid
import logging
from django.conf import settings
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from .auth_backends import TenantUser

logger = logging.getLogger(__name__)


def _auth_error(kind, message, status):
    return JsonResponse(
        {'success': False, 'error': {'kind': kind, 'message': message}},
        status=status
    )


class JWTAuthenticationMiddleware(MiddlewareMixin):
    """
    Middleware to validate JWT tokens from SuperAdmin and set request attributes.

    On success the request carries ``user_id``, ``email``, ``tenant_id``,
    ``tenant_slug``, ``is_super_admin``, ``permissions`` and
    ``enabled_modules`` and ``request.user`` is a :class:`TenantUser`.
    """

    # Paths that don't require authentication (prefix match)
    PUBLIC_PATHS = [
        '/api/docs/',
        '/api/schema/',
        '/api/redoc/',
        '/admin',   # custom admin site handles its own auth
        '/static/',
        '/health/',
    ]

    REQUIRED_FIELDS = [
        'user_id', 'email', 'tenant_id', 'tenant_slug',
        'is_super_admin', 'permissions', 'enabled_modules'
    ]

    def is_public_path(self, path):
        # Root only redirects to the admin
        if path == '/':
            return True
        return any(path.startswith(prefix) for prefix in self.PUBLIC_PATHS)

    def process_request(self, request):
        """Process incoming request and validate JWT token"""
        if self.is_public_path(request.path):
            return None

        auth_header = request.META.get('HTTP_AUTHORIZATION')
        if not auth_header:
            logger.warning(f"Missing Authorization header - Path: {request.path}, Method: {request.method}")
            return _auth_error('not_authenticated', 'Authorization header required', 401)

        try:
            scheme, token = auth_header.split(' ', 1)
        except ValueError:
            logger.warning(f"Malformed Authorization header - Path: {request.path}")
            return _auth_error('not_authenticated', 'Invalid authorization header format', 401)

        if scheme.lower() != 'bearer':
            logger.warning(f"Invalid auth scheme '{scheme}' - Path: {request.path}")
            return _auth_error('not_authenticated', 'Invalid authorization scheme. Use Bearer token', 401)

        secret_key = getattr(settings, 'JWT_SECRET_KEY', None)
        algorithm = getattr(settings, 'JWT_ALGORITHM', 'HS256')
        leeway = getattr(settings, 'JWT_LEEWAY', 30)

        if not secret_key:
            logger.error("JWT_SECRET_KEY not configured")
            return _auth_error('configuration', 'Authentication is not configured', 500)

        try:
            payload = jwt.decode(
                token,
                secret_key,
                algorithms=[algorithm],
                leeway=leeway  # Tolerate clock skew between servers
            )
        except jwt.ExpiredSignatureError:
            logger.warning(f"Expired JWT token - Path: {request.path}")
            return _auth_error('not_authenticated', 'Token has expired', 401)
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {e} - Path: {request.path}, Algorithm: {algorithm}")
            return _auth_error('not_authenticated', f'Invalid token: {e}', 401)

        for field in self.REQUIRED_FIELDS:
            if field not in payload:
                logger.warning(
                    f"Missing JWT field '{field}' - Path: {request.path}, "
                    f"Available fields: {list(payload.keys())}"
                )
                return _auth_error('not_authenticated', f'Missing required field in token: {field}', 401)

        enabled_modules = payload.get('enabled_modules') or []
        if 'hms' not in enabled_modules:
            logger.warning(
                f"HMS module not enabled - Path: {request.path}, "
                f"User: {payload.get('email')}, Enabled modules: {enabled_modules}"
            )
            return _auth_error('permission_denied', 'HMS module not enabled for this user', 403)

        # Set request attributes from JWT payload
        request.user_id = payload['user_id']
        request.email = payload['email']
        request.tenant_id = payload['tenant_id']
        request.tenant_slug = payload['tenant_slug']
        request.is_super_admin = payload['is_super_admin']
        request.permissions = payload['permissions']
        request.enabled_modules = enabled_modules
        request.user_type = payload.get('user_type', 'staff')

        try:
            request.tenant_id = str(uuid.UUID(str(payload['tenant_id'])))
        except ValueError:
            logger.warning(f"Invalid tenant id '{payload['tenant_id']}' - Path: {request.path}")
            return _auth_error('not_authenticated', 'Invalid tenant identifier', 401)

        # Only super admins may act on another tenant through the tenant headers
        for header in ('HTTP_TENANTTOKEN', 'HTTP_X_TENANT_ID'):
            value = request.META.get(header)
            if not value:
                continue
            try:
                override = str(uuid.UUID(value))
            except ValueError:
                logger.warning(f"Invalid tenant header '{value}' - Path: {request.path}")
                return _auth_error('not_authenticated', 'Invalid tenant identifier', 401)
            if override != request.tenant_id and not request.is_super_admin:
                logger.warning(
                    f"Tenant override denied - Path: {request.path}, User: {request.email}, "
                    f"Token tenant: {request.tenant_id}, Requested: {override}"
                )
                return _auth_error('permission_denied', 'Tenant does not match the token', 403)
            request.tenant_id = override

        x_tenant_slug_header = request.META.get('HTTP_X_TENANT_SLUG')
        if x_tenant_slug_header and x_tenant_slug_header != request.tenant_slug:
            if not request.is_super_admin:
                return _auth_error('permission_denied', 'Tenant does not match the token', 403)
            request.tenant_slug = x_tenant_slug_header

        payload = {**payload, 'tenant_id': request.tenant_id, 'tenant_slug': request.tenant_slug}
        request.user = TenantUser(payload)
        request._cached_user = request.user

        logger.debug(
            f"JWT auth successful - Path: {request.path}, User: {request.email}, "
            f"Tenant: {request.tenant_id}"
        )
        return None
