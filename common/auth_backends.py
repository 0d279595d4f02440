"""
Non-database user built from a SuperAdmin JWT payload.
"""


class TenantUser:
    """
    Lightweight user object for JWT-authenticated requests.

    There is no local user table; everything DRF and the permission classes
    need is read from the decoded token.
    """

    is_active = True
    is_anonymous = False
    is_authenticated = True

    def __init__(self, payload):
        self._payload = payload
        self.id = payload.get('user_id')
        self.pk = self.id
        self._original_id = self.id
        self.email = payload.get('email', '')
        self.username = self.email
        self.tenant_id = payload.get('tenant_id')
        self.tenant_slug = payload.get('tenant_slug')
        self.is_super_admin = bool(payload.get('is_super_admin', False))
        self.permissions = payload.get('permissions') or {}
        self.enabled_modules = payload.get('enabled_modules') or []
        self.user_type = payload.get('user_type', 'staff')
        self.is_staff = self.user_type == 'staff'
        self.is_superuser = self.is_super_admin

    def __str__(self):
        return self.email or str(self.id)

    def __eq__(self, other):
        return isinstance(other, TenantUser) and str(self.id) == str(other.id)

    def __hash__(self):
        return hash(str(self.id))

    def get_username(self):
        return self.username

    def has_perm(self, perm, obj=None):
        return self.is_super_admin

    def has_module_perms(self, app_label):
        return self.is_super_admin
