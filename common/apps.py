from django.apps import AppConfig


class CommonConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'common'
    verbose_name = 'Common HMS Components'

    def ready(self):
        """
        Make @admin.register() without an explicit site use the HMS admin site.
        """
        from django.contrib import admin
        from .admin_site import hms_admin_site

        admin.site = hms_admin_site
        admin.sites.site = hms_admin_site
