from django.urls import path, include
from django.views.generic import RedirectView

# Import custom HMS admin site
from common.admin_site import hms_admin_site

from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView
)

urlpatterns = [
    # Root redirect to admin
    path('', RedirectView.as_view(url='/admin/', permanent=False), name='index'),

    # Admin panel - Using custom HMS admin site
    path('admin/', hms_admin_site.urls),

    # Billing engine
    path('api/billing/', include('apps.billing.urls')),
    path('api/walkin/', include('apps.billing.walkin_urls')),

    # API Documentation endpoints
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
