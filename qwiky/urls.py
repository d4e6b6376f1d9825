from django.contrib import admin
from django.urls import include, path

from . import views

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health", views.health_view, name="health"),
    path("api/payment/", include("payments.urls")),
    path("api/user/", include("accounts.urls")),
    path("api/address/", include("accounts.address_urls")),
    path("api/orders/", include("orders.urls")),
    path("api/services/", include("services.urls")),
    path("api/slots/", include("services.slot_urls")),
]

handler404 = "qwiky.views.error_404_view"
