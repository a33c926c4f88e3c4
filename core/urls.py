from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("providers/", include("providers.urls", namespace="providers")),
    path("shipping/", include("shipping.urls", namespace="shipping")),
    path("orders/", include("orders.urls", namespace="orders")),
]
