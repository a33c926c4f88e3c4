from __future__ import annotations

from django.urls import path

from . import views

app_name = "shipping"

urlpatterns = [
    path("estimate/", views.freight_estimate, name="freight_estimate"),
    path("quote/", views.cart_shipping_quote, name="cart_quote"),
    path("config/", views.shipping_config, name="config"),
]
