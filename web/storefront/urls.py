from django.urls import include, path

urlpatterns = [
    path("api/orders/", include("apps.orders.urls")),
    path("api/payments/", include("apps.payments.urls")),
    path("api/products/", include("apps.catalog.urls")),
    path("api/", include("apps.monitoring.urls")),
]
