from django.urls import path
from .views import OrdersPingView
from .views import OrdersCollectionView, RetrieveOrderView, TrackOrderView, CustomerOrdersView
from .views import OrderStatusView, CancelOrderView
app_name = "orders"

urlpatterns = [
    path("ping/", OrdersPingView.as_view(), name="ping"),
    path("", OrdersCollectionView.as_view(), name="orders-collection"),  # POST create
    path("track/<str:order_id>/", TrackOrderView.as_view(), name="orders-track"),
    path("customer/<str:email>/", CustomerOrdersView.as_view(), name="orders-by-customer"),
    path("<uuid:oid>/", RetrieveOrderView.as_view(), name="orders-detail"),
    path("<uuid:oid>/status/", OrderStatusView.as_view(), name="orders-status"),
    path("<uuid:oid>/cancel/", CancelOrderView.as_view(), name="orders-cancel"),
]
