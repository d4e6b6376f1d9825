from django.urls import path

from . import views

app_name = "orders"
urlpatterns = [
    path("", views.order_create_view, name="create"),
    path("details/<uuid:order_id>", views.order_detail_view, name="detail"),
    path("<uuid:customer_id>", views.customer_orders_view, name="customer_orders"),
]
