from django.urls import path
from . import views, webhook
app_name = "payments"
urlpatterns = [
    path("create-order", views.create_order_view, name="create_order"),
    path("verify/<str:order_ref>", views.verify_view, name="verify"),
    path("webhook", webhook.cashfree_webhook, name="webhook"),
    path("test", views.payment_test_view, name="test"),
]
