from django.urls import path
from . import views
app_name = "accounts"
urlpatterns = [
    path("signup", views.signup_view, name="signup"),
    path("<uuid:customer_id>", views.customer_view, name="customer"),
]
