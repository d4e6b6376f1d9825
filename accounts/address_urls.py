from django.urls import path
from . import views
app_name = "addresses"
urlpatterns = [
    path("", views.address_create_view, name="create"),
    path("<uuid:customer_id>", views.address_list_view, name="list"),
    path("item/<uuid:address_id>", views.address_update_view, name="update"),
]
