from django.urls import path

from . import views

app_name = "slots"
urlpatterns = [
    path("<str:locality>", views.slot_list_view, name="list"),
]
