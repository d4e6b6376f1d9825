from django.contrib import admin
from .models import Address, Customer


class AddressInline(admin.TabularInline):
    model = Address
    extra = 0
    fields = ("address_line_1", "city", "state", "postal_code", "is_default")


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("mobile", "name", "email", "created_at")
    search_fields = ("mobile", "name", "email")
    list_filter = ("created_at",)
    readonly_fields = ("created_at", "updated_at")
    inlines = [AddressInline]


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ("address_line_1", "city", "state", "customer", "is_default")
    search_fields = ("address_line_1", "city", "postal_code", "customer__mobile")
    list_filter = ("state", "is_default")
    raw_id_fields = ("customer",)
    readonly_fields = ("created_at", "updated_at")
