from django.contrib import admin
from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    raw_id_fields = ("service",)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_ref", "customer", "status", "payment_status", "total_amount", "scheduled_date", "created_at")
    search_fields = ("order_ref", "customer__mobile", "customer__email")
    list_filter = ("status", "payment_status", "scheduled_date", "created_at")
    raw_id_fields = ("customer", "address")
    readonly_fields = ("status", "payment_status", "created_at", "updated_at")
    inlines = [OrderItemInline]
