from django.contrib import admin
from .models import Transaction

@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("order_ref", "status", "amount", "currency", "gateway_transaction_id", "created_at", "updated_at")
    search_fields = ("order_ref", "gateway_transaction_id", "order__customer__mobile")
    list_filter = ("status", "gateway", "currency", "created_at")
    raw_id_fields = ("order",)
    readonly_fields = ("status", "created_at", "updated_at", "gateway_response")
