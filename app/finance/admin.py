from django.contrib import admin

from .models import Payment, PaymentAllocation, PaymentTransaction


class PaymentAllocationInline(admin.TabularInline):
    model = PaymentAllocation
    extra = 0
    raw_id_fields = ("payment",)


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("reservation", "due_date", "amount_due", "paid", "is_active")
    list_filter = ("paid", "is_active")
    search_fields = ("reservation__quotation__code", "reservation__client__name")
    raw_id_fields = ("reservation",)
    ordering = ("reservation", "due_date")


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "payment_date", "amount_paid", "reservation", "payment_method", "reference_number")
    list_filter = ("payment_method",)
    search_fields = ("reference_number", "reservation__quotation__code")
    raw_id_fields = ("reservation",)
    date_hierarchy = "payment_date"
    inlines = [PaymentAllocationInline]
