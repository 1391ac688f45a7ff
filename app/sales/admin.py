from django.contrib import admin

from .models import Quotation, Reservation


class ReservationInline(admin.TabularInline):
    model = Reservation
    extra = 0
    fields = ("client", "reservation_date", "amount_paid", "status", "is_active")
    raw_id_fields = ("client",)


@admin.register(Quotation)
class QuotationAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "project_name",
        "block_name",
        "lot_number",
        "advisor",
        "status",
        "final_price",
        "valid_until",
    )
    list_filter = ("status", "currency", "project_name")
    search_fields = ("code", "lead__code", "lead__client__name", "lead__client__company_name")
    raw_id_fields = ("lead", "lot")
    readonly_fields = ("code", "created_at", "modified_at")
    ordering = ("-created_at",)
    inlines = [ReservationInline]


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ("quotation", "client", "reservation_date", "amount_paid", "remaining_amount", "status", "is_active")
    list_filter = ("status", "currency", "payment_method", "is_active")
    search_fields = ("quotation__code", "client__name", "client__company_name")
    raw_id_fields = ("client", "quotation")
    ordering = ("-created_at",)
