from django.contrib import admin

from .models import Client, Lead, LeadTask, Referral


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ("__str__", "type", "dni", "ruc", "phone_number", "email", "is_active")
    list_filter = ("type", "is_active")
    search_fields = ("name", "company_name", "dni", "ruc", "phone_number", "email")


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    list_display = ("code", "client", "project", "assigned_to", "status", "capture_source", "expiration_date", "recycle_count")
    list_filter = ("status", "capture_source", "project")
    search_fields = ("code", "client__name", "client__company_name", "client__phone_number")
    raw_id_fields = ("client",)
    ordering = ("-entry_date",)


@admin.register(LeadTask)
class LeadTaskAdmin(admin.ModelAdmin):
    list_display = ("lead", "assigned_to", "type", "scheduled_date", "is_completed", "is_active")
    list_filter = ("type", "is_completed", "is_active")
    search_fields = ("description", "lead__code")
    raw_id_fields = ("lead",)


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = ("referrer_client", "referred_lead", "project", "created_at")
    list_filter = ("project",)
    raw_id_fields = ("referrer_client", "referred_lead")
