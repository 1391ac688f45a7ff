from django.contrib import admin

from .models import Block, Lot, Project


class BlockInline(admin.TabularInline):
    model = Block
    extra = 0
    fields = ("name", "is_active")


class LotInline(admin.TabularInline):
    model = Lot
    extra = 0
    fields = ("lot_number", "area", "price", "status", "is_active")


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ("name", "location", "currency", "default_down_payment", "default_financing_months", "max_discount_percentage", "is_active")
    search_fields = ("name", "location")
    list_filter = ("is_active", "currency")
    inlines = [BlockInline]


@admin.register(Block)
class BlockAdmin(admin.ModelAdmin):
    list_display = ("name", "project", "is_active", "modified_at")
    list_filter = ("project", "is_active")
    search_fields = ("name", "project__name")
    inlines = [LotInline]


@admin.register(Lot)
class LotAdmin(admin.ModelAdmin):
    list_display = ("lot_number", "block", "area", "price", "status", "is_active")
    list_filter = ("status", "block__project", "is_active")
    search_fields = ("lot_number", "block__name", "block__project__name")
