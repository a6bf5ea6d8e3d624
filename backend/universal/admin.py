# universal/admin.py
"""
Django admin configuration for the universal tables.

The admin is for viewing only. All mutations go through the stores
(entities/, relationships/, transactions/ commands), which validate
smart codes and organization scope before writing.
"""

from django.contrib import admin

from .models import (
    Organization,
    Entity,
    DynamicField,
    Relationship,
    Transaction,
    TransactionLine,
)


class ReadOnlyModelAdmin(admin.ModelAdmin):
    """Base admin class for store-owned models."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class DynamicFieldInline(ReadOnlyInline):
    model = DynamicField
    fields = ["field_name", "field_type", "value_text", "value_number", "value_boolean", "value_date", "smart_code"]
    readonly_fields = fields


class TransactionLineInline(ReadOnlyInline):
    model = TransactionLine
    fields = ["line_number", "line_type", "line_entity", "line_amount", "debit_amount", "credit_amount", "smart_code"]
    readonly_fields = fields


@admin.register(Organization)
class OrganizationAdmin(ReadOnlyModelAdmin):
    list_display = ["organization_code", "organization_name", "status", "created_at"]
    list_filter = ["status"]
    search_fields = ["organization_code", "organization_name"]


@admin.register(Entity)
class EntityAdmin(ReadOnlyModelAdmin):
    list_display = ["entity_type", "entity_code", "entity_name", "organization", "status", "smart_code"]
    list_filter = ["entity_type", "status", "organization"]
    search_fields = ["entity_name", "entity_code", "smart_code"]
    inlines = [DynamicFieldInline]


@admin.register(Relationship)
class RelationshipAdmin(ReadOnlyModelAdmin):
    list_display = ["relationship_type", "from_entity", "to_entity", "is_active", "organization", "created_at"]
    list_filter = ["relationship_type", "is_active", "organization"]


@admin.register(Transaction)
class TransactionAdmin(ReadOnlyModelAdmin):
    list_display = [
        "transaction_code", "transaction_type", "transaction_date",
        "total_amount", "transaction_currency_code", "transaction_status", "organization",
    ]
    list_filter = ["transaction_type", "transaction_status", "organization"]
    search_fields = ["transaction_code", "smart_code"]
    date_hierarchy = "transaction_date"
    inlines = [TransactionLineInline]
