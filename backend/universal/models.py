# universal/models.py
"""
The six universal tables.

    core_organizations            tenant boundary
    core_entities                 every business noun
    core_dynamic_data             typed attribute rows, one per field per entity
    core_relationships            typed, directed, closeable edges
    universal_transactions        business event headers
    universal_transaction_lines   ordered lines of a transaction

IMPORTANT: these tables are written by the stores only.
=======================================================
Direct .save(), .create(), .update() or .delete() outside
store_writes_allowed() / bootstrap_writes_allowed() raises RuntimeError.
All mutations go through:

- entities/commands.py        (entities, dynamic fields)
- relationships/commands.py   (relationships, status workflow)
- transactions/commands.py    (transactions, lines)
- tenancy/provisioning.py     (organizations)

Every row except an Organization carries a smart code (universal/smart_codes.py)
and an organization. Nothing here ever crosses organizations.
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from universal import smart_codes
from universal.write_barrier import assert_write_allowed


PLATFORM_ORGANIZATION_ID = uuid.UUID("00000000-0000-0000-0000-000000000000")


class UniversalQuerySet(models.QuerySet):
    """QuerySet whose bulk writes are held to the same barrier as save()."""

    def create(self, **kwargs):
        assert_write_allowed(self.model.__name__)
        return super().create(**kwargs)

    def bulk_create(self, objs, *args, **kwargs):
        assert_write_allowed(self.model.__name__)
        objs = list(objs)
        for obj in objs:
            obj.full_clean_invariants()
        return super().bulk_create(objs, *args, **kwargs)

    def update(self, **kwargs):
        assert_write_allowed(self.model.__name__)
        return super().update(**kwargs)

    def delete(self):
        assert_write_allowed(self.model.__name__)
        return super().delete()


class UniversalModel(models.Model):
    objects = UniversalQuerySet.as_manager()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def full_clean_invariants(self):
        """Row-level invariants checked on every save."""
        result = smart_codes.validate(self.smart_code)
        if not result.valid:
            raise ValidationError(
                f"{self.__class__.__name__}.smart_code {self.smart_code!r} is invalid: "
                + "; ".join(issue.message for issue in result.errors)
            )
        self.smart_code = result.normalized

    def save(self, *args, **kwargs):
        assert_write_allowed(self.__class__.__name__)
        self.full_clean_invariants()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        assert_write_allowed(self.__class__.__name__)
        return super().delete(*args, **kwargs)


# =============================================================================
# Organization
# =============================================================================

class Organization(UniversalModel):
    """
    Tenant boundary. Never deleted, only deactivated.

    settings keys:
        default_currency   ISO 4217 code used when a transaction names none
        timezone           IANA zone defining the business day for posting
    """

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_name = models.CharField(max_length=255)
    organization_code = models.CharField(max_length=50, unique=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    settings = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "core_organizations"
        ordering = ["organization_code"]

    def __str__(self):
        return f"{self.organization_code} - {self.organization_name}"

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    @property
    def is_platform(self) -> bool:
        return self.id == PLATFORM_ORGANIZATION_ID

    def full_clean_invariants(self):
        if not self.organization_code:
            raise ValidationError("Organization code is required.")

    def delete(self, *args, **kwargs):
        raise RuntimeError("Organizations are never deleted. Set status to inactive instead.")


# =============================================================================
# Entity
# =============================================================================

class Entity(UniversalModel):
    """
    Any business noun: customer, service, GL account, status marker,
    the organization's own shadow row.

    entity_type is an open vocabulary, always stored uppercase.
    status 'archived' is the soft-delete state.
    """

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        ARCHIVED = "archived", "Archived"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name="entities",
    )
    entity_type = models.CharField(max_length=100)
    entity_name = models.CharField(max_length=255, blank=True, default="")
    entity_code = models.CharField(max_length=100, null=True, blank=True)
    smart_code = models.CharField(max_length=255)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    metadata = models.JSONField(default=dict, blank=True)

    created_by = models.UUIDField(null=True, blank=True)
    updated_by = models.UUIDField(null=True, blank=True)

    class Meta:
        db_table = "core_entities"
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "entity_type", "entity_code"],
                condition=Q(entity_code__isnull=False),
                name="uniq_entity_code_per_org_type",
            ),
        ]
        indexes = [
            models.Index(fields=["organization", "entity_type"], name="entity_org_type_idx"),
            models.Index(fields=["organization", "smart_code"], name="entity_org_smart_code_idx"),
            models.Index(fields=["organization", "status"], name="entity_org_status_idx"),
        ]
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.entity_type}:{self.entity_code or self.id} {self.entity_name}"

    def full_clean_invariants(self):
        super().full_clean_invariants()
        if not self.entity_type or not self.entity_type.strip():
            raise ValidationError("Entity type is required.")
        self.entity_type = self.entity_type.strip().upper()
        if self.entity_code == "":
            self.entity_code = None


# =============================================================================
# Dynamic field
# =============================================================================

class DynamicField(UniversalModel):
    """
    One typed attribute of an entity.

    Exactly one value column is populated, selected by field_type.
    Updates overwrite the row in place.
    """

    class FieldType(models.TextChoices):
        TEXT = "text", "Text"
        NUMBER = "number", "Number"
        BOOLEAN = "boolean", "Boolean"
        JSON = "json", "JSON"
        DATE = "date", "Date"

    VALUE_COLUMNS = {
        FieldType.TEXT: "value_text",
        FieldType.NUMBER: "value_number",
        FieldType.BOOLEAN: "value_boolean",
        FieldType.JSON: "value_json",
        FieldType.DATE: "value_date",
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name="dynamic_fields",
    )
    entity = models.ForeignKey(
        Entity,
        on_delete=models.CASCADE,
        related_name="dynamic_fields",
    )
    field_name = models.CharField(max_length=100)
    field_type = models.CharField(max_length=20, choices=FieldType.choices)

    value_text = models.TextField(null=True, blank=True)
    value_number = models.DecimalField(max_digits=24, decimal_places=6, null=True, blank=True)
    value_boolean = models.BooleanField(null=True, blank=True)
    value_json = models.JSONField(null=True, blank=True)
    value_date = models.DateField(null=True, blank=True)

    smart_code = models.CharField(max_length=255)

    class Meta:
        db_table = "core_dynamic_data"
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "field_name"],
                name="uniq_dynamic_field_per_entity",
            ),
        ]
        indexes = [
            models.Index(fields=["organization", "field_name"], name="dynamic_org_field_idx"),
        ]
        ordering = ["field_name"]

    def __str__(self):
        return f"{self.entity_id}.{self.field_name}={self.value!r}"

    @property
    def value_column(self) -> str:
        return self.VALUE_COLUMNS[self.field_type]

    @property
    def value(self):
        if self.field_type not in self.VALUE_COLUMNS:
            return None
        return getattr(self, self.value_column)

    def full_clean_invariants(self):
        super().full_clean_invariants()
        if self.entity_id and self.organization_id and self.entity.organization_id != self.organization_id:
            raise ValidationError("Dynamic field must belong to its entity's organization.")
        if self.field_type not in self.VALUE_COLUMNS:
            raise ValidationError(f"Unknown field_type {self.field_type!r}.")
        populated = [col for col in self.VALUE_COLUMNS.values() if getattr(self, col) is not None]
        if populated != [self.value_column]:
            raise ValidationError(
                f"Dynamic field {self.field_name!r} must populate exactly {self.value_column}, "
                f"found {populated or 'none'}."
            )


# =============================================================================
# Relationship
# =============================================================================

class Relationship(UniversalModel):
    """
    Directed, typed edge between two entities of the same organization.

    Relationships are never deleted by the stores. They are closed by
    flipping is_active, which keeps the full history of status,
    membership and hierarchy changes.
    """

    HAS_STATUS = "HAS_STATUS"
    MEMBER_OF = "MEMBER_OF"
    PARENT_OF = "PARENT_OF"
    HAS_ROLE = "HAS_ROLE"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name="relationships",
    )
    from_entity = models.ForeignKey(
        Entity,
        on_delete=models.CASCADE,
        related_name="outgoing_relationships",
    )
    to_entity = models.ForeignKey(
        Entity,
        on_delete=models.CASCADE,
        related_name="incoming_relationships",
    )
    relationship_type = models.CharField(max_length=100)
    relationship_data = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)
    smart_code = models.CharField(max_length=255)

    created_by = models.UUIDField(null=True, blank=True)

    class Meta:
        db_table = "core_relationships"
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "from_entity", "to_entity", "relationship_type"],
                condition=Q(is_active=True),
                name="uniq_active_relationship",
            ),
            models.UniqueConstraint(
                fields=["organization", "from_entity"],
                condition=Q(is_active=True, relationship_type="HAS_STATUS"),
                name="uniq_active_status_per_entity",
            ),
        ]
        indexes = [
            models.Index(fields=["organization", "from_entity", "relationship_type"], name="rel_org_from_type_idx"),
            models.Index(fields=["organization", "to_entity", "relationship_type"], name="rel_org_to_type_idx"),
        ]
        ordering = ["created_at"]

    def __str__(self):
        state = "active" if self.is_active else "closed"
        return f"{self.from_entity_id} -{self.relationship_type}-> {self.to_entity_id} ({state})"

    def full_clean_invariants(self):
        super().full_clean_invariants()
        if not self.relationship_type or not self.relationship_type.strip():
            raise ValidationError("Relationship type is required.")
        self.relationship_type = self.relationship_type.strip().upper()
        # USER entities live in the platform organization and point into tenants.
        if self.to_entity.organization_id != self.organization_id:
            raise ValidationError("Relationship target must belong to the relationship's organization.")
        if self.from_entity.organization_id not in (self.organization_id, PLATFORM_ORGANIZATION_ID):
            raise ValidationError("Relationship source must belong to the relationship's organization.")


# =============================================================================
# Transaction
# =============================================================================

class Transaction(UniversalModel):
    """
    Business event header: sale, appointment, GL journal, ...

    A transaction and its lines are always written together by
    transactions/commands.py. Once posted, only status and metadata
    may change.
    """

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        POSTED = "posted", "Posted"
        VOIDED = "voided", "Voided"
        REVERSED = "reversed", "Reversed"

    TERMINAL_STATUSES = {Status.VOIDED, Status.REVERSED}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    transaction_type = models.CharField(max_length=100)
    transaction_code = models.CharField(max_length=100)
    transaction_date = models.DateTimeField()
    smart_code = models.CharField(max_length=255)

    source_entity = models.ForeignKey(
        Entity,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="source_transactions",
    )
    target_entity = models.ForeignKey(
        Entity,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="target_transactions",
    )

    total_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    transaction_status = models.CharField(max_length=20, default=Status.DRAFT)
    transaction_currency_code = models.CharField(max_length=3)
    metadata = models.JSONField(default=dict, blank=True)

    created_by = models.UUIDField(null=True, blank=True)
    updated_by = models.UUIDField(null=True, blank=True)

    class Meta:
        db_table = "universal_transactions"
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "transaction_code"],
                name="uniq_transaction_code_per_org",
            ),
        ]
        indexes = [
            models.Index(fields=["organization", "transaction_type", "transaction_date"], name="txn_org_type_date_idx"),
            models.Index(fields=["organization", "transaction_status"], name="txn_org_status_idx"),
            models.Index(fields=["organization", "smart_code"], name="txn_org_smart_code_idx"),
        ]
        ordering = ["-transaction_date", "-created_at"]

    def __str__(self):
        return f"{self.transaction_code} ({self.transaction_type}, {self.transaction_status})"

    def full_clean_invariants(self):
        super().full_clean_invariants()
        if not self.transaction_type or not self.transaction_type.strip():
            raise ValidationError("Transaction type is required.")
        self.transaction_type = self.transaction_type.strip().lower()
        for label, entity in (("source", self.source_entity), ("target", self.target_entity)):
            if entity is not None and entity.organization_id != self.organization_id:
                raise ValidationError(f"{label} entity must belong to the transaction's organization.")


class TransactionLine(UniversalModel):
    """
    Ordered detail row. line_number is dense from 1 within a transaction.

    debit_amount/credit_amount are only set on ledger lines; when any line
    carries them the transaction's debits and credits must balance.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name="transaction_lines",
    )
    transaction = models.ForeignKey(
        Transaction,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    line_number = models.PositiveIntegerField()
    line_type = models.CharField(max_length=50, blank=True, default="")
    line_entity = models.ForeignKey(
        Entity,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="transaction_lines",
    )
    description = models.CharField(max_length=500, blank=True, default="")
    quantity = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("1"))
    unit_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    line_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    debit_amount = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    credit_amount = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    smart_code = models.CharField(max_length=255)
    line_data = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "universal_transaction_lines"
        constraints = [
            models.UniqueConstraint(
                fields=["transaction", "line_number"],
                name="uniq_line_number_per_transaction",
            ),
            models.CheckConstraint(
                condition=Q(debit_amount__isnull=True) | Q(debit_amount__gte=0),
                name="line_debit_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(credit_amount__isnull=True) | Q(credit_amount__gte=0),
                name="line_credit_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["organization", "line_entity"], name="line_org_entity_idx"),
        ]
        ordering = ["line_number"]

    def __str__(self):
        return f"{self.transaction_id}#{self.line_number} {self.line_type} {self.line_amount}"

    @property
    def is_ledger_line(self) -> bool:
        return self.debit_amount is not None or self.credit_amount is not None

    def full_clean_invariants(self):
        super().full_clean_invariants()
        if self.line_number is None or self.line_number < 1:
            raise ValidationError("Line number must be a positive integer.")
        if self.transaction_id and self.transaction.organization_id != self.organization_id:
            raise ValidationError("Line must belong to its transaction's organization.")
        if self.line_entity is not None and self.line_entity.organization_id != self.organization_id:
            raise ValidationError("Line entity must belong to the transaction's organization.")
