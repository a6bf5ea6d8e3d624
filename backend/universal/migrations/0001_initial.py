import uuid
from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Organization",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("organization_name", models.CharField(max_length=255)),
                ("organization_code", models.CharField(max_length=50, unique=True)),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive")], default="active", max_length=20)),
                ("settings", models.JSONField(blank=True, default=dict)),
            ],
            options={
                "db_table": "core_organizations",
                "ordering": ["organization_code"],
            },
        ),
        migrations.CreateModel(
            name="Entity",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("entity_type", models.CharField(max_length=100)),
                ("entity_name", models.CharField(blank=True, default="", max_length=255)),
                ("entity_code", models.CharField(blank=True, max_length=100, null=True)),
                ("smart_code", models.CharField(max_length=255)),
                ("status", models.CharField(choices=[("active", "Active"), ("archived", "Archived")], default="active", max_length=20)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_by", models.UUIDField(blank=True, null=True)),
                ("updated_by", models.UUIDField(blank=True, null=True)),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="entities", to="universal.organization")),
            ],
            options={
                "db_table": "core_entities",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["organization", "entity_type"], name="entity_org_type_idx"),
                    models.Index(fields=["organization", "smart_code"], name="entity_org_smart_code_idx"),
                    models.Index(fields=["organization", "status"], name="entity_org_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(entity_code__isnull=False),
                        fields=("organization", "entity_type", "entity_code"),
                        name="uniq_entity_code_per_org_type",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DynamicField",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("field_name", models.CharField(max_length=100)),
                ("field_type", models.CharField(choices=[("text", "Text"), ("number", "Number"), ("boolean", "Boolean"), ("json", "JSON"), ("date", "Date")], max_length=20)),
                ("value_text", models.TextField(blank=True, null=True)),
                ("value_number", models.DecimalField(blank=True, decimal_places=6, max_digits=24, null=True)),
                ("value_boolean", models.BooleanField(blank=True, null=True)),
                ("value_json", models.JSONField(blank=True, null=True)),
                ("value_date", models.DateField(blank=True, null=True)),
                ("smart_code", models.CharField(max_length=255)),
                ("entity", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="dynamic_fields", to="universal.entity")),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="dynamic_fields", to="universal.organization")),
            ],
            options={
                "db_table": "core_dynamic_data",
                "ordering": ["field_name"],
                "indexes": [
                    models.Index(fields=["organization", "field_name"], name="dynamic_org_field_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("entity", "field_name"), name="uniq_dynamic_field_per_entity"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Relationship",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("relationship_type", models.CharField(max_length=100)),
                ("relationship_data", models.JSONField(blank=True, default=dict)),
                ("is_active", models.BooleanField(default=True)),
                ("smart_code", models.CharField(max_length=255)),
                ("created_by", models.UUIDField(blank=True, null=True)),
                ("from_entity", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="outgoing_relationships", to="universal.entity")),
                ("to_entity", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="incoming_relationships", to="universal.entity")),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="relationships", to="universal.organization")),
            ],
            options={
                "db_table": "core_relationships",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["organization", "from_entity", "relationship_type"], name="rel_org_from_type_idx"),
                    models.Index(fields=["organization", "to_entity", "relationship_type"], name="rel_org_to_type_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(is_active=True),
                        fields=("organization", "from_entity", "to_entity", "relationship_type"),
                        name="uniq_active_relationship",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(is_active=True, relationship_type="HAS_STATUS"),
                        fields=("organization", "from_entity"),
                        name="uniq_active_status_per_entity",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("transaction_type", models.CharField(max_length=100)),
                ("transaction_code", models.CharField(max_length=100)),
                ("transaction_date", models.DateTimeField()),
                ("smart_code", models.CharField(max_length=255)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("transaction_status", models.CharField(default="draft", max_length=20)),
                ("transaction_currency_code", models.CharField(max_length=3)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_by", models.UUIDField(blank=True, null=True)),
                ("updated_by", models.UUIDField(blank=True, null=True)),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transactions", to="universal.organization")),
                ("source_entity", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="source_transactions", to="universal.entity")),
                ("target_entity", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="target_transactions", to="universal.entity")),
            ],
            options={
                "db_table": "universal_transactions",
                "ordering": ["-transaction_date", "-created_at"],
                "indexes": [
                    models.Index(fields=["organization", "transaction_type", "transaction_date"], name="txn_org_type_date_idx"),
                    models.Index(fields=["organization", "transaction_status"], name="txn_org_status_idx"),
                    models.Index(fields=["organization", "smart_code"], name="txn_org_smart_code_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("organization", "transaction_code"), name="uniq_transaction_code_per_org"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransactionLine",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("line_number", models.PositiveIntegerField()),
                ("line_type", models.CharField(blank=True, default="", max_length=50)),
                ("description", models.CharField(blank=True, default="", max_length=500)),
                ("quantity", models.DecimalField(decimal_places=4, default=Decimal("1"), max_digits=18)),
                ("unit_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("line_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("debit_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True)),
                ("credit_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True)),
                ("smart_code", models.CharField(max_length=255)),
                ("line_data", models.JSONField(blank=True, default=dict)),
                ("line_entity", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="transaction_lines", to="universal.entity")),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transaction_lines", to="universal.organization")),
                ("transaction", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="universal.transaction")),
            ],
            options={
                "db_table": "universal_transaction_lines",
                "ordering": ["line_number"],
                "indexes": [
                    models.Index(fields=["organization", "line_entity"], name="line_org_entity_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("transaction", "line_number"), name="uniq_line_number_per_transaction"),
                    models.CheckConstraint(
                        condition=models.Q(debit_amount__isnull=True) | models.Q(debit_amount__gte=0),
                        name="line_debit_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(credit_amount__isnull=True) | models.Q(credit_amount__gte=0),
                        name="line_credit_non_negative",
                    ),
                ],
            },
        ),
    ]
