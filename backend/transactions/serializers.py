# transactions/serializers.py
"""
Serializers for the transaction API.

Note: These serializers are used for:
1. Input validation of the request envelope
2. Output formatting of transactions and lines

The actual business logic happens in commands.py.
"""

from decimal import Decimal, InvalidOperation

from rest_framework import serializers


MONEY_Q = Decimal("0.01")
QUANTITY_Q = Decimal("0.0001")


class AmountError(ValueError):
    pass


def to_decimal(x, default=Decimal("0.00")) -> Decimal:
    """Convert input to Decimal, handling various input types."""
    if x is None or x == "":
        return default
    if isinstance(x, bool):
        raise AmountError("Invalid decimal amount.")
    if isinstance(x, Decimal):
        value = x
    else:
        try:
            value = Decimal(str(x))
        except (InvalidOperation, ValueError, TypeError):
            raise AmountError("Invalid decimal amount.")
    if not value.is_finite():
        raise AmountError("Invalid decimal amount.")
    return value


def money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_Q)


def money_str(value) -> str | None:
    if value is None:
        return None
    return str(money(value))


class TransactionRequestSerializer(serializers.Serializer):
    ACTIONS = ("CREATE", "READ", "QUERY", "UPDATE", "DELETE", "VOID", "REVERSE")

    action = serializers.CharField()
    actor_user_id = serializers.UUIDField()
    organization_id = serializers.UUIDField()
    transaction = serializers.DictField(required=False, default=dict)
    lines = serializers.ListField(child=serializers.DictField(), required=False, default=list)
    options = serializers.DictField(required=False, default=dict)

    def validate_action(self, value):
        value = value.upper()
        if value not in self.ACTIONS:
            raise serializers.ValidationError(f"Must be one of {', '.join(self.ACTIONS)}.")
        return value


def serialize_line(line) -> dict:
    return {
        "id": str(line.id),
        "line_number": line.line_number,
        "line_type": line.line_type,
        "line_entity_id": str(line.line_entity_id) if line.line_entity_id else None,
        "description": line.description,
        "quantity": str(line.quantity.quantize(QUANTITY_Q)),
        "unit_amount": money_str(line.unit_amount),
        "line_amount": money_str(line.line_amount),
        "debit_amount": money_str(line.debit_amount),
        "credit_amount": money_str(line.credit_amount),
        "smart_code": line.smart_code,
        "line_data": line.line_data,
    }


def serialize_transaction(txn, lines=None) -> dict:
    data = {
        "id": str(txn.id),
        "organization_id": str(txn.organization_id),
        "transaction_type": txn.transaction_type,
        "transaction_code": txn.transaction_code,
        "transaction_date": txn.transaction_date.isoformat(),
        "smart_code": txn.smart_code,
        "source_entity_id": str(txn.source_entity_id) if txn.source_entity_id else None,
        "target_entity_id": str(txn.target_entity_id) if txn.target_entity_id else None,
        "total_amount": money_str(txn.total_amount),
        "transaction_status": txn.transaction_status,
        "transaction_currency_code": txn.transaction_currency_code,
        "metadata": txn.metadata,
        "created_by": str(txn.created_by) if txn.created_by else None,
        "updated_by": str(txn.updated_by) if txn.updated_by else None,
        "created_at": txn.created_at.isoformat() if txn.created_at else None,
        "updated_at": txn.updated_at.isoformat() if txn.updated_at else None,
    }
    if lines is not None:
        data["lines"] = [serialize_line(line) for line in lines]
    return data
