# entities/serializers.py
"""
Serializers for the entity API.

EntityRequestSerializer validates the request envelope only. Field-level
business rules (smart codes, dynamic field types, organization scope) are
checked by entities/commands.py, which the view calls with the validated
envelope.
"""

from rest_framework import serializers


class EntityRequestSerializer(serializers.Serializer):
    ACTIONS = ("CREATE", "READ", "UPDATE", "DELETE")

    action = serializers.CharField()
    actor_user_id = serializers.UUIDField()
    organization_id = serializers.UUIDField()
    entity = serializers.DictField(required=False, default=dict)
    dynamic_fields = serializers.DictField(required=False, default=dict)
    relationships = serializers.DictField(required=False, default=dict)
    options = serializers.DictField(required=False, default=dict)

    def validate_action(self, value):
        value = value.upper()
        if value not in self.ACTIONS:
            raise serializers.ValidationError(f"Must be one of {', '.join(self.ACTIONS)}.")
        return value

    def validate_relationships(self, value):
        for rel_type, targets in value.items():
            if not isinstance(targets, list):
                raise serializers.ValidationError(f"{rel_type}: expected a list of entity ids.")
        return value


def serialize_dynamic_field(field) -> dict:
    value = field.value
    if field.field_type == "number" and value is not None:
        value = format(value.normalize(), "f")
    elif field.field_type == "date" and value is not None:
        value = value.isoformat()
    return {
        "field_name": field.field_name,
        "field_type": field.field_type,
        "value": value,
        "smart_code": field.smart_code,
        "updated_at": field.updated_at.isoformat() if field.updated_at else None,
    }


def serialize_entity(entity) -> dict:
    return {
        "id": str(entity.id),
        "organization_id": str(entity.organization_id),
        "entity_type": entity.entity_type,
        "entity_name": entity.entity_name,
        "entity_code": entity.entity_code,
        "smart_code": entity.smart_code,
        "status": entity.status,
        "metadata": entity.metadata,
        "created_by": str(entity.created_by) if entity.created_by else None,
        "updated_by": str(entity.updated_by) if entity.updated_by else None,
        "created_at": entity.created_at.isoformat() if entity.created_at else None,
        "updated_at": entity.updated_at.isoformat() if entity.updated_at else None,
    }
