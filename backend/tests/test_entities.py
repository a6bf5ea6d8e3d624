# tests/test_entities.py
"""
Tests for the entity / dynamic-field store.

Tests cover:
- CREATE with dynamic fields and relationships as one unit
- Smart code rejection before any write
- READ by id and by type + filters
- Partial UPDATE (unlisted fields untouched, relationships merged)
- Archive vs hard DELETE and ENTITY_REFERENCED
"""

import pytest
from decimal import Decimal

from entities.commands import create_entity, entity_crud, read_entities, update_entity, delete_entity
from relationships.commands import close_relationship, set_status, status_history
from transactions.commands import create_transaction
from universal.models import DynamicField, Entity, Relationship
from universal.results import ErrorCode
from tests.conftest import CUSTOMER_SMART_CODE, SALE_SMART_CODE


PHONE_SMART_CODE = "HERA.SALON.CUSTOMER.DYN.PHONE.V1"
VISITS_SMART_CODE = "HERA.SALON.CUSTOMER.DYN.VISITS.V1"
TIER_SMART_CODE = "HERA.SALON.TIER.ENTITY.LOYALTY.V1"
HAS_TIER_SMART_CODE = "HERA.SALON.CUSTOMER.REL.TIER.V1"


def _customer_fields():
    return {
        "phone": {"value": "+971500000000", "type": "text", "smart_code": PHONE_SMART_CODE},
        "visits": {"value": 3, "type": "number", "smart_code": VISITS_SMART_CODE},
    }


@pytest.fixture
def tiers(actor):
    tiers = {}
    for code in ("GOLD", "SILVER"):
        result = create_entity(actor, {
            "entity_type": "tier", "entity_name": code.title(), "entity_code": code, "smart_code": TIER_SMART_CODE,
        })
        assert result.success
        tiers[code] = result.data["entity_id"]
    return tiers


@pytest.mark.django_db
class TestCreateEntity:

    def test_create_with_dynamic_fields(self, actor):
        result = entity_crud(
            "CREATE", actor.actor_user_id, actor.organization_id,
            entity={"entity_type": "customer", "entity_name": "Jane", "smart_code": CUSTOMER_SMART_CODE},
            dynamic_fields=_customer_fields(),
        )

        assert result.success, result.error
        assert result.data["entity_id"]
        assert result.data["entity"]["entity_type"] == "CUSTOMER"
        fields = {f["field_name"]: f for f in result.data["dynamic_data"]}
        assert fields["phone"]["value"] == "+971500000000"
        assert fields["visits"]["value"] == "3"
        assert fields["visits"]["field_type"] == "number"

    def test_create_with_relationships(self, actor, tiers):
        result = create_entity(
            actor,
            {"entity_type": "customer", "smart_code": CUSTOMER_SMART_CODE},
            relationships={"has_tier": [tiers["GOLD"]]},
            options={"include_relationships": True,
                     "relationship_smart_code_map": {"HAS_TIER": HAS_TIER_SMART_CODE}},
        )

        assert result.success, result.error
        assert [r["to_entity_id"] for r in result.data["relationships"]] == [tiers["GOLD"]]
        assert result.data["relationships"][0]["relationship_type"] == "HAS_TIER"

    def test_invalid_entity_smart_code_writes_nothing(self, actor):
        before = Entity.objects.count()

        result = create_entity(actor, {"entity_type": "customer", "smart_code": "HERA.SALON.CUSTOMER.V1"})

        assert result.success is False
        assert result.code == ErrorCode.SMART_CODE_INVALID
        assert result.details["field"] == "entity"
        assert Entity.objects.count() == before

    def test_invalid_field_smart_code_writes_nothing(self, actor):
        before = Entity.objects.count()
        fields = _customer_fields()
        fields["phone"]["smart_code"] = "phone"

        result = create_entity(
            actor, {"entity_type": "customer", "smart_code": CUSTOMER_SMART_CODE}, dynamic_fields=fields,
        )

        assert result.code == ErrorCode.SMART_CODE_INVALID
        assert Entity.objects.count() == before
        assert not DynamicField.objects.exists()

    def test_relationship_without_smart_code_is_rejected(self, actor, tiers):
        result = create_entity(
            actor,
            {"entity_type": "customer", "smart_code": CUSTOMER_SMART_CODE},
            relationships={"HAS_TIER": [tiers["GOLD"]]},
        )

        assert result.code == ErrorCode.SMART_CODE_INVALID

    def test_foreign_relationship_target_is_not_found(self, actor, second_actor):
        foreign = create_entity(second_actor, {"entity_type": "tier", "smart_code": TIER_SMART_CODE})

        result = create_entity(
            actor,
            {"entity_type": "customer", "smart_code": CUSTOMER_SMART_CODE},
            relationships={"HAS_TIER": [foreign.data["entity_id"]]},
            options={"relationship_smart_code_map": {"HAS_TIER": HAS_TIER_SMART_CODE}},
        )

        assert result.code == ErrorCode.NOT_FOUND

    def test_bad_field_value_is_validation_error(self, actor):
        result = create_entity(
            actor,
            {"entity_type": "customer", "smart_code": CUSTOMER_SMART_CODE},
            dynamic_fields={"visits": {"value": "many", "type": "number", "smart_code": VISITS_SMART_CODE}},
        )

        assert result.code == ErrorCode.VALIDATION_ERROR
        assert result.details["field"] == "visits"

    def test_duplicate_entity_code_is_rejected(self, actor):
        entity = {"entity_type": "customer", "entity_code": "C-1", "smart_code": CUSTOMER_SMART_CODE}
        assert create_entity(actor, entity).success

        result = create_entity(actor, entity)

        assert result.code == ErrorCode.DUPLICATE

    def test_version_marker_is_normalized(self, actor):
        result = create_entity(actor, {"entity_type": "customer", "smart_code": "HERA.SALON.CUSTOMER.ENTITY.REGULAR.v1"})

        assert result.data["entity"]["smart_code"] == CUSTOMER_SMART_CODE

    def test_unknown_action(self, actor):
        result = entity_crud("MERGE", actor.actor_user_id, actor.organization_id)

        assert result.code == ErrorCode.VALIDATION_ERROR


@pytest.mark.django_db
class TestReadEntities:

    def test_read_by_id(self, actor, customer):
        result = read_entities(actor, {"entity_id": str(customer.id)})

        assert result.success
        assert result.data["entity"]["entity_name"] == "Jane Doe"
        assert result.data["dynamic_data"] == []

    def test_read_unknown_id_is_not_found(self, actor):
        result = read_entities(actor, {"entity_id": "00000000-0000-0000-0000-000000000123"})

        assert result.code == ErrorCode.NOT_FOUND

    def test_query_by_type_and_field_filter(self, actor):
        for name, visits in (("Ann", 1), ("Bob", 3), ("Cy", 3)):
            create_entity(
                actor,
                {"entity_type": "customer", "entity_name": name, "smart_code": CUSTOMER_SMART_CODE},
                dynamic_fields={"visits": {"value": visits, "smart_code": VISITS_SMART_CODE}},
            )

        result = read_entities(actor, {"entity_type": "customer"}, options={"field_filters": {"visits": 3}})

        assert result.success
        assert result.data["total"] == 2
        assert sorted(item["entity"]["entity_name"] for item in result.data["items"]) == ["Bob", "Cy"]

    def test_query_excludes_archived(self, actor, customer):
        delete_entity(actor, {"entity_id": str(customer.id)})

        active = read_entities(actor, {"entity_type": "customer"})
        everything = read_entities(actor, {"entity_type": "customer"}, options={"include_archived": True})

        assert active.data["total"] == 0
        assert everything.data["total"] == 1

    def test_query_limit_is_validated(self, actor):
        result = read_entities(actor, {"entity_type": "customer"}, options={"limit": 0})

        assert result.code == ErrorCode.VALIDATION_ERROR


@pytest.mark.django_db
class TestUpdateEntity:

    def test_unlisted_fields_are_untouched(self, actor):
        created = create_entity(
            actor, {"entity_type": "customer", "smart_code": CUSTOMER_SMART_CODE}, dynamic_fields=_customer_fields(),
        )
        entity_id = created.data["entity_id"]

        result = update_entity(
            actor,
            {"entity_id": entity_id, "entity_name": "Jane Smith"},
            dynamic_fields={"visits": {"value": 4, "smart_code": VISITS_SMART_CODE}},
        )

        assert result.success, result.error
        assert result.data["entity"]["entity_name"] == "Jane Smith"
        fields = {f["field_name"]: f["value"] for f in result.data["dynamic_data"]}
        assert fields == {"phone": "+971500000000", "visits": "4"}

    def test_field_type_change_clears_old_column(self, actor, customer):
        update_entity(actor, {"entity_id": str(customer.id)},
                      dynamic_fields={"note": {"value": 5, "smart_code": PHONE_SMART_CODE}})
        update_entity(actor, {"entity_id": str(customer.id)},
                      dynamic_fields={"note": {"value": "five", "smart_code": PHONE_SMART_CODE}})

        field = DynamicField.objects.get(entity=customer, field_name="note")
        assert field.field_type == "text"
        assert field.value_text == "five"
        assert field.value_number is None

    def test_metadata_is_merged(self, actor):
        created = create_entity(actor, {
            "entity_type": "customer", "smart_code": CUSTOMER_SMART_CODE, "metadata": {"source": "walk-in"},
        })

        result = update_entity(actor, {"entity_id": created.data["entity_id"], "metadata": {"vip": True}})

        assert result.data["entity"]["metadata"] == {"source": "walk-in", "vip": True}

    def test_upsert_mode_keeps_existing_edges(self, actor, customer, tiers):
        options = {"relationship_smart_code_map": {"HAS_TIER": HAS_TIER_SMART_CODE}}
        update_entity(actor, {"entity_id": str(customer.id)}, relationships={"HAS_TIER": [tiers["GOLD"]]}, options=options)
        update_entity(actor, {"entity_id": str(customer.id)}, relationships={"HAS_TIER": [tiers["SILVER"]]}, options=options)

        active = Relationship.objects.filter(from_entity=customer, relationship_type="HAS_TIER", is_active=True)
        assert {str(r.to_entity_id) for r in active} == {tiers["GOLD"], tiers["SILVER"]}

    def test_replace_mode_only_touches_listed_type(self, actor, customer, tiers):
        options = {"relationship_smart_code_map": {"HAS_TIER": HAS_TIER_SMART_CODE, "PREFERS": HAS_TIER_SMART_CODE}}
        update_entity(actor, {"entity_id": str(customer.id)},
                      relationships={"HAS_TIER": [tiers["GOLD"]], "PREFERS": [tiers["GOLD"]]}, options=options)

        update_entity(actor, {"entity_id": str(customer.id)}, relationships={"HAS_TIER": [tiers["SILVER"]]},
                      options={**options, "relationships_mode": "REPLACE"})

        active = Relationship.objects.filter(from_entity=customer, is_active=True)
        assert {(r.relationship_type, str(r.to_entity_id)) for r in active} == {
            ("HAS_TIER", tiers["SILVER"]),
            ("PREFERS", tiers["GOLD"]),
        }

    def test_entity_type_is_immutable(self, actor, customer):
        result = update_entity(actor, {"entity_id": str(customer.id), "entity_type": "vendor"})

        assert result.code == ErrorCode.IMMUTABLE_FIELD

    def test_unknown_field_is_rejected(self, actor, customer):
        result = update_entity(actor, {"entity_id": str(customer.id), "colour": "red"})

        assert result.code == ErrorCode.VALIDATION_ERROR

    def test_archived_entity_must_be_restored_first(self, actor, customer):
        delete_entity(actor, {"entity_id": str(customer.id)})

        rename = update_entity(actor, {"entity_id": str(customer.id), "entity_name": "Ghost"})
        restore = update_entity(actor, {"entity_id": str(customer.id), "status": "active"})

        assert rename.code == ErrorCode.INVALID_STATUS
        assert restore.success


@pytest.mark.django_db
class TestDeleteEntity:

    def test_soft_delete_is_default(self, actor, customer):
        result = delete_entity(actor, {"entity_id": str(customer.id)})

        assert result.data == {"entity_id": str(customer.id), "deleted": False, "archived": True}
        customer.refresh_from_db()
        assert customer.status == Entity.Status.ARCHIVED

    def test_hard_delete_removes_entity_and_fields(self, actor):
        created = create_entity(
            actor, {"entity_type": "customer", "smart_code": CUSTOMER_SMART_CODE}, dynamic_fields=_customer_fields(),
        )
        entity_id = created.data["entity_id"]

        result = delete_entity(actor, {"entity_id": entity_id}, options={"soft_delete": False})

        assert result.success
        assert not Entity.objects.filter(pk=entity_id).exists()
        assert not DynamicField.objects.filter(entity_id=entity_id).exists()

    def test_hard_delete_of_referenced_entity_is_rejected(self, actor, customer):
        create_transaction(
            actor,
            {"transaction_type": "sale", "smart_code": SALE_SMART_CODE, "source_entity_id": str(customer.id)},
            [{"line_type": "service", "line_amount": "10.00", "line_entity_id": str(customer.id)}],
        )

        result = delete_entity(actor, {"entity_id": str(customer.id)}, options={"soft_delete": False})

        assert result.code == ErrorCode.ENTITY_REFERENCED
        assert Entity.objects.filter(pk=customer.id).exists()

    def test_hard_delete_with_active_relationship_is_rejected(self, actor, customer, tiers):
        update_entity(actor, {"entity_id": str(customer.id)}, relationships={"HAS_TIER": [tiers["GOLD"]]},
                      options={"relationship_smart_code_map": {"HAS_TIER": HAS_TIER_SMART_CODE}})

        result = delete_entity(actor, {"entity_id": tiers["GOLD"]}, options={"soft_delete": False})

        assert result.code == ErrorCode.ENTITY_REFERENCED

    def test_hard_delete_of_status_marker_keeps_history(self, actor, customer):
        set_status(actor, str(customer.id), "PENDING")
        set_status(actor, str(customer.id), "CONFIRMED")
        marker = Entity.objects.get(entity_type="STATUS", entity_code="PENDING")

        result = delete_entity(actor, {"entity_id": str(marker.id)}, options={"soft_delete": False})

        assert result.code == ErrorCode.ENTITY_REFERENCED
        assert Entity.objects.filter(pk=marker.id).exists()
        assert status_history(actor, str(customer.id)).data["total"] == 2

    def test_hard_delete_after_closing_relationships_is_rejected(self, actor, customer, tiers):
        update_entity(actor, {"entity_id": str(customer.id)}, relationships={"HAS_TIER": [tiers["GOLD"]]},
                      options={"relationship_smart_code_map": {"HAS_TIER": HAS_TIER_SMART_CODE}})
        close_relationship(actor, str(Relationship.objects.get(to_entity_id=tiers["GOLD"]).id))

        result = delete_entity(actor, {"entity_id": tiers["GOLD"]}, options={"soft_delete": False})

        assert result.code == ErrorCode.ENTITY_REFERENCED
        assert Relationship.objects.filter(to_entity_id=tiers["GOLD"]).count() == 1

    def test_value_number_round_trip(self, actor, customer):
        update_entity(actor, {"entity_id": str(customer.id)},
                      dynamic_fields={"balance": {"value": "12.50", "type": "number", "smart_code": VISITS_SMART_CODE}})

        field = DynamicField.objects.get(entity=customer, field_name="balance")
        assert field.value == Decimal("12.5")
