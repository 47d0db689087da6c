# Overview: Pytest coverage for the sales integrity audit and repair.

"""
Integrity Service Tests

Scenario used throughout: reference tables were bulk-replaced, so some
sales point at clients, packs or representatives that no longer exist.

Verifies:
1. audit() reports one defect per broken field, in stable order
2. repair() synthesizes one placeholder client per broken value and reuses it
3. broken packs go to the first pack by id; no pack is created
4. broken representatives are reported, never changed
5. repair is idempotent and never deletes a sale
"""

from sqlalchemy import text

from salestrack.models import Client, Sale
from salestrack.services.integrity_service import (
    Defect,
    audit,
    is_consistent,
    placeholder_client_id,
    repair,
    summarize,
)

from conftest import make_sale


def _client_count(db_session):
    return db_session.query(Client).count()


class TestAudit:

    def test_consistent_store_has_no_defects(self, store, sales):
        assert audit(store) == []
        assert is_consistent(store)

    def test_reports_broken_client(self, store, db_session, reference_data):
        make_sale(db_session, 7, client_id=999, pack_id=1, representative_id=1)

        assert audit(store) == [Defect(sale_id=7, broken_field="client", broken_value=999)]
        assert not is_consistent(store)

    def test_one_defect_per_broken_field(self, store, db_session, reference_data):
        make_sale(db_session, 9, client_id=500, representative_id=77, pack_id=88)
        make_sale(db_session, 8, pack_id=42)
        make_sale(db_session, 10)

        defects = audit(store)

        assert [(d.sale_id, d.broken_field, d.broken_value) for d in defects] == [
            (8, "pack", 42),
            (9, "client", 500),
            (9, "representative", 77),
            (9, "pack", 88),
        ]

    def test_audit_is_read_only(self, store, db_session, reference_data):
        make_sale(db_session, 7, client_id=999)
        before = store.read_all("sales")
        audit(store)
        assert store.read_all("sales") == before

    def test_summarize_counts_tables_and_defects(self, store, db_session, sales):
        make_sale(db_session, 7, client_id=999, pack_id=55)

        summary = summarize(store)

        assert summary.counts["sales"] == 4
        assert summary.counts["clients"] == 2
        assert summary.defects_by_field == {"client": 1, "representative": 0, "pack": 1}
        assert summary.total_defects == 2
        assert summary.affected_sales == 1


class TestRepairClient:

    def test_example_scenario(self, store, db_session, reference_data):
        make_sale(db_session, 7, client_id=999, pack_id=1, representative_id=1)

        result = repair(store, audit(store))

        placeholder = db_session.query(Client).filter_by(client_id="PLACEHOLDER_999").one()
        assert placeholder.full_name == "Client 999 (Historical)"
        assert placeholder.wilaya == "Unknown"
        assert store.get("sales", 7)["client_id"] == placeholder.id

        assert result.resolved == 1
        assert result.placeholders_created == 1
        assert result.placeholders_reused == 0
        assert result.unresolved == []
        assert result.remaining_defects == 0
        assert audit(store) == []

    def test_placeholder_reused_for_same_broken_value(self, store, db_session, reference_data):
        make_sale(db_session, 7, client_id=999)
        make_sale(db_session, 8, client_id=999)
        clients_before = _client_count(db_session)

        result = repair(store, audit(store))

        assert result.placeholders_created == 1
        assert result.placeholders_reused == 1
        assert _client_count(db_session) == clients_before + 1
        assert store.get("sales", 7)["client_id"] == store.get("sales", 8)["client_id"]

    def test_distinct_broken_values_get_distinct_placeholders(self, store, db_session, reference_data):
        make_sale(db_session, 7, client_id=998)
        make_sale(db_session, 8, client_id=999)

        result = repair(store, audit(store))

        assert result.placeholders_created == 2
        assert store.get("sales", 7)["client_id"] != store.get("sales", 8)["client_id"]

    def test_existing_placeholder_from_earlier_run_is_reused(self, store, db_session, reference_data):
        db_session.add(Client(id=50, client_id=placeholder_client_id(999),
                              full_name="Client 999 (Historical)", wilaya="Unknown"))
        db_session.commit()
        make_sale(db_session, 7, client_id=999)

        result = repair(store, audit(store))

        assert result.placeholders_created == 0
        assert result.placeholders_reused == 1
        assert store.get("sales", 7)["client_id"] == 50

    def test_relinks_to_client_with_matching_external_id(self, store, db_session, reference_data):
        db_session.add(Client(id=60, client_id="321", full_name="Reimported Client", wilaya="Setif"))
        db_session.commit()
        make_sale(db_session, 7, client_id=321)

        result = repair(store, audit(store))

        assert result.relinked == 1
        assert result.placeholders_created == 0
        assert store.get("sales", 7)["client_id"] == 60

    def test_new_placeholder_id_does_not_absorb_later_broken_value(self, store, db_session, reference_data):
        # Clients table rebuilt: next autoincrement id is 3
        db_session.execute(text("DELETE FROM sqlite_sequence WHERE name = 'clients'"))
        db_session.commit()
        make_sale(db_session, 7, client_id=999)
        make_sale(db_session, 8, client_id=3)

        result = repair(store, audit(store))

        placeholder_999 = store.find("clients", client_id="PLACEHOLDER_999")[0]
        placeholder_3 = store.find("clients", client_id="PLACEHOLDER_3")[0]
        assert placeholder_999["id"] == 3
        assert store.get("sales", 7)["client_id"] == 3
        assert store.get("sales", 8)["client_id"] == placeholder_3["id"]
        assert placeholder_3["full_name"] == "Client 3 (Historical)"
        assert result.placeholders_created == 2
        assert result.skipped == 0
        assert result.resolved == 2

    def test_string_broken_value_is_matched_against_integer_column(self, store, db_session, reference_data):
        make_sale(db_session, 7, client_id=999)

        result = repair(store, [{"sale_id": 7, "broken_field": "client", "broken_value": "999"}])

        assert result.skipped == 0
        assert result.placeholders_created == 1
        assert store.get("clients", store.get("sales", 7)["client_id"])["client_id"] == "PLACEHOLDER_999"

    def test_non_numeric_broken_value_is_unresolved(self, store, db_session, reference_data):
        make_sale(db_session, 7, client_id=999)

        result = repair(store, [{"sale_id": 7, "broken_field": "client", "broken_value": "abc"}])

        assert result.unresolved[0]["reason"] == "client_id must be an integer"
        assert store.get("sales", 7)["client_id"] == 999


class TestRepairPackAndRepresentative:

    def test_broken_pack_reassigned_to_first_pack(self, store, db_session, reference_data):
        make_sale(db_session, 7, pack_id=42)

        result = repair(store, audit(store))

        assert result.reassigned == 1
        assert result.resolved == 1
        assert store.get("sales", 7)["pack_id"] == 1
        assert store.count("packs") == 2

    def test_broken_pack_without_any_pack_is_unresolved(self, store, db_session, reference_data):
        store.delete("pack_articles", (1, 1))
        store.delete("packs", 1)
        store.delete("packs", 2)
        store.commit()
        make_sale(db_session, 7, pack_id=1)

        result = repair(store, audit(store))

        assert result.resolved == 0
        assert result.unresolved == [{
            "sale_id": 7, "broken_field": "pack", "broken_value": 1,
            "reason": "no pack available to reassign to",
        }]
        assert result.remaining_defects == 1

    def test_broken_representative_is_reported_not_changed(self, store, db_session, reference_data):
        make_sale(db_session, 7, representative_id=77)

        result = repair(store, audit(store))

        assert result.resolved == 0
        assert len(result.unresolved) == 1
        assert result.unresolved[0]["broken_field"] == "representative"
        assert "no repair strategy" in result.unresolved[0]["reason"]
        assert store.get("sales", 7)["representative_id"] == 77
        assert result.remaining_defects == 1

    def test_mixed_defects_on_one_sale(self, store, db_session, reference_data):
        make_sale(db_session, 9, client_id=500, representative_id=77, pack_id=88)

        result = repair(store, audit(store))

        sale = store.get("sales", 9)
        assert sale["pack_id"] == 1
        assert store.get("clients", sale["client_id"])["client_id"] == "PLACEHOLDER_500"
        assert result.resolved == 2
        assert [u["broken_field"] for u in result.unresolved] == ["representative"]
        assert audit(store) == [Defect(9, "representative", 77)]


class TestRepairSafety:

    def test_second_run_changes_nothing(self, store, db_session, reference_data):
        make_sale(db_session, 7, client_id=999)
        make_sale(db_session, 8, pack_id=42)
        repair(store, audit(store))
        clients_after_first = _client_count(db_session)
        sales_after_first = store.read_all("sales")

        second = repair(store, audit(store))

        assert second.resolved == 0
        assert second.placeholders_created == 0
        assert _client_count(db_session) == clients_after_first
        assert store.read_all("sales") == sales_after_first

    def test_stale_defect_list_is_skipped(self, store, db_session, reference_data):
        make_sale(db_session, 7, client_id=999)
        defects = audit(store)
        repair(store, defects)
        sales_after_first = store.read_all("sales")

        again = repair(store, defects)

        assert again.skipped == 1
        assert again.resolved == 0
        assert again.placeholders_created == 0
        assert store.read_all("sales") == sales_after_first

    def test_consistent_sale_in_defect_list_is_not_touched(self, store, db_session, sales):
        result = repair(store, [Defect(sale_id=1, broken_field="client", broken_value=1)])

        assert result.skipped == 1
        assert store.get("sales", 1)["client_id"] == 1

    def test_missing_sale_is_reported(self, store, db_session, reference_data):
        result = repair(store, [{"sale_id": 404, "broken_field": "client", "broken_value": 3}])

        assert result.unresolved == [{
            "sale_id": 404, "broken_field": "client", "broken_value": 3, "reason": "sale not found",
        }]

    def test_unknown_field_is_reported(self, store, db_session, sales):
        result = repair(store, [Defect(sale_id=1, broken_field="gift", broken_value=1)])
        assert result.unresolved[0]["reason"] == "unknown field: gift"

    def test_no_sale_is_ever_deleted(self, store, db_session, sales):
        make_sale(db_session, 7, client_id=999, representative_id=77, pack_id=42)
        make_sale(db_session, 8, client_id=998)
        ids_before = {row["id"] for row in store.read_all("sales")}

        result = repair(store, audit(store))

        ids_after = {row["id"] for row in store.read_all("sales")}
        assert ids_after == ids_before
        unresolved_sales = {u["sale_id"] for u in result.unresolved}
        for defect in audit(store):
            assert defect.sale_id in unresolved_sales
        assert db_session.query(Sale).count() == 5
