# Overview: Pytest coverage for reference number generation and allocation.

import re

import pytest
from sqlalchemy import event, insert

from conftest import WAREHOUSE_ACTOR_ID
from stockledger.errors import ConcurrencyError, ConflictError
from stockledger.models import Distribution, StockAccount
from stockledger.services import distribution_service, reference_service
from stockledger.time_utils import utcnow


class TestGenerateReference:
    def test_format(self):
        reference = reference_service.generate_reference("DIST")
        assert re.match(r"^DIST-\d{6}-\d{3}$", reference)

    def test_uses_last_six_clock_digits(self):
        reference = reference_service.generate_reference("ORD", now_ms=1760000123456)
        assert reference.startswith("ORD-123456-")

    def test_short_clock_is_zero_padded(self):
        reference = reference_service.generate_reference("EOD", now_ms=42)
        assert reference.startswith("EOD-000042-")

    def test_prefix_required(self):
        with pytest.raises(ValueError):
            reference_service.generate_reference("")


class TestInsertWithReference:
    def test_taken_candidate_is_skipped(self, app, db_session, stocked, monkeypatch):
        existing = distribution_service.distribute_retail(
            None, [{"product_id": stocked.id, "quantity": 1}], actor_id=WAREHOUSE_ACTOR_ID
        )
        candidates = iter([existing.reference_number, "RTL-000001-001"])
        monkeypatch.setattr(reference_service, "generate_reference", lambda prefix: next(candidates))

        second = distribution_service.distribute_retail(
            None, [{"product_id": stocked.id, "quantity": 1}], actor_id=WAREHOUSE_ACTOR_ID
        )

        assert second.reference_number == "RTL-000001-001"

    def test_exhausted_attempts_conflict_without_side_effects(self, app, db_session, stocked, monkeypatch):
        existing = distribution_service.distribute_retail(
            None, [{"product_id": stocked.id, "quantity": 1}], actor_id=WAREHOUSE_ACTOR_ID
        )
        monkeypatch.setattr(reference_service, "generate_reference", lambda prefix: existing.reference_number)

        with pytest.raises(ConflictError):
            distribution_service.distribute_retail(
                None, [{"product_id": stocked.id, "quantity": 1}], actor_id=WAREHOUSE_ACTOR_ID
            )

        assert db_session.query(Distribution).count() == 1
        account = db_session.query(StockAccount).filter_by(product_id=stocked.id).one()
        assert account.warehouse_stock == 99

    def test_reference_claimed_between_check_and_flush(self, app, db_session, stocked, monkeypatch):
        existing = distribution_service.distribute_retail(
            None, [{"product_id": stocked.id, "quantity": 1}], actor_id=WAREHOUSE_ACTOR_ID
        )
        monkeypatch.setattr(reference_service, "generate_reference", lambda prefix: "RTL-000002-002")
        session = db_session()
        claimed = []

        # Another writer inserts the same number after the "taken" check passed
        def claim_first(flush_session, flush_context, instances):
            if claimed:
                return
            if any(isinstance(obj, Distribution) for obj in flush_session.new):
                claimed.append(True)
                now = utcnow()
                flush_session.connection().execute(
                    insert(Distribution.__table__).values(
                        distribution_type="retail",
                        reference_number="RTL-000002-002",
                        status="completed",
                        total_amount_cents=0,
                        created_by=WAREHOUSE_ACTOR_ID,
                        distribution_date=now,
                        created_at=now,
                        updated_at=now,
                    )
                )

        event.listen(session, "before_flush", claim_first)
        try:
            with pytest.raises(ConcurrencyError) as exc_info:
                distribution_service.distribute_retail(
                    None, [{"product_id": stocked.id, "quantity": 1}], actor_id=WAREHOUSE_ACTOR_ID
                )
        finally:
            event.remove(session, "before_flush", claim_first)

        assert claimed
        assert exc_info.value.context["reference_number"] == "RTL-000002-002"
        assert [d.reference_number for d in db_session.query(Distribution).all()] == [existing.reference_number]
        account = db_session.query(StockAccount).filter_by(product_id=stocked.id).one()
        assert account.warehouse_stock == 99
