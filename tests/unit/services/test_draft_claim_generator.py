"""Tests for draft claim generation."""

import pytest

from claimlink.core.exceptions import ValidationError
from claimlink.repositories.assignment_repository import AssignmentRepository
from claimlink.repositories.draft_claim_repository import DraftClaimRepository
from claimlink.schemas.enums import (
    DocumentClassification,
    DocumentSourceType,
    DraftClaimRange,
    DraftClaimStatus,
    MatchReasonType,
    PaymentSignalSource,
)
from claimlink.services.draft_claims.draft_claim_generator import (
    DraftClaimGenerator,
    is_generation_candidate,
    is_within_range,
)
from tests.factories import day, detected, make_claim, make_document, make_draft


def _bill(**overrides):
    fields = {"detected_amounts": [detected(120.0)]}
    fields.update(overrides)
    return make_document(**fields)


class TestEligibility:

    def test_attachment_bill_with_amount(self):
        assert is_generation_candidate(_bill())

    def test_receipt_attachment(self):
        assert is_generation_candidate(_bill(classification=DocumentClassification.RECEIPT))

    def test_override_without_detected_amounts(self):
        document = make_document(
            payment_override={"amount": 50.0, "currency": "EUR", "updated_at": day(0).isoformat()}
        )
        assert is_generation_candidate(document)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"source_type": DocumentSourceType.EMAIL},
            {"classification": DocumentClassification.CORRESPONDENCE},
            {"detected_amounts": []},
            {"archived_at": day(1)},
        ],
    )
    def test_ineligible_documents(self, overrides):
        assert not is_generation_candidate(_bill(**overrides))


class TestDateRange:

    def test_forever_accepts_undated(self):
        assert is_within_range(_bill(date=None), DraftClaimRange.FOREVER, day(10))

    def test_last_week(self):
        now = day(10)
        assert is_within_range(_bill(date=day(4)), DraftClaimRange.LAST_WEEK, now)
        assert is_within_range(_bill(date=day(3)), DraftClaimRange.LAST_WEEK, now)
        assert not is_within_range(_bill(date=day(2)), DraftClaimRange.LAST_WEEK, now)

    def test_last_month(self):
        now = day(40)
        assert is_within_range(_bill(date=day(15)), DraftClaimRange.LAST_MONTH, now)
        assert not is_within_range(_bill(date=day(5)), DraftClaimRange.LAST_MONTH, now)

    def test_future_documents_excluded(self):
        assert not is_within_range(_bill(date=day(11)), DraftClaimRange.LAST_WEEK, day(10))

    def test_undated_never_matches_bounded_range(self):
        assert not is_within_range(_bill(date=None), DraftClaimRange.LAST_MONTH, day(10))


class TestGenerateDraftClaims:

    @pytest.mark.asyncio
    async def test_creates_pending_draft_with_snapshot(self, db_session, persist):
        bill = _bill(detected_amounts=[detected(80.0, confidence=60), detected(120.0, confidence=90)])
        await persist(bill)

        drafts = await DraftClaimGenerator(db_session).generate_draft_claims()

        assert len(drafts) == 1
        draft = drafts[0]
        assert draft.status == DraftClaimStatus.PENDING
        assert draft.primary_document_id == bill.id
        assert draft.document_ids == [str(bill.id)]
        assert draft.payment_snapshot.amount == 120.0
        assert draft.payment_snapshot.source == PaymentSignalSource.DETECTED
        assert draft.payment_proof_document_ids is None

    @pytest.mark.asyncio
    async def test_attaches_payment_proof(self, db_session, persist):
        bill = _bill(email_id="m1")
        proof = make_document(
            source_type=DocumentSourceType.EMAIL,
            classification=DocumentClassification.RECEIPT,
            detected_amounts=[detected(120.0)],
            date=day(2),
        )
        await persist(bill, proof)

        drafts = await DraftClaimGenerator(db_session).generate_draft_claims()

        assert len(drafts) == 1
        assert drafts[0].document_ids == [str(bill.id), str(proof.id)]
        assert drafts[0].payment_proof_document_ids == [str(proof.id)]

    @pytest.mark.asyncio
    async def test_skips_documents_already_assigned_or_drafted(self, db_session, persist):
        assigned = _bill()
        drafted = _bill()
        fresh = _bill()
        claim = make_claim()
        await persist(assigned, drafted, fresh, claim, make_draft(drafted))
        await AssignmentRepository(db_session).create_candidate(
            assigned.id, claim.id, 80, MatchReasonType.EXACT_AMOUNT, "match"
        )

        drafts = await DraftClaimGenerator(db_session).generate_draft_claims()

        assert [draft.primary_document_id for draft in drafts] == [fresh.id]

    @pytest.mark.asyncio
    async def test_second_run_creates_nothing(self, db_session, persist):
        await persist(_bill(), _bill())
        generator = DraftClaimGenerator(db_session)

        first = await generator.generate_draft_claims()
        second = await generator.generate_draft_claims()

        assert len(first) == 2
        assert second == []
        assert len(await DraftClaimRepository(db_session).get_all()) == 2

    @pytest.mark.asyncio
    async def test_range_filters_documents(self, db_session, persist):
        recent = _bill(date=day(8))
        old = _bill(date=day(0))
        undated = _bill(date=None)
        await persist(recent, old, undated)

        drafts = await DraftClaimGenerator(db_session).generate_draft_claims(
            DraftClaimRange.LAST_WEEK, now=day(10)
        )

        assert [draft.primary_document_id for draft in drafts] == [recent.id]

    @pytest.mark.asyncio
    async def test_existing_drafts_are_not_modified(self, db_session, persist):
        drafted = _bill()
        existing = make_draft(drafted, status=DraftClaimStatus.REJECTED)
        await persist(drafted, _bill(), existing)

        await DraftClaimGenerator(db_session).generate_draft_claims()

        assert existing.status == DraftClaimStatus.REJECTED
        assert existing.document_ids == [str(drafted.id)]

    @pytest.mark.asyncio
    async def test_snapshot_survives_document_changes(self, db_session, persist):
        bill = _bill()
        await persist(bill)
        draft = (await DraftClaimGenerator(db_session).generate_draft_claims())[0]

        bill.detected_amounts = [detected(999.0, confidence=100)]
        await db_session.commit()

        assert draft.payment_snapshot.amount == 120.0
        with pytest.raises(ValidationError):
            await DraftClaimRepository(db_session).update_draft_claim(
                draft.id, payment={"amount": 999.0, "currency": "EUR"}
            )
