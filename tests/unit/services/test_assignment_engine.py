"""Tests for the assignment engine."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from claimlink.core.config import MatchingSettings
from claimlink.core.exceptions import ClaimNotFoundError, DocumentNotFoundError, MatchingError
from claimlink.repositories.assignment_repository import AssignmentRepository
from claimlink.schemas.enums import (
    AssignmentStatus,
    DocumentClassification,
    DraftClaimStatus,
    MatchReasonType,
)
from claimlink.services.matching.assignment_engine import AssignmentEngine, is_matchable
from claimlink.services.matching.match_scorer import MatchScorer
from tests.factories import (
    day,
    detected,
    make_calendar_event,
    make_claim,
    make_document,
    make_draft,
)


class TestIsMatchable:

    def test_document_with_amounts(self):
        assert is_matchable(make_document(detected_amounts=[detected(10.0)]))

    def test_dated_calendar_event(self):
        assert is_matchable(make_calendar_event(day(0)))

    def test_undated_calendar_event(self):
        assert not is_matchable(make_calendar_event(None))

    def test_document_without_amounts(self):
        assert not is_matchable(make_document())


class TestMatchDocument:

    @pytest.mark.asyncio
    async def test_creates_candidate_for_exact_match(self, db_session, persist):
        document = make_document(date=day(0), detected_amounts=[detected(120.0)])
        claim = make_claim(amount=120.0, treatment_date=day(3))
        await persist(document, claim)

        assignments = await AssignmentEngine(db_session).match_document(document)

        assert len(assignments) == 1
        assignment = assignments[0]
        assert assignment.claim_id == claim.id
        assert assignment.status == AssignmentStatus.CANDIDATE
        assert assignment.match_reason_type == MatchReasonType.EXACT_AMOUNT
        assert "Exact amount match" in assignment.match_reason
        assert assignment.amount_match_details["document_amount"] == 120.0
        assert assignment.date_match_details["days_difference"] == 3

    @pytest.mark.asyncio
    async def test_unmatchable_document_is_skipped(self, db_session, persist):
        document = make_document()
        await persist(document, make_claim())

        assert await AssignmentEngine(db_session).match_document(document) == []

    @pytest.mark.asyncio
    async def test_matching_twice_is_idempotent(self, db_session, persist):
        document = make_document(date=day(0), detected_amounts=[detected(120.0)])
        await persist(
            document,
            make_claim(amount=120.0, treatment_date=day(1)),
            make_claim(amount=115.0, treatment_date=day(2)),
        )
        engine = AssignmentEngine(db_session)

        first = await engine.match_document(document)
        second = await engine.match_document(document)

        assert [(a.id, a.match_score) for a in first] == [(a.id, a.match_score) for a in second]
        assert len(await AssignmentRepository(db_session).get_all()) == 2

    @pytest.mark.asyncio
    async def test_rematch_rescores_candidate_in_place(self, db_session, persist):
        document = make_document(date=day(0), detected_amounts=[detected(120.0)])
        claim = make_claim(amount=120.0, treatment_date=day(3))
        await persist(document, claim)
        engine = AssignmentEngine(db_session)
        first = (await engine.match_document(document))[0]
        assert first.match_reason_type == MatchReasonType.EXACT_AMOUNT

        claim.claim_amount = 125.0
        await db_session.commit()
        second = (await engine.match_document(document))[0]

        expected = MatchScorer(MatchingSettings()).calculate_match_score(document, claim)
        assert second.id == first.id
        assert second.match_score == pytest.approx(expected.score)
        assert second.match_reason_type == MatchReasonType.APPROXIMATE_AMOUNT
        assert second.match_reason == expected.reason_text
        assert second.amount_match_details["claim_amount"] == 125.0
        assert len(await AssignmentRepository(db_session).get_all()) == 1

    @pytest.mark.asyncio
    async def test_keeps_top_candidates_sorted(self, db_session, persist):
        document = make_document(date=day(0), detected_amounts=[detected(100.0)])
        claims = [make_claim(amount=100.0, treatment_date=day(offset)) for offset in range(4)]
        await persist(document, *claims)
        engine = AssignmentEngine(db_session, config=MatchingSettings(max_candidates_per_document=2))

        assignments = await engine.match_document(document)

        assert [a.claim_id for a in assignments] == [claims[0].id, claims[1].id]
        assert assignments[0].match_score > assignments[1].match_score

    @pytest.mark.asyncio
    async def test_stale_candidates_cleared_reviewed_rows_kept(self, db_session, persist):
        document = make_document(date=day(0), detected_amounts=[detected(120.0)])
        matching_claim = make_claim(amount=120.0, treatment_date=day(0))
        stale_claim = make_claim(amount=999.0, treatment_date=day(0))
        confirmed_claim = make_claim(amount=555.0, treatment_date=day(0))
        await persist(document, matching_claim, stale_claim, confirmed_claim)

        repo = AssignmentRepository(db_session)
        stale = await repo.create_candidate(
            document.id, stale_claim.id, 70, MatchReasonType.APPROXIMATE_AMOUNT, "old"
        )
        confirmed = await repo.create_candidate(
            document.id, confirmed_claim.id, 90, MatchReasonType.MANUAL, "manual"
        )
        await repo.transition(confirmed, AssignmentStatus.CONFIRMED)

        await AssignmentEngine(db_session).match_document(document)

        remaining = {a.claim_id: a for a in await repo.get_for_document(document.id)}
        assert stale_claim.id not in remaining
        assert remaining[confirmed_claim.id].status == AssignmentStatus.CONFIRMED
        assert remaining[matching_claim.id].status == AssignmentStatus.CANDIDATE
        assert stale.id not in {a.id for a in remaining.values()}

    @pytest.mark.asyncio
    async def test_existing_reviewed_pair_returned_unchanged(self, db_session, persist):
        document = make_document(date=day(0), detected_amounts=[detected(120.0)])
        claim = make_claim(amount=120.0, treatment_date=day(0))
        await persist(document, claim)
        repo = AssignmentRepository(db_session)
        rejected = await repo.create_candidate(document.id, claim.id, 55, MatchReasonType.MANUAL, "x")
        await repo.transition(rejected, AssignmentStatus.REJECTED)

        assignments = await AssignmentEngine(db_session).match_document(document)

        assert [a.id for a in assignments] == [rejected.id]
        assert assignments[0].status == AssignmentStatus.REJECTED
        assert assignments[0].match_score == 55

    @pytest.mark.asyncio
    async def test_scoring_failure_aborts(self):
        scorer = MagicMock()
        scorer.calculate_match_score.side_effect = RuntimeError("boom")
        assignment_repo = AsyncMock()
        engine = AssignmentEngine(
            MagicMock(),
            scorer=scorer,
            claim_repo=AsyncMock(get_all=AsyncMock(return_value=[make_claim()])),
            assignment_repo=assignment_repo,
        )

        with pytest.raises(MatchingError) as exc_info:
            await engine.match_document(make_document(detected_amounts=[detected(1.0)]))

        assert isinstance(exc_info.value.original_error, RuntimeError)
        assignment_repo.clear_candidates_for_document.assert_not_called()
        assignment_repo.create_candidate.assert_not_called()


class TestBatchMatching:

    @pytest.mark.asyncio
    async def test_match_all_documents_filters_matchable(self, db_session, persist):
        bill = make_document(date=day(0), detected_amounts=[detected(120.0)])
        receipt = make_document(
            date=day(0),
            classification=DocumentClassification.RECEIPT,
            detected_amounts=[detected(120.0)],
        )
        event = make_calendar_event(day(0))
        await persist(bill, receipt, event, make_claim(amount=120.0, treatment_date=day(0)))

        assignments = await AssignmentEngine(db_session).match_all_documents()

        assert {a.document_id for a in assignments} == {bill.id, event.id}

    @pytest.mark.asyncio
    async def test_match_documents_by_ids_dedupes_and_skips_missing(self, db_session, persist):
        bill = make_document(date=day(0), detected_amounts=[detected(120.0)])
        await persist(bill, make_claim(amount=120.0, treatment_date=day(0)))

        assignments = await AssignmentEngine(db_session).match_documents_by_ids(
            [bill.id, str(bill.id), uuid4(), "not-a-uuid"]
        )

        assert len(assignments) == 1

    @pytest.mark.asyncio
    async def test_match_document_by_id_not_found(self, db_session):
        with pytest.raises(DocumentNotFoundError):
            await AssignmentEngine(db_session).match_document_by_id(uuid4())

    @pytest.mark.asyncio
    async def test_match_accepted_draft_claims(self, db_session, persist):
        accepted_doc = make_document(date=day(0), detected_amounts=[detected(120.0)])
        pending_doc = make_document(date=day(0), detected_amounts=[detected(120.0)])
        await persist(
            accepted_doc,
            pending_doc,
            make_claim(amount=120.0, treatment_date=day(0)),
            make_draft(accepted_doc, status=DraftClaimStatus.ACCEPTED),
            make_draft(pending_doc),
        )

        assignments = await AssignmentEngine(db_session).match_accepted_draft_claims()

        assert [a.document_id for a in assignments] == [accepted_doc.id]


class TestManualAssignment:

    @pytest.mark.asyncio
    async def test_creates_full_score_manual_candidate(self, db_session, persist):
        document, claim = make_document(), make_claim()
        await persist(document, claim)

        assignment = await AssignmentEngine(db_session).create_manual_assignment(
            document.id, claim.id, "Matched by hand"
        )

        assert assignment.match_score == 100
        assert assignment.match_reason_type == MatchReasonType.MANUAL
        assert assignment.match_reason == "Matched by hand"
        assert assignment.status == AssignmentStatus.CANDIDATE

    @pytest.mark.asyncio
    async def test_returns_existing_pair(self, db_session, persist):
        document, claim = make_document(), make_claim()
        await persist(document, claim)
        engine = AssignmentEngine(db_session)

        first = await engine.create_manual_assignment(document.id, claim.id)
        second = await engine.create_manual_assignment(document.id, claim.id, "again")

        assert first.id == second.id
        assert second.match_reason == "Manually assigned by user"

    @pytest.mark.asyncio
    async def test_unknown_claim(self, db_session, persist):
        document = make_document()
        await persist(document)

        with pytest.raises(ClaimNotFoundError):
            await AssignmentEngine(db_session).create_manual_assignment(document.id, uuid4())


class TestMatchStats:

    @pytest.mark.asyncio
    async def test_stats_from_stored_assignments(self, db_session, persist):
        doc_a = make_document(detected_amounts=[detected(1.0)])
        doc_b = make_document()
        claim_a, claim_b = make_claim(), make_claim()
        await persist(doc_a, doc_b, claim_a, claim_b)
        repo = AssignmentRepository(db_session)
        await repo.create_candidate(doc_a.id, claim_a.id, 95, MatchReasonType.EXACT_AMOUNT, "a")
        low = await repo.create_candidate(doc_a.id, claim_b.id, 55, MatchReasonType.DATE_PROXIMITY, "b")
        await repo.transition(low, AssignmentStatus.REJECTED)

        stats = await AssignmentEngine(db_session).get_match_stats()

        assert stats.total_documents == 2
        assert stats.documents_with_amounts == 1
        assert stats.total_claims == 2
        assert stats.total_assignments == 2
        assert stats.candidates == 1
        assert stats.rejected == 1
        assert stats.avg_match_score == pytest.approx(75)
        assert stats.matches_by_score["90-100"] == 1
        assert stats.matches_by_score["50-59"] == 1
        assert len(await repo.get_all()) == 2
