"""Tests for promoting documents into draft claims."""

from uuid import uuid4

import pytest

from claimlink.core.exceptions import DocumentNotFoundError
from claimlink.schemas.enums import DocumentClassification, PaymentSignalSource
from claimlink.services.draft_claims.draft_claim_promoter import (
    EMPTY_PAYMENT_CONTEXT,
    DraftClaimPromoter,
    get_group_documents,
)
from tests.factories import day, detected, make_calendar_event, make_document, make_draft


def _override(amount, currency="EUR"):
    return {"amount": amount, "currency": currency, "updated_at": day(0).isoformat()}


class TestGroupDocuments:

    def test_groups_by_email_thread(self):
        selected = make_document(email_id="m1")
        sibling = make_document(email_id="m1")
        stranger = make_document(email_id="m2")
        invite = make_calendar_event(day(0), email_id="m1")

        group = get_group_documents(selected, [selected, sibling, stranger, invite])

        assert group == [selected, sibling]

    def test_document_without_thread_stands_alone(self):
        selected = make_document(email_id=None)

        assert get_group_documents(selected, [selected, make_document()]) == [selected]


class TestPromoteDocument:

    @pytest.mark.asyncio
    async def test_creates_draft_from_best_group_payment(self, db_session, persist):
        selected = make_document(email_id="m1", detected_amounts=[detected(120.0, confidence=95)])
        sibling = make_document(email_id="m1", payment_override=_override(130.0))
        await persist(selected, sibling)

        result = await DraftClaimPromoter(db_session).promote_document(selected.id)

        assert result.created and not result.expanded
        draft = result.draft
        assert draft.primary_document_id == sibling.id
        assert draft.payment_snapshot.amount == 130.0
        assert draft.payment_snapshot.source == PaymentSignalSource.OVERRIDE
        assert set(draft.document_ids) == {str(selected.id), str(sibling.id)}

    @pytest.mark.asyncio
    async def test_no_signal_creates_empty_payment(self, db_session, persist):
        selected = make_document(classification=DocumentClassification.CORRESPONDENCE)
        await persist(selected)

        result = await DraftClaimPromoter(db_session).promote_document(selected.id)

        payment = result.draft.payment_snapshot
        assert payment.amount == 0
        assert payment.currency == "EUR"
        assert payment.context == EMPTY_PAYMENT_CONTEXT
        assert result.draft.primary_document_id == selected.id

    @pytest.mark.asyncio
    async def test_expands_existing_draft(self, db_session, persist):
        drafted = make_document(email_id="m1", detected_amounts=[detected(120.0)])
        sibling = make_document(email_id="m1")
        existing = make_draft(drafted)
        await persist(drafted, sibling, existing)

        result = await DraftClaimPromoter(db_session).promote_document(sibling.id)

        assert result.expanded and not result.created
        assert result.draft.id == existing.id
        assert result.draft.document_ids == [str(drafted.id), str(sibling.id)]
        assert result.draft.payment_snapshot.amount == 120.0

    @pytest.mark.asyncio
    async def test_promoting_again_changes_nothing(self, db_session, persist):
        selected = make_document(detected_amounts=[detected(120.0)])
        await persist(selected)
        promoter = DraftClaimPromoter(db_session)
        first = await promoter.promote_document(selected.id)

        second = await promoter.promote_document(selected.id)

        assert second.draft.id == first.draft.id
        assert not second.created and not second.expanded

    @pytest.mark.asyncio
    async def test_unknown_document(self, db_session):
        with pytest.raises(DocumentNotFoundError):
            await DraftClaimPromoter(db_session).promote_document(uuid4())
