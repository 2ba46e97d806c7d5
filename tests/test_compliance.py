# ============================================================================
# Compliance Aggregator Tests
# ============================================================================
from datetime import datetime, timedelta

import pytest

from app.models import DocumentStatus, MembershipStatus
from app.services.analytics.compliance import ComplianceAggregator
from app.services.analytics.repository import MetricRepository

NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def aggregator(db_session):
    return ComplianceAggregator(MetricRepository(db_session), now=NOW)


class TestPerDocumentType:
    """Tests for required versus valid counts per doc type"""

    async def test_one_of_two_volunteers_compliant(self, factory, aggregator):
        org = await factory.organization()
        await factory.requirement(org, "WWCC")
        holder, _ = await factory.volunteers(org, 2)
        await factory.document(holder, "WWCC")

        breakdown = await aggregator.per_document_type(org.id)

        assert len(breakdown) == 1
        assert breakdown[0]["doc_type"] == "WWCC"
        assert breakdown[0]["total"] == 2
        assert breakdown[0]["valid"] == 1
        assert breakdown[0]["rate"] == 50.0
        assert breakdown[0]["missing"] == 1

    async def test_no_requirements_is_fully_compliant(self, factory, aggregator):
        org = await factory.organization()
        await factory.volunteers(org, 3)

        assert await aggregator.per_document_type(org.id) == []
        assert await aggregator.overall(org.id) == 100.0

    async def test_expired_documents_are_not_valid(self, factory, aggregator):
        org = await factory.organization()
        await factory.requirement(org, "police_check")
        lapsed, stale, current = await factory.volunteers(org, 3)
        await factory.document(lapsed, "police_check", expires_at=NOW - timedelta(days=1))
        await factory.document(stale, "police_check", status=DocumentStatus.EXPIRED,
                               expires_at=NOW - timedelta(days=40))
        await factory.document(current, "police_check", expires_at=NOW + timedelta(days=365))

        [row] = await aggregator.per_document_type(org.id)

        assert row["total"] == 3
        assert row["valid"] == 1
        assert row["expired"] == 2
        assert row["missing"] == 0

    async def test_pending_documents_do_not_count(self, factory, aggregator):
        org = await factory.organization()
        await factory.requirement(org, "WWCC")
        [volunteer] = await factory.volunteers(org, 1)
        await factory.document(volunteer, "WWCC", status=DocumentStatus.PENDING)

        [row] = await aggregator.per_document_type(org.id)
        assert row["valid"] == 0
        assert row["rate"] == 0.0

    async def test_only_active_members_are_required(self, factory, aggregator):
        org = await factory.organization()
        await factory.requirement(org, "WWCC")
        await factory.volunteers(org, 1)
        await factory.volunteers(org, 2, status=MembershipStatus.PENDING)

        [row] = await aggregator.per_document_type(org.id)
        assert row["total"] == 1

    async def test_optional_requirements_are_ignored(self, factory, aggregator):
        org = await factory.organization()
        await factory.requirement(org, "first_aid", is_mandatory=False)
        await factory.volunteers(org, 2)

        assert await aggregator.per_document_type(org.id) == []

    async def test_other_organizations_are_excluded(self, factory, aggregator):
        org = await factory.organization("Harbour Rescue")
        other = await factory.organization("Food Bank")
        await factory.requirement(org, "WWCC")
        await factory.requirement(other, "WWCC")
        await factory.volunteers(org, 1)
        await factory.volunteers(other, 4)

        [row] = await aggregator.per_document_type(org.id)
        assert row["total"] == 1


class TestPooledRate:
    """The overall rate pools counts across doc types"""

    async def test_overall_is_pooled_not_averaged(self, factory, aggregator):
        org = await factory.organization()
        await factory.requirement(org, "WWCC")
        await factory.requirement(org, "police_check")
        volunteers = await factory.volunteers(org, 4)
        for volunteer in volunteers:
            await factory.document(volunteer, "WWCC")
        await factory.document(volunteers[0], "police_check")

        breakdown = await aggregator.per_document_type(org.id)
        overall = await aggregator.overall(org.id)

        # WWCC 4/4, police_check 1/4
        assert overall == 62.5
        total_valid = sum(row["valid"] for row in breakdown)
        total_required = sum(row["total"] for row in breakdown)
        assert overall == round(total_valid / total_required * 100, 1)

    async def test_pooling_weights_by_required_count(self, factory, aggregator):
        org = await factory.organization()
        other = await factory.organization("Food Bank")
        await factory.requirement(org, "WWCC")
        await factory.requirement(other, "police_check")
        [single] = await factory.volunteers(org, 1)
        await factory.document(single, "WWCC")
        await factory.volunteers(other, 3)

        result = await aggregator.platform_wide()

        # WWCC 1/1 and police_check 0/3: pooled 25.0, not the mean 50.0
        assert result["overall_rate"] == 25.0


class TestPlatformWide:
    """Tests for the unscoped compliance rate"""

    async def test_no_active_volunteers_short_circuits(self, factory, aggregator):
        org = await factory.organization()
        await factory.requirement(org, "WWCC")
        await factory.volunteers(org, 2, status=MembershipStatus.SUSPENDED)

        assert await aggregator.platform_wide() == {"overall_rate": 100.0, "by_document_type": []}

    async def test_no_requirements_short_circuits(self, factory, aggregator):
        org = await factory.organization()
        await factory.volunteers(org, 2)

        assert (await aggregator.platform_wide())["overall_rate"] == 100.0

    async def test_required_once_per_organization(self, factory, aggregator):
        first = await factory.organization("Harbour Rescue")
        second = await factory.organization("Food Bank")
        await factory.requirement(first, "WWCC")
        await factory.requirement(second, "WWCC")
        volunteer = await factory.user()
        await factory.membership(first, volunteer)
        await factory.membership(second, volunteer)
        await factory.document(volunteer, "WWCC")

        result = await aggregator.platform_wide()

        [row] = result["by_document_type"]
        assert row["total"] == 2
        assert row["valid"] == 2
        assert result["overall_rate"] == 100.0

    async def test_valid_never_exceeds_total(self, factory, aggregator):
        org = await factory.organization()
        await factory.requirement(org, "WWCC")
        [volunteer] = await factory.volunteers(org, 1)
        # Two valid documents of the same type still satisfy one requirement
        await factory.document(volunteer, "WWCC")
        await factory.document(volunteer, "WWCC", expires_at=NOW + timedelta(days=10))

        [row] = await aggregator.per_document_type(org.id)
        assert row["valid"] == row["total"] == 1


class TestExpiringDocuments:
    async def test_lists_documents_expiring_within_window(self, factory, aggregator):
        org = await factory.organization()
        soon, later, never = await factory.volunteers(org, 3)
        await factory.document(soon, "WWCC", expires_at=NOW + timedelta(days=10))
        await factory.document(later, "WWCC", expires_at=NOW + timedelta(days=45))
        await factory.document(never, "WWCC")

        expiring = await aggregator.expiring_documents(org.id)

        assert [item["user_id"] for item in expiring] == [soon.id]
        assert expiring[0]["days_remaining"] == 10

    async def test_status_combines_breakdown_and_expiring(self, factory, aggregator):
        org = await factory.organization()
        await factory.requirement(org, "WWCC")
        [volunteer] = await factory.volunteers(org, 1)
        await factory.document(volunteer, "WWCC", expires_at=NOW + timedelta(days=5))

        status = await aggregator.status(org.id)

        assert status["overall_rate"] == 100.0
        assert status["total_required"] == 1
        assert status["total_valid"] == 1
        assert len(status["expiring_soon"]) == 1
