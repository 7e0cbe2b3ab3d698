"""Tests for opportunity service."""

import uuid
from datetime import UTC, datetime

import pytest

from khozo.errors import NotFound, Unauthorized
from khozo.opportunities.models import OpportunityCategory, OpportunityStatus
from khozo.opportunities.schemas import Channel, NotificationPreferences, OpportunityCreateRequest
from khozo.opportunities.service import (
    create_opportunity,
    get_opportunity,
    get_owned_opportunity,
    get_preferences,
    list_opportunities,
    opportunity_to_dict,
    save_preferences,
)


class TestCreateOpportunity:
    def test_always_starts_discovered(self, db_session, test_user):
        data = OpportunityCreateRequest(title="  RRB NTPC 2025 ", category="job", program_type="Central")
        opportunity = create_opportunity(db_session, test_user.id, data)
        db_session.commit()

        assert opportunity.status == OpportunityStatus.DISCOVERED
        assert opportunity.title == "RRB NTPC 2025"
        assert opportunity.category == OpportunityCategory.JOB
        assert opportunity.program_type == "central"
        assert opportunity.deadline is None

    def test_deadline_from_application_end(self, db_session, test_user):
        data = OpportunityCreateRequest(
            title="IBPS PO",
            important_dates={"application_end": {"date": "2025-08-21"}},
        )
        opportunity = create_opportunity(db_session, test_user.id, data)
        assert opportunity.deadline == datetime(2025, 8, 21, tzinfo=UTC)
        assert opportunity.important_dates["application_end"] == {"date": "2025-08-21", "confidence": "estimated"}

    def test_explicit_deadline_wins(self, db_session, test_user):
        data = OpportunityCreateRequest(
            title="IBPS PO",
            deadline="2025-08-25T18:00:00+05:30",
            important_dates={"application_end": {"date": "2025-08-21"}},
        )
        opportunity = create_opportunity(db_session, test_user.id, data)
        assert opportunity.deadline == datetime(2025, 8, 25, 12, 30, tzinfo=UTC)

    def test_tags_are_cleaned(self):
        data = OpportunityCreateRequest(title="x", tags=[" ssc ", "", "ssc", "cgl"])
        assert data.tags == ["ssc", "cgl"]


class TestLookup:
    def test_get_by_string_id(self, db_session, test_opportunity):
        assert get_opportunity(db_session, str(test_opportunity.id)).id == test_opportunity.id

    def test_malformed_id_is_none(self, db_session):
        assert get_opportunity(db_session, "not-a-uuid") is None

    def test_owned_not_found(self, db_session, test_user):
        with pytest.raises(NotFound):
            get_owned_opportunity(db_session, uuid.uuid4(), test_user.id)

    def test_owned_by_someone_else(self, db_session, test_opportunity, other_user):
        with pytest.raises(Unauthorized):
            get_owned_opportunity(db_session, test_opportunity.id, other_user.id)

    def test_list_hides_archived_by_default(self, db_session, test_user, make_opportunity):
        make_opportunity(title="Open")
        make_opportunity(title="Closed", status=OpportunityStatus.ARCHIVED)

        assert [o.title for o in list_opportunities(db_session, test_user.id)] == ["Open"]
        archived = list_opportunities(db_session, test_user.id, OpportunityStatus.ARCHIVED)
        assert [o.title for o in archived] == ["Closed"]

    def test_list_is_per_user(self, db_session, other_user, make_opportunity):
        make_opportunity()
        assert list_opportunities(db_session, other_user.id) == []


class TestPreferences:
    def test_missing_fields_take_defaults(self, make_opportunity):
        opportunity = make_opportunity(notification_preferences={"days_before": [2]})
        prefs = get_preferences(opportunity)
        assert prefs.enabled is True
        assert prefs.channels == [Channel.PUSH, Channel.IN_APP]
        assert prefs.days_before == [2]

    def test_invalid_stored_value_falls_back(self, make_opportunity):
        opportunity = make_opportunity(notification_preferences={"days_before": [-4]})
        assert get_preferences(opportunity) == NotificationPreferences()

    def test_days_are_deduped_and_sorted(self):
        prefs = NotificationPreferences(days_before=[1, 7, 3, 7])
        assert prefs.days_before == [7, 3, 1]

    def test_save(self, db_session, test_opportunity):
        save_preferences(db_session, test_opportunity, NotificationPreferences(enabled=False, days_before=[5]))
        db_session.commit()
        db_session.refresh(test_opportunity)
        assert test_opportunity.notification_preferences == {
            "enabled": False,
            "channels": ["push", "in_app"],
            "days_before": [5],
        }


class TestOpportunityToDict:
    def test_shape(self, test_opportunity):
        data = opportunity_to_dict(test_opportunity)
        assert data["id"] == str(test_opportunity.id)
        assert data["category"] == "exam"
        assert data["type"] == "central"
        assert data["status"] == "discovered"
        assert data["deadline"] == "2025-12-01T00:00:00+00:00"
        assert data["appliedAt"] is None
        assert data["viewCount"] == 0
        assert data["notificationPreferences"]["days_before"] == [7, 3, 1]
