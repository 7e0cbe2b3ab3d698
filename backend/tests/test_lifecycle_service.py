"""Tests for the status transition controller."""

import logging
import uuid
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from khozo.config import settings
from khozo.discovery.models import EngagementEvent
from khozo.errors import InvalidStatus, InvalidTransition, NotFound, Unauthorized, UpstreamFailure
from khozo.lifecycle.models import StatusHistoryEntry
from khozo.lifecycle.service import STATUS_TRANSITIONS, get_history, is_allowed, transition
from khozo.notifications.models import JOB_DISMISSED, JOB_PENDING, KIND_STATUS_CHANGE, NotificationJob
from khozo.notifications.scheduler import schedule_reminders
from khozo.opportunities.models import OpportunityStatus

NOW = datetime(2025, 11, 10, 9, 0, tzinfo=UTC)


class TestTransitionTable:
    def test_every_state_has_an_entry(self):
        assert set(STATUS_TRANSITIONS) == set(OpportunityStatus)

    def test_archived_is_terminal(self):
        assert STATUS_TRANSITIONS[OpportunityStatus.ARCHIVED] == frozenset()

    def test_every_non_terminal_state_can_archive(self):
        for state, allowed in STATUS_TRANSITIONS.items():
            if state != OpportunityStatus.ARCHIVED:
                assert OpportunityStatus.ARCHIVED in allowed

    def test_same_state_is_allowed(self):
        assert is_allowed(OpportunityStatus.APPLIED, OpportunityStatus.APPLIED)

    def test_skipping_ahead_is_not_allowed(self):
        assert not is_allowed(OpportunityStatus.DISCOVERED, OpportunityStatus.RESULT_RELEASED)


class TestTransition:
    def test_allowed_transition_persists_and_records_history(self, db_session, test_user, test_opportunity):
        result = transition(db_session, test_opportunity.id, "applied", test_user.id, now=NOW)

        assert result == {"previousStatus": "discovered", "newStatus": "applied"}
        db_session.refresh(test_opportunity)
        assert test_opportunity.status == OpportunityStatus.APPLIED

        history = get_history(db_session, test_opportunity)
        assert len(history) == 1
        assert history[0].previous_status == "discovered"
        assert history[0].new_status == "applied"
        assert history[0].changed_by == "user"
        assert history[0].change_reason == "User changed status from discovered to applied"
        assert history[0].actor_id == test_user.id

    def test_custom_reason_is_kept(self, db_session, test_user, test_opportunity):
        transition(db_session, test_opportunity.id, "archived", test_user.id, reason="Not eligible")
        entry = db_session.query(StatusHistoryEntry).one()
        assert entry.change_reason == "Not eligible"

    def test_first_apply_stamps_applied_at_and_records_event(self, db_session, test_user, test_opportunity):
        transition(db_session, test_opportunity.id, "applied", test_user.id, now=NOW)
        db_session.refresh(test_opportunity)

        assert test_opportunity.applied_at.replace(tzinfo=UTC) == NOW
        events = db_session.query(EngagementEvent).all()
        assert [e.kind for e in events] == ["apply"]

    def test_reentering_applied_keeps_first_timestamp(self, db_session, test_user, test_opportunity):
        transition(db_session, test_opportunity.id, "applied", test_user.id, now=NOW)
        transition(db_session, test_opportunity.id, "correction_window", test_user.id)
        later = datetime(2025, 11, 20, tzinfo=UTC)
        transition(db_session, test_opportunity.id, "applied", test_user.id, now=later)

        db_session.refresh(test_opportunity)
        assert test_opportunity.applied_at.replace(tzinfo=UTC) == NOW
        assert db_session.query(EngagementEvent).count() == 1

    def test_disallowed_transition_is_applied_with_warning(self, db_session, test_user, test_opportunity, caplog):
        with caplog.at_level(logging.WARNING, logger="khozo.lifecycle.service"):
            result = transition(db_session, test_opportunity.id, "result_released", test_user.id)

        assert result["newStatus"] == "result_released"
        db_session.refresh(test_opportunity)
        assert test_opportunity.status == OpportunityStatus.RESULT_RELEASED
        assert db_session.query(StatusHistoryEntry).count() == 1
        assert "not in the allowed table" in caplog.text

    def test_strict_mode_rejects_disallowed_transition(self, db_session, test_user, test_opportunity, monkeypatch):
        monkeypatch.setattr(settings, "strict_transitions", True)

        with pytest.raises(InvalidTransition):
            transition(db_session, test_opportunity.id, "result_released", test_user.id)

        db_session.refresh(test_opportunity)
        assert test_opportunity.status == OpportunityStatus.DISCOVERED
        assert db_session.query(StatusHistoryEntry).count() == 0

    def test_strict_mode_still_allows_table_transitions(self, db_session, test_user, test_opportunity, monkeypatch):
        monkeypatch.setattr(settings, "strict_transitions", True)
        result = transition(db_session, test_opportunity.id, "applied", test_user.id)
        assert result["newStatus"] == "applied"

    def test_invalid_status_rejected_without_mutation(self, db_session, test_user, test_opportunity):
        with pytest.raises(InvalidStatus) as exc_info:
            transition(db_session, test_opportunity.id, "approved", test_user.id)

        assert "approved" in str(exc_info.value)
        db_session.refresh(test_opportunity)
        assert test_opportunity.status == OpportunityStatus.DISCOVERED
        assert db_session.query(StatusHistoryEntry).count() == 0

    def test_invalid_status_checked_before_lookup(self, db_session, test_user):
        with pytest.raises(InvalidStatus):
            transition(db_session, uuid.uuid4(), "approved", test_user.id)

    def test_missing_opportunity(self, db_session, test_user):
        with pytest.raises(NotFound):
            transition(db_session, uuid.uuid4(), "applied", test_user.id)

    def test_malformed_id_is_not_found(self, db_session, test_user):
        with pytest.raises(NotFound):
            transition(db_session, "not-a-uuid", "applied", test_user.id)

    def test_other_users_opportunity(self, db_session, other_user, test_opportunity):
        with pytest.raises(Unauthorized):
            transition(db_session, test_opportunity.id, "applied", other_user.id)

        db_session.refresh(test_opportunity)
        assert test_opportunity.status == OpportunityStatus.DISCOVERED

    def test_history_failure_does_not_roll_back_status(self, db_session, test_user, test_opportunity, caplog):
        with patch(
            "khozo.lifecycle.service.StatusHistoryEntry",
            side_effect=SQLAlchemyError("history insert failed"),
        ):
            result = transition(db_session, test_opportunity.id, "applied", test_user.id)

        assert result["newStatus"] == "applied"
        db_session.refresh(test_opportunity)
        assert test_opportunity.status == OpportunityStatus.APPLIED
        assert db_session.query(StatusHistoryEntry).count() == 0
        assert "history" in caplog.text

    def test_status_persist_failure_raises_upstream(self, db_session, test_user, test_opportunity, monkeypatch):
        def _fail():
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(db_session, "commit", _fail)
        with pytest.raises(UpstreamFailure):
            transition(db_session, test_opportunity.id, "applied", test_user.id)


class TestStatusChangeNotifications:
    def _status_jobs(self, db_session, opportunity):
        return (
            db_session.query(NotificationJob)
            .filter(NotificationJob.opportunity_id == opportunity.id, NotificationJob.kind == KIND_STATUS_CHANGE)
            .all()
        )

    def test_admit_card_release_enqueues_high_priority_job_per_channel(
        self, db_session, test_user, make_opportunity
    ):
        opportunity = make_opportunity(status=OpportunityStatus.APPLIED)
        transition(db_session, opportunity.id, "admit_card_released", test_user.id, now=NOW)

        jobs = self._status_jobs(db_session, opportunity)
        assert sorted(j.channel for j in jobs) == ["in_app", "push"]
        for job in jobs:
            assert job.priority == 3
            assert job.status == JOB_PENDING
            assert job.body == "Admit card has been released! Download it now."
            assert job.title.endswith(" - Status Update")
            assert job.scheduled_for.replace(tzinfo=UTC) == NOW

    def test_result_release_message(self, db_session, test_user, make_opportunity):
        opportunity = make_opportunity(status=OpportunityStatus.EXAM_COMPLETED)
        transition(db_session, opportunity.id, "result_released", test_user.id)

        jobs = self._status_jobs(db_session, opportunity)
        assert jobs
        assert all(j.body == "Results have been announced! Check your results." for j in jobs)

    def test_ordinary_transition_enqueues_nothing(self, db_session, test_user, test_opportunity):
        transition(db_session, test_opportunity.id, "applied", test_user.id)
        assert self._status_jobs(db_session, test_opportunity) == []

    def test_disabled_notifications_skip_status_jobs(self, db_session, test_user, make_opportunity):
        opportunity = make_opportunity(
            status=OpportunityStatus.APPLIED,
            notification_preferences={"enabled": False},
        )
        transition(db_session, opportunity.id, "admit_card_released", test_user.id)
        assert self._status_jobs(db_session, opportunity) == []

    def test_email_only_preference_creates_no_jobs(self, db_session, test_user, make_opportunity):
        opportunity = make_opportunity(
            status=OpportunityStatus.APPLIED,
            notification_preferences={"channels": ["email"]},
        )
        transition(db_session, opportunity.id, "admit_card_released", test_user.id)
        assert self._status_jobs(db_session, opportunity) == []


class TestArchive:
    def test_archive_dismisses_every_pending_job(self, db_session, test_user, test_opportunity):
        schedule_reminders(db_session, test_opportunity, now=NOW)
        db_session.commit()
        assert db_session.query(NotificationJob).filter_by(status=JOB_PENDING).count() > 0

        transition(db_session, test_opportunity.id, "archived", test_user.id)

        jobs = db_session.query(NotificationJob).all()
        assert jobs
        assert all(j.status == JOB_DISMISSED for j in jobs)

    def test_archive_twice_is_idempotent(self, db_session, test_user, test_opportunity):
        schedule_reminders(db_session, test_opportunity, now=NOW)
        db_session.commit()

        transition(db_session, test_opportunity.id, "archived", test_user.id)
        transition(db_session, test_opportunity.id, "archived", test_user.id)

        db_session.refresh(test_opportunity)
        assert test_opportunity.status == OpportunityStatus.ARCHIVED
        assert all(j.status == JOB_DISMISSED for j in db_session.query(NotificationJob).all())
        assert db_session.query(StatusHistoryEntry).count() == 2

    def test_archive_leaves_delivered_jobs_alone(self, db_session, test_user, test_opportunity):
        sent = NotificationJob(
            opportunity_id=test_opportunity.id,
            user_id=test_user.id,
            kind="deadline_reminder",
            channel="in_app",
            scheduled_for=NOW,
            title="done",
            status="sent",
        )
        db_session.add(sent)
        db_session.commit()

        transition(db_session, test_opportunity.id, "archived", test_user.id)

        db_session.refresh(sent)
        assert sent.status == "sent"
