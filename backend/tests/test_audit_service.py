"""Tests for audit service."""

from types import SimpleNamespace
from unittest.mock import MagicMock

from khozo.audit.models import AuditLog
from khozo.audit.service import audit
from khozo.rate_limit import client_ip, rate_limit_key


class TestClientIp:
    def test_ignores_forwarded_header(self):
        request = MagicMock()
        request.headers = {"X-Forwarded-For": "1.2.3.4, 5.6.7.8"}
        request.client.host = "10.0.0.1"
        assert client_ip(request) == "10.0.0.1"

    def test_uses_client_host(self):
        request = MagicMock()
        request.headers = {}
        request.client.host = "10.0.0.1"
        assert client_ip(request) == "10.0.0.1"

    def test_returns_empty_when_no_client(self):
        request = MagicMock()
        request.headers = {}
        request.client = None
        assert client_ip(request) == ""

    def test_limit_key_prefers_user(self):
        request = MagicMock()
        request.headers = {}
        request.client.host = "10.0.0.1"
        request.state = SimpleNamespace()
        assert rate_limit_key(request) == "ip:10.0.0.1"

        request.state.user_id = "u-1"
        assert rate_limit_key(request) == "user:u-1"


class TestAudit:
    def test_uses_user_resolved_for_request(self, db_session, test_user):
        request = MagicMock()
        request.headers = {"X-Forwarded-For": "192.168.1.1"}
        request.client.host = "10.0.0.1"
        request.state = SimpleNamespace(user_id=test_user.id)

        audit(db_session, request, "status_change", "id=1, discovered->applied")
        db_session.commit()

        logs = db_session.query(AuditLog).all()
        assert len(logs) == 1
        assert logs[0].action == "status_change"
        assert logs[0].detail == "id=1, discovered->applied"
        assert logs[0].ip_address == "10.0.0.1"
        assert logs[0].user_id == test_user.id

    def test_creates_log_with_explicit_user_id(self, db_session, test_user):
        request = MagicMock()
        request.headers = {}
        request.client.host = "127.0.0.1"
        request.state = SimpleNamespace()

        audit(db_session, request, "login", "email=test", user_id=test_user.id)
        db_session.commit()

        log = db_session.query(AuditLog).one()
        assert log.user_id == test_user.id
        assert log.ip_address == "127.0.0.1"

    def test_anonymous_request(self, db_session):
        request = MagicMock()
        request.headers = {}
        request.client.host = "127.0.0.1"
        request.state = SimpleNamespace()

        audit(db_session, request, "login_failed", "email=x")
        db_session.commit()

        assert db_session.query(AuditLog).one().user_id is None

    def test_detail_truncated(self, db_session):
        request = MagicMock()
        request.headers = {}
        request.client = None
        request.state = SimpleNamespace()

        audit(db_session, request, "opportunity_create", "x" * 5000)
        db_session.commit()

        assert len(db_session.query(AuditLog).one().detail) == 2000

    def test_records_target_opportunity(self, db_session, test_user, test_opportunity):
        request = MagicMock()
        request.headers = {}
        request.client = None
        request.state = SimpleNamespace(user_id=test_user.id)

        audit(db_session, request, "status_change", "discovered->applied", opportunity_id=test_opportunity.id)
        db_session.commit()

        assert db_session.query(AuditLog).one().opportunity_id == test_opportunity.id
