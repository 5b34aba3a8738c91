from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from whatsapp_agent.models import User
from whatsapp_agent.services.errors import UserLookupError
from whatsapp_agent.services.user_service import get_or_create_user, get_user_by_phone, set_user_banned


class TestGetOrCreateUser:
    def test_creates_user_on_first_contact(self, db_session):
        user = get_or_create_user(db_session, "+15550001111", "Alice")

        assert user.id is not None
        assert user.phone == "+15550001111"
        assert user.name == "Alice"
        assert user.is_banned is False
        assert db_session.query(User).count() == 1

    def test_returns_same_user_on_second_contact(self, db_session):
        first = get_or_create_user(db_session, "+15550001111")
        second = get_or_create_user(db_session, "+15550001111")

        assert first.id == second.id
        assert db_session.query(User).count() == 1

    def test_display_name_last_write_wins(self, db_session):
        get_or_create_user(db_session, "+15550001111", "Alice")
        user = get_or_create_user(db_session, "+15550001111", "Alicia")
        assert user.name == "Alicia"

    def test_missing_name_keeps_stored_name(self, db_session):
        get_or_create_user(db_session, "+15550001111", "Alice")
        user = get_or_create_user(db_session, "+15550001111", None)
        assert user.name == "Alice"

    def test_blank_name_keeps_stored_name(self, db_session):
        get_or_create_user(db_session, "+15550001111", "Alice")
        user = get_or_create_user(db_session, "+15550001111", "   ")
        assert user.name == "Alice"

    def test_concurrent_sessions_share_one_row(self, session_factory):
        first_session = session_factory()
        second_session = session_factory()
        try:
            first = get_or_create_user(first_session, "+15550001111")
            second = get_or_create_user(second_session, "+15550001111")
            assert first.id == second.id
        finally:
            first_session.close()
            second_session.close()

    def test_keeps_ban_flag(self, db_session, make_user):
        make_user("+15550001111", is_banned=True)
        user = get_or_create_user(db_session, "+15550001111", "Mallory")
        assert user.is_banned is True

    def test_store_failure_raises_lookup_error(self):
        db = Mock()
        db.get_bind.return_value.dialect.name = "sqlite"
        db.execute.side_effect = OperationalError("INSERT", {}, Exception("db down"))

        with pytest.raises(UserLookupError):
            get_or_create_user(db, "+15550001111")

        db.rollback.assert_called_once()


class TestSetUserBanned:
    def test_bans_and_unbans(self, db_session, make_user):
        make_user("+15550001111")

        assert set_user_banned(db_session, "+15550001111", True).is_banned is True
        assert get_user_by_phone(db_session, "+15550001111").is_banned is True

        assert set_user_banned(db_session, "+15550001111", False).is_banned is False

    def test_unknown_phone_returns_none(self, db_session):
        assert set_user_banned(db_session, "+19999999999", True) is None
