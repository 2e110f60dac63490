"""Unit tests for request/response models."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from src.api.responses import envelope
from src.models.auth import (
    AdminUpdateUserRequest,
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
)
from src.models.todo import Todo, TodoCreate, TodoPriority, TodoStatus, TodoUpdate
from src.models.user import RefreshTokenRecord, User, UserPublic


def _make_user(**overrides):
    now = datetime.now(timezone.utc)
    defaults = dict(
        id=uuid4(),
        handle="alice",
        email="alice@x.com",
        refresh_tokens=[RefreshTokenRecord(token="t1", created_at=now)],
        created_at=now,
        updated_at=now,
    )
    defaults.update(overrides)
    return User(**defaults)


# ---------------------------------------------------------------------------
# User models
# ---------------------------------------------------------------------------

class TestUserPublic:

    def test_excludes_refresh_tokens(self):
        body = UserPublic.from_user(_make_user()).to_response()

        assert "refreshTokens" not in body
        assert "refresh_tokens" not in body
        assert "password" not in body

    def test_camel_case_keys(self):
        body = UserPublic.from_user(_make_user(display_name="Alice")).to_response()

        assert body["displayName"] == "Alice"
        assert body["isActive"] is True
        assert body["lastLogin"] is None
        assert body["role"] == "user"
        assert "createdAt" in body

    def test_todo_count_only_when_known(self):
        user = _make_user()

        assert "todoCount" not in UserPublic.from_user(user).to_response()
        assert UserPublic.from_user(user, todo_count=0).to_response()["todoCount"] == 0


# ---------------------------------------------------------------------------
# Auth requests
# ---------------------------------------------------------------------------

class TestAuthRequests:

    def test_register_accepts_aliases(self):
        request = RegisterRequest.model_validate(
            {"username": "alice", "email": "a@x.com", "password": "p", "fullName": "Alice"}
        )
        assert request.handle == "alice"
        assert request.display_name == "Alice"

    def test_register_camel_display_name(self):
        request = RegisterRequest.model_validate(
            {"handle": "alice", "displayName": "Alice"}
        )
        assert request.handle == "alice"
        assert request.display_name == "Alice"
        assert request.password is None

    def test_refresh_request_camel(self):
        assert RefreshRequest.model_validate({"refreshToken": "t"}).refresh_token == "t"

    def test_login_missing_fields_are_none(self):
        request = LoginRequest.model_validate({})
        assert request.identifier is None
        assert request.password is None

    def test_change_password_camel(self):
        request = ChangePasswordRequest.model_validate(
            {"currentPassword": "a", "newPassword": "b"}
        )
        assert request.current_password == "a"
        assert request.new_password == "b"

    def test_admin_update_camel(self):
        request = AdminUpdateUserRequest.model_validate({"isActive": False})
        assert request.is_active is False
        assert request.role is None


# ---------------------------------------------------------------------------
# Todo models
# ---------------------------------------------------------------------------

class TestTodoCreate:

    def _payload(self, **overrides):
        start = datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)
        payload = {
            "title": "  Write report  ",
            "startTime": start.isoformat(),
            "endTime": (start + timedelta(hours=2)).isoformat(),
        }
        payload.update(overrides)
        return payload

    def test_defaults(self):
        todo = TodoCreate.model_validate(self._payload())

        assert todo.title == "Write report"
        assert todo.status == TodoStatus.PENDING
        assert todo.priority == TodoPriority.MEDIUM
        assert todo.tags == []
        assert todo.assigned_to is None

    def test_end_must_follow_start(self):
        with pytest.raises(ValidationError):
            TodoCreate.model_validate(
                self._payload(endTime="2030-01-01T08:00:00+00:00")
            )

    def test_equal_times_rejected(self):
        with pytest.raises(ValidationError):
            TodoCreate.model_validate(
                self._payload(endTime="2030-01-01T09:00:00+00:00")
            )

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            TodoCreate.model_validate(self._payload(title="   "))

    def test_title_too_long(self):
        with pytest.raises(ValidationError):
            TodoCreate.model_validate(self._payload(title="x" * 201))

    def test_description_too_long(self):
        with pytest.raises(ValidationError):
            TodoCreate.model_validate(self._payload(description="x" * 1001))

    def test_invalid_status(self):
        with pytest.raises(ValidationError):
            TodoCreate.model_validate(self._payload(status="done"))

    def test_tags_stripped(self):
        todo = TodoCreate.model_validate(self._payload(tags=[" work ", "", "  "]))
        assert todo.tags == ["work"]

    def test_naive_times_are_utc(self):
        todo = TodoCreate.model_validate(
            self._payload(startTime="2030-01-01T09:00:00", endTime="2030-01-01T10:00:00")
        )
        assert todo.start_time.tzinfo == timezone.utc


class TestTodoUpdate:

    def test_all_optional(self):
        update = TodoUpdate.model_validate({})
        assert update.model_dump(exclude_unset=True) == {}

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            TodoUpdate.model_validate({"title": " "})


class TestTodo:

    def _todo(self, start, end, status=TodoStatus.PENDING):
        user_id = uuid4()
        now = datetime.now(timezone.utc)
        return Todo(
            id=uuid4(),
            user_id=user_id,
            created_by=user_id,
            title="t",
            start_time=start,
            end_time=end,
            status=status,
            priority=TodoPriority.LOW,
            created_at=now,
            updated_at=now,
        )

    def test_duration_rounds_up(self):
        start = datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)
        todo = self._todo(start, start + timedelta(hours=1, minutes=1))
        assert todo.duration == 2

    def test_overdue(self):
        past = datetime.now(timezone.utc) - timedelta(days=1)
        assert self._todo(past - timedelta(hours=1), past).is_overdue is True
        assert (
            self._todo(past - timedelta(hours=1), past, TodoStatus.COMPLETED).is_overdue
            is False
        )

    def test_response_shape(self):
        start = datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)
        todo = self._todo(start, start + timedelta(hours=3))

        body = todo.to_response()

        assert body["user"] == str(todo.user_id)
        assert body["createdBy"] == str(todo.created_by)
        assert body["startTime"].startswith("2030-01-01T09:00:00")
        assert body["duration"] == 3
        assert body["isOverdue"] is False
        assert "user_id" not in body


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------

class TestEnvelope:

    def test_omits_empty_keys(self):
        assert envelope(True) == {"success": True}

    def test_error_envelope(self):
        body = envelope(False, message="Invalid data", errors=["x"], code="VALIDATION_ERROR")
        assert body == {
            "success": False,
            "message": "Invalid data",
            "code": "VALIDATION_ERROR",
            "errors": ["x"],
        }

    def test_extra_keys_are_encoded(self):
        user_id = uuid4()
        body = envelope(True, data={"id": user_id}, count=1)
        assert body["data"] == {"id": str(user_id)}
        assert body["count"] == 1
