"""Unit tests for services/users.py and services/results.py.

Covers the business rules that sit above the stores:
- empty collections are NotFound, not empty lists
- required fields (422), uniqueness (400), existence (404)
- password hashing on create and update
- ROLE_ADMIN assignment rule on user update, checked after the email rule
- result uniqueness ignores the record's own value
"""

from datetime import datetime, timezone

import pytest

from auth.models import ROLE_ADMIN, ROLE_USER, Principal
from auth.tokens import verify_password
from core.errors import BadRequest, Conflict, Forbidden, NotFound, UnprocessableEntity

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _principal(user_id: int, admin: bool = False) -> Principal:
    roles = {ROLE_USER, ROLE_ADMIN} if admin else {ROLE_USER}
    return Principal(user_id=user_id, email=f"{user_id}@x.com", roles=frozenset(roles))


class TestUsersService:
    def test_empty_list_is_not_found(self, users_service):
        with pytest.raises(NotFound):
            users_service.list()

    def test_create_hashes_password(self, users_service):
        user = users_service.create("a@x.com", "s3cret")
        assert user.id is not None
        assert user.password_hash != "s3cret"
        assert verify_password("s3cret", user.password_hash)
        assert users_service.get(user.id) == user

    @pytest.mark.parametrize("email,password", [(None, "p"), ("a@x.com", None), ("", "p"), ("a@x.com", "")])
    def test_create_requires_email_and_password(self, users_service, email, password):
        with pytest.raises(UnprocessableEntity) as exc:
            users_service.create(email, password)
        assert exc.value.status_code == 422

    def test_create_duplicate_email_is_400(self, users_service):
        users_service.create("a@x.com", "p")
        with pytest.raises(Conflict) as exc:
            users_service.create("a@x.com", "q")
        assert exc.value.status_code == 400

    def test_get_missing_is_not_found(self, users_service):
        with pytest.raises(NotFound):
            users_service.get(404)

    def test_update_password_rehashes(self, users_service):
        user = users_service.create("a@x.com", "old")
        updated = users_service.update(user.id, _principal(user.id), password="new")
        assert verify_password("new", updated.password_hash)
        assert not verify_password("old", users_service.get(user.id).password_hash)

    def test_update_own_email_to_same_value(self, users_service):
        user = users_service.create("a@x.com", "p")
        assert users_service.update(user.id, _principal(user.id), email="a@x.com").email == "a@x.com"

    def test_update_to_taken_email_is_conflict(self, users_service):
        users_service.create("a@x.com", "p")
        user = users_service.create("b@x.com", "p")
        with pytest.raises(Conflict):
            users_service.update(user.id, _principal(user.id), email="a@x.com")

    def test_non_admin_cannot_grant_admin_to_self(self, users_service):
        user = users_service.create("a@x.com", "p")
        with pytest.raises(Forbidden):
            users_service.update(user.id, _principal(user.id), roles=[ROLE_ADMIN])
        assert users_service.get(user.id).stored_roles == frozenset()

    def test_email_conflict_reported_before_role_violation(self, users_service):
        users_service.create("a@x.com", "p")
        user = users_service.create("b@x.com", "p")
        with pytest.raises(Conflict):
            users_service.update(user.id, _principal(user.id), email="a@x.com", roles=[ROLE_ADMIN])

    def test_admin_can_grant_admin(self, users_service):
        user = users_service.create("a@x.com", "p")
        updated = users_service.update(user.id, _principal(999, admin=True), roles=[ROLE_ADMIN])
        assert updated.is_admin
        assert users_service.get(user.id).stored_roles == {ROLE_ADMIN}

    @pytest.mark.parametrize("changes", [{"email": ""}, {"email": "   "}, {"password": ""}])
    def test_update_rejects_blank_fields(self, users_service, changes):
        user = users_service.create("a@x.com", "p")
        with pytest.raises(UnprocessableEntity):
            users_service.update(user.id, _principal(user.id), **changes)
        assert users_service.get(user.id) == user

    def test_create_rejects_blank_email(self, users_service):
        with pytest.raises(UnprocessableEntity):
            users_service.create("   ", "p")

    def test_update_missing_is_not_found(self, users_service):
        with pytest.raises(NotFound):
            users_service.update(404, _principal(1, admin=True), email="x@x.com")

    def test_delete(self, users_service):
        user = users_service.create("a@x.com", "p")
        users_service.delete(user.id)
        with pytest.raises(NotFound):
            users_service.delete(user.id)


class TestResultsService:
    @pytest.fixture
    def owner(self, users_service):
        return users_service.create("owner@x.com", "p")

    def test_empty_list_is_not_found(self, results_service):
        with pytest.raises(NotFound):
            results_service.list()

    def test_create_defaults_time_to_now(self, results_service, owner):
        before = datetime.now(timezone.utc)
        result = results_service.create(2020, owner.id)
        assert before <= result.time <= datetime.now(timezone.utc)
        assert result.user.email == "owner@x.com"

    def test_create_requires_value_and_user(self, results_service, owner):
        with pytest.raises(UnprocessableEntity):
            results_service.create(None, owner.id)
        with pytest.raises(UnprocessableEntity):
            results_service.create(1, None)

    def test_create_for_missing_user_is_400(self, results_service):
        with pytest.raises(BadRequest):
            results_service.create(1, 999)

    def test_create_duplicate_value_is_400(self, results_service, owner):
        results_service.create(1, owner.id, T0)
        with pytest.raises(BadRequest):
            results_service.create(1, owner.id, T0)

    def test_update_with_own_value_is_allowed(self, results_service, owner):
        result = results_service.create(1, owner.id, T0)
        assert results_service.update(result.id, value=1).value == 1

    def test_update_to_value_held_elsewhere_is_400(self, results_service, owner):
        results_service.create(1, owner.id, T0)
        result = results_service.create(2, owner.id, T0)
        with pytest.raises(BadRequest):
            results_service.update(result.id, value=1)

    def test_update_reassigns_owner(self, results_service, users_service, owner):
        other = users_service.create("other@x.com", "p")
        result = results_service.create(1, owner.id, T0)
        updated = results_service.update(result.id, user_id=other.id)
        assert updated.user_id == other.id
        assert updated.user.email == "other@x.com"

    def test_update_to_missing_owner_is_400(self, results_service, owner):
        result = results_service.create(1, owner.id, T0)
        with pytest.raises(BadRequest):
            results_service.update(result.id, user_id=999)

    def test_update_missing_is_not_found(self, results_service):
        with pytest.raises(NotFound):
            results_service.update(404, value=1)

    def test_delete_keeps_owner(self, results_service, users_service, owner):
        result = results_service.create(1, owner.id, T0)
        results_service.delete(result.id)
        assert users_service.get(owner.id) == owner
        with pytest.raises(NotFound):
            results_service.get(result.id)
