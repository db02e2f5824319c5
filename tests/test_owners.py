import pytest

from vaultops.core.owners import is_known_owner, normalize_owner
from vaultops.core.run_context import SetupError


class UsersStub:
    def __init__(self, users):
        self.users = users

    def known_users(self):
        return self.users


def test_owner_is_trimmed():
    assert normalize_owner("  new.owner@example.com ") == "new.owner@example.com"


@pytest.mark.parametrize("owner", [None, "", "   ", "not-an-email", "a@b", "two@@x.io"])
def test_invalid_owner_is_a_setup_error(owner):
    with pytest.raises(SetupError):
        normalize_owner(owner)


def test_known_owner_lookup_is_case_insensitive():
    adapter = UsersStub({"new.owner@example.com"})

    assert is_known_owner(adapter, "New.Owner@Example.com") is True
    assert is_known_owner(adapter, "someone@example.com") is False


def test_unknown_when_users_cannot_be_listed():
    assert is_known_owner(UsersStub(None), "a@b.io") is None
    assert is_known_owner(UsersStub(set()), "a@b.io") is None
