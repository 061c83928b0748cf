"""Tests for the role enumeration."""

import pytest

from securemind.roles import ROLE_NAMES, Role, claims_for_role, is_valid_role, normalize_role


class TestNormalizeRole:
    @pytest.mark.parametrize("value", ["admin", "ADMIN", "  Admin "])
    def test_case_and_whitespace_insensitive(self, value):
        assert normalize_role(value) is Role.ADMIN

    @pytest.mark.parametrize("value", ["superuser", "", None, 42, "admin,user"])
    def test_unknown_values_fall_back_to_user(self, value):
        assert normalize_role(value) is Role.USER

    def test_custom_fallback(self):
        assert normalize_role("nope", Role.SECURITY) is Role.SECURITY

    def test_every_role_round_trips(self):
        for name in ROLE_NAMES:
            assert normalize_role(name).value == name


class TestIsValidRole:
    def test_valid(self):
        assert is_valid_role("Trainer")

    def test_invalid(self):
        assert not is_valid_role("root")
        assert not is_valid_role(None)


class TestClaimsForRole:
    def test_role_only(self):
        assert claims_for_role(Role.TRAINER) == {"role": "trainer"}

    def test_legacy_flag(self):
        """The legacy form adds a boolean named after the role."""
        assert claims_for_role(Role.TRAINER, legacy_flag=True) == {
            "role": "trainer",
            "trainer": True,
        }
