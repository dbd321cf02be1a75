"""Tests for towel_tracker.core.access — group membership rules."""

from towel_tracker.core.access import AccessResolver, has_access, self_group
from towel_tracker.data.db import GroupDB
from towel_tracker.data.models import Slot


def _slot(group_id: str) -> Slot:
    return Slot(id="s", name="Towel", group_id=group_id, room="", threshold_days=3, last_change_at="")


class TestHasAccess:
    def test_system_context_always_allowed(self):
        assert has_access(_slot("tg:1"), None, [])

    def test_member_of_slot_group(self):
        assert has_access(_slot("flat"), 7, ["tg:7", "flat"])

    def test_non_member_denied(self):
        assert not has_access(_slot("tg:1"), 777, ["tg:777"])

    def test_legacy_numeric_group_matches_owner(self):
        assert has_access(_slot("42"), 42, ["tg:42"])
        assert not has_access(_slot("42"), 43, ["tg:43"])

    def test_legacy_negative_group_chat_id_matches_owner(self):
        assert has_access(_slot("-1001234"), -1001234, ["tg:-1001234"])
        assert not has_access(_slot("-1001234"), 1001234, ["tg:1001234"])

    def test_non_numeric_foreign_group_denied(self):
        assert not has_access(_slot("flat-7"), 7, ["tg:7"])


class TestAccessResolver:
    def test_default_group_not_persisted_without_flag(self, store):
        resolver = AccessResolver(GroupDB(store))
        assert resolver.resolve_groups(5) == ["tg:5"]
        assert GroupDB(store).groups_for(5) == []

    def test_default_group_persisted_with_flag(self, store):
        resolver = AccessResolver(GroupDB(store))
        assert resolver.resolve_groups(5, ensure_default=True) == [self_group(5)]
        assert GroupDB(store).groups_for(5) == ["tg:5"]

    def test_primary_group_is_first_membership(self, store):
        db = GroupDB(store)
        db.add_member("flat", 5)
        db.add_member("tg:5", 5)
        assert AccessResolver(db).primary_group(5) == "flat"

    def test_add_member_is_idempotent(self, store):
        resolver = AccessResolver(GroupDB(store))
        assert resolver.add_member("tg:1", 2) is True
        assert resolver.add_member("tg:1", 2) is False
        assert resolver.resolve_groups(2) == ["tg:1"]
