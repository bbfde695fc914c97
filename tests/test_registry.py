"""账号登记表测试。Account registry tests."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import FIXED_NOW
from vpsaccess.errors import AccountNotFoundError, DuplicateIdentityError, PersistenceError
from vpsaccess.registry import Account, AccountRegistry


def make_account(name: str, days: int = 30, protocols=("ssh", "xray")) -> Account:
    return Account(
        username=name,
        password_digest=f"$2b$04$digest-for-{name}",
        expire_date=FIXED_NOW + timedelta(days=days),
        protocols=protocols,
    )


class TestAccount:
    """账号记录测试。Account record tests."""

    def test_to_dict_and_from_dict(self):
        """测试字典转换。Test dictionary conversion."""
        account = make_account("alice")
        data = account.to_dict()

        assert data["username"] == "alice"
        assert data["protocols"] == ["ssh", "xray"]
        assert data["expire_date"] == "2026-03-31T12:00:00+00:00"
        assert Account.from_dict(data) == account

    def test_naive_expiry_treated_as_utc(self):
        account = Account("bob", "digest", datetime(2026, 1, 1, 0, 0), protocols=["ssh"])
        assert account.expire_date.tzinfo == timezone.utc
        assert account.protocols == ("ssh",)

    def test_expired_at_boundary(self):
        account = make_account("alice", days=0)
        assert account.is_expired(FIXED_NOW)
        assert not account.is_expired(FIXED_NOW - timedelta(seconds=1))


class TestAccountRegistry:
    """登记表测试。Registry tests."""

    def test_missing_file_loads_empty(self, registry):
        registry.load()
        assert len(registry) == 0
        assert registry.get_all_accounts() == []

    def test_save_then_load_preserves_order(self, registry):
        for name in ("carol", "alice", "bob"):
            registry.add_account(make_account(name))
        registry.save()

        reloaded = AccountRegistry(registry.path)
        reloaded.load()

        assert [a.username for a in reloaded.get_all_accounts()] == ["carol", "alice", "bob"]
        assert reloaded.get_all_accounts() == registry.get_all_accounts()

    def test_saved_file_is_indented_json(self, registry):
        registry.add_account(make_account("alice"))
        registry.save()

        raw = registry.path.read_text(encoding="utf-8")
        assert raw.endswith("\n")
        assert '\n    {' in raw
        data = json.loads(raw)
        assert set(data[0]) == {"username", "password_digest", "expire_date", "protocols"}

    def test_save_leaves_no_temp_files(self, registry, temp_dir):
        registry.add_account(make_account("alice"))
        registry.save()
        registry.save()
        assert sorted(p.name for p in temp_dir.iterdir()) == ["users.json"]

    def test_save_creates_parent_directory(self, temp_dir):
        registry = AccountRegistry(temp_dir / "nested" / "db" / "users.json")
        registry.add_account(make_account("alice"))
        registry.save()
        assert registry.path.exists()

    def test_empty_file_loads_empty(self, registry):
        registry.path.write_text("", encoding="utf-8")
        registry.load()
        assert len(registry) == 0

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            '{"username": "alice"}',
            '[{"username": "alice"}]',
            '[{"username": "alice", "password_digest": "x", "expire_date": "tomorrow"}]',
            '[{"username": "alice", "password_digest": "x", "expire_date": "2026-01-01T00:00:00+00:00", "protocols": "ssh"}]',
            '[{"username": "alice", "password_digest": "x", "expire_date": "2026-01-01T00:00:00+00:00", "protocols": [1]}]',
        ],
    )
    def test_corrupt_file_raises(self, registry, content):
        registry.path.write_text(content, encoding="utf-8")
        with pytest.raises(PersistenceError):
            registry.load()

    def test_duplicate_records_in_file_raise(self, registry):
        record = make_account("alice").to_dict()
        registry.path.write_text(json.dumps([record, record]), encoding="utf-8")
        with pytest.raises(PersistenceError):
            registry.load()

    def test_failed_load_keeps_previous_state(self, registry):
        registry.add_account(make_account("alice"))
        registry.path.write_text("[", encoding="utf-8")
        with pytest.raises(PersistenceError):
            registry.load()
        assert "alice" in registry

    def test_save_to_unwritable_location_raises(self, temp_dir):
        blocker = temp_dir / "blocker"
        blocker.write_text("", encoding="utf-8")
        registry = AccountRegistry(blocker / "users.json")
        registry.add_account(make_account("alice"))

        with pytest.raises(PersistenceError):
            registry.save()

    def test_add_duplicate_rejected(self, registry):
        registry.add_account(make_account("alice"))
        with pytest.raises(DuplicateIdentityError):
            registry.add_account(make_account("alice", days=99))
        assert registry.get_account("alice").expire_date == FIXED_NOW + timedelta(days=30)

    def test_remove_account(self, registry):
        registry.add_account(make_account("alice"))
        registry.add_account(make_account("bob"))

        removed = registry.remove_account("alice")

        assert removed is not None and removed.username == "alice"
        assert registry.remove_account("alice") is None
        assert [a.username for a in registry.get_all_accounts()] == ["bob"]

    def test_replace_account_keeps_position(self, registry):
        registry.add_account(make_account("alice"))
        registry.add_account(make_account("bob"))

        registry.replace_account(make_account("alice", days=90))

        accounts = registry.get_all_accounts()
        assert [a.username for a in accounts] == ["alice", "bob"]
        assert accounts[0].expire_date == FIXED_NOW + timedelta(days=90)
        with pytest.raises(AccountNotFoundError):
            registry.replace_account(make_account("zoe"))

    def test_get_all_accounts_returns_copy(self, registry):
        registry.add_account(make_account("alice"))
        snapshot = registry.get_all_accounts()
        snapshot.clear()
        assert len(registry) == 1

    def test_get_expired_accounts(self, registry):
        registry.add_account(make_account("old", days=-1))
        registry.add_account(make_account("edge", days=0))
        registry.add_account(make_account("fresh", days=365))

        expired = registry.get_expired_accounts(FIXED_NOW)

        assert [a.username for a in expired] == ["old", "edge"]
