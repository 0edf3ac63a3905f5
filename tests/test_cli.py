"""Tests for the operator commands in main.py (create-admin, set-role)."""

from __future__ import annotations

import pytest

import main


@pytest.fixture
def cli_store(user_store, monkeypatch):
    """Point main() at the in-memory store and keep it open across calls."""
    monkeypatch.setattr(main, "UserStore", lambda db_url: user_store)
    monkeypatch.setattr(user_store, "close", lambda: None)
    return user_store


class TestCreateAdmin:
    def test_creates_admin(self, cli_store, capsys):
        code = main.main(["create-admin", "--name", "Root", "--email", "Root@Example.com", "--password", "S3cretPass"])
        assert code == 0
        user = cli_store.get_by_email("root@example.com")
        assert user.role == "admin"
        assert user.hashed_password != "S3cretPass"
        assert "Created admin" in capsys.readouterr().out

    def test_existing_email(self, cli_store):
        args = ["create-admin", "--name", "Root", "--email", "root@example.com", "--password", "S3cretPass"]
        assert main.main(args) == 0
        assert main.main(args) == 1


class TestSetRole:
    def test_promote_and_demote(self, cli_store, credentials):
        credentials.register("Alice", "alice@example.com", "S3cretPass")
        assert main.main(["set-role", "--email", "alice@example.com", "--role", "admin"]) == 0
        assert cli_store.get_by_email("alice@example.com").role == "admin"
        assert main.main(["set-role", "--email", "alice@example.com", "--role", "user"]) == 0
        assert cli_store.get_by_email("alice@example.com").role == "user"

    def test_unknown_account(self, cli_store):
        assert main.main(["set-role", "--email", "ghost@example.com", "--role", "admin"]) == 1

    def test_invalid_role_rejected_by_parser(self, cli_store):
        with pytest.raises(SystemExit):
            main.main(["set-role", "--email", "a@example.com", "--role", "superuser"])
