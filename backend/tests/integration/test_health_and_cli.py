from __future__ import annotations

from authority.core.extensions import get_signing_key_store
from authority.services.identity.service import IdentityService


class TestHealth:
    def test_health_reports_components(self, client):
        resp = client.get("/api/v1/health")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "ok"
        assert body["db"] == body["refresh_store"] == body["signing_key"] == "ok"
        assert body["refresh_store_backend"] == "InMemoryRefreshTokenStore"

    def test_health_is_degraded_without_signing_key(self, client, monkeypatch):
        store = get_signing_key_store()

        def _down():
            raise RuntimeError("no key")

        monkeypatch.setattr(store, "current_key", _down)
        resp = client.get("/api/v1/health")

        assert resp.status_code == 503
        assert resp.get_json()["status"] == "degraded"

    def test_unknown_route_is_problem_json(self, client):
        resp = client.get("/api/v1/nope")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "not_found"


class TestCli:
    def test_keys_rotate_and_list(self, app, session):
        runner = app.test_cli_runner()
        before = get_signing_key_store().current_key()

        rotated = runner.invoke(args=["keys", "rotate"])
        assert rotated.exit_code == 0, rotated.output
        assert "active key is now" in rotated.output

        listed = runner.invoke(args=["keys", "list"])
        assert listed.exit_code == 0, listed.output
        assert before.secret not in listed.output
        lines = [line for line in listed.output.splitlines() if line.strip()]
        # header + two keys, newest first
        assert len(lines) == 3
        assert lines[1].split()[1] == "yes"
        assert lines[2].split()[0] == before.kid

    def test_tokens_purge(self, app, session):
        result = app.test_cli_runner().invoke(args=["tokens", "purge"])
        assert result.exit_code == 0, result.output
        assert "Purged 0" in result.output

    def test_seed_users_is_idempotent(self, app, session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["seed", "users", "--password", "s3cret"])
        assert first.exit_code == 0, first.output
        assert first.output.count("created") == 2

        second = runner.invoke(args=["seed", "users"])
        assert second.output.count("existing") == 2

        record = IdentityService().find_by_username("user1")
        assert record is not None

    def test_seed_refuses_production(self, app, session, monkeypatch):
        monkeypatch.setitem(app.config, "APP_ENV", "production")
        result = app.test_cli_runner().invoke(args=["seed", "users"])
        assert result.exit_code != 0
        assert "non-production" in result.output
