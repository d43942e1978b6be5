"""Tests for the backend selection, the local store and the Supabase client."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

import studylab.backend.client as backend_client
import studylab.settings as settings
from studylab.backend.local import LocalBackend
from studylab.backend.supabase import SupabaseBackend, build_params
from studylab.errors import BackendError, NotFoundError
from studylab.formality.scorer import score_transcript
from studylab.formality.store import FormalityStore


@pytest.fixture(autouse=True)
def _reset_backend():
    backend_client.reset()
    yield
    backend_client.reset()


class TestLocalBackend:
    def test_select_filters_and_orders(self):
        backend = LocalBackend(collections={"t": [
            {"id": 1, "k": "b", "n": 2},
            {"id": 2, "k": "a", "n": 1},
            {"id": 3, "k": "c", "n": None},
        ]})
        rows = asyncio.run(backend.select("t", {"k": ["a", "b", "c"]}, order_by="n"))
        assert [r["id"] for r in rows] == [2, 1, 3]
        assert asyncio.run(backend.select("t", {"k": "a"}, columns=["id"])) == [{"id": 2}]

    def test_insert_update_delete(self):
        backend = LocalBackend()
        row = asyncio.run(backend.insert("t", {"name": "x"}))
        assert row["id"] and row["created_at"]
        updated = asyncio.run(backend.update("t", {"id": row["id"]}, {"name": "y"}))
        assert updated[0]["name"] == "y"
        assert asyncio.run(backend.delete("t", {"name": "y"})) == 1
        assert asyncio.run(backend.select("t")) == []

    def test_returned_rows_are_copies(self):
        backend = LocalBackend(collections={"t": [{"id": 1, "tags": ["a"]}]})
        rows = asyncio.run(backend.select("t"))
        rows[0]["tags"].append("b")
        assert asyncio.run(backend.select("t"))[0]["tags"] == ["a"]

    def test_settings(self):
        backend = LocalBackend(settings={"k": 3})
        assert asyncio.run(backend.get_setting("k")) == "3"
        asyncio.run(backend.set_setting("k", "4"))
        asyncio.run(backend.set_setting("new", "x"))
        assert asyncio.run(backend.get_setting("k")) == "4"
        assert asyncio.run(backend.get_setting("new")) == "x"
        assert asyncio.run(backend.get_setting("missing")) is None

    def test_projected_rows_are_copies(self):
        backend = LocalBackend(collections={"t": [{"id": 1, "tags": ["a"]}]})
        rows = asyncio.run(backend.select("t", columns=["tags"]))
        rows[0]["tags"].append("b")
        assert asyncio.run(backend.select("t"))[0]["tags"] == ["a"]

    def test_handler_errors_become_backend_errors(self):
        backend = LocalBackend()
        backend.register_function("metrics", lambda body: body["missing"])
        with pytest.raises(BackendError, match="KeyError"):
            asyncio.run(backend.invoke("metrics", {}))

    def test_handler_must_return_an_object(self):
        backend = LocalBackend()
        backend.register_function("metrics", lambda body: [1, 2])
        with pytest.raises(BackendError, match="expected an object"):
            asyncio.run(backend.invoke("metrics", {}))

    def test_unknown_function(self):
        with pytest.raises(BackendError):
            asyncio.run(LocalBackend().invoke("nope", {}))

    def test_async_function_handler(self):
        backend = LocalBackend()

        async def handler(body):
            return {"echo": body["x"]}

        backend.register_function("echo", handler)
        assert asyncio.run(backend.invoke("echo", {"x": 1})) == {"echo": 1}
        assert backend.calls == [("echo", {"x": 1})]

    def test_from_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps({
            "collections": {"experiment_responses": [{"call_id": "c1"}]},
            "settings": {"thematic_coding_rules_version": "2"},
        }))
        backend = LocalBackend.from_file(path)
        assert asyncio.run(backend.select("experiment_responses")) == [{"call_id": "c1"}]
        assert asyncio.run(backend.get_setting("thematic_coding_rules_version")) == "2"

    def test_from_missing_file(self, tmp_path):
        backend = LocalBackend.from_file(tmp_path / "absent.json")
        assert asyncio.run(backend.select("anything")) == []


class TestBackendSelection:
    def test_falls_back_to_local(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
        settings.reset()
        backend = backend_client.get_backend()
        assert backend.name == "local"
        assert backend_client.get_backend() is backend

    def test_uses_supabase_when_configured(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://x.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "secret")
        settings.reset()
        try:
            assert backend_client.get_backend().name == "supabase"
        finally:
            monkeypatch.delenv("SUPABASE_URL", raising=False)
            monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
            settings.reset()

    def test_set_backend(self):
        backend = LocalBackend()
        backend_client.set_backend(backend)
        assert backend_client.get_backend() is backend


class TestSupabase:
    def test_build_params(self):
        assert build_params({"a": 1, "b": None, "c": True, "d": ["x", "y"]}) == {
            "a": "eq.1",
            "b": "is.null",
            "c": "eq.true",
            "d": 'in.("x","y")',
        }

    def _backend(self, handler) -> SupabaseBackend:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return SupabaseBackend("https://x.supabase.co/", "key", client=client)

    def test_select_sends_filters_and_auth(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"call_id": "c1"}])

        rows = asyncio.run(self._backend(handler).select("t", {"status": "completed"}, columns=["call_id"]))
        assert rows == [{"call_id": "c1"}]
        request = seen[0]
        assert request.url.path == "/rest/v1/t"
        assert request.url.params["status"] == "eq.completed"
        assert request.url.params["select"] == "call_id"
        assert request.headers["Authorization"] == "Bearer key"
        assert request.headers["Range"] == "0-999"

    def test_select_pages(self):
        def handler(request: httpx.Request) -> httpx.Response:
            start = int(request.headers["Range"].split("-")[0])
            size = 1000 if start == 0 else 3
            return httpx.Response(200, json=[{"n": start + i} for i in range(size)])

        rows = asyncio.run(self._backend(handler).select("t"))
        assert len(rows) == 1003

    def test_error_status_raises(self):
        backend = self._backend(lambda request: httpx.Response(500, text="db down"))
        with pytest.raises(BackendError) as exc:
            asyncio.run(backend.insert("t", {"a": 1}))
        assert exc.value.status_code == 500

    def test_invoke_error_payload_raises(self):
        backend = self._backend(lambda request: httpx.Response(200, json={"error": "quota"}))
        with pytest.raises(BackendError, match="quota"):
            asyncio.run(backend.invoke("run-thematic-coding", {"limit": 10}))

    def test_non_json_body_raises(self):
        backend = self._backend(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        with pytest.raises(BackendError, match="non-JSON") as exc:
            asyncio.run(backend.invoke("run-thematic-coding", {"limit": 10}))
        assert exc.value.status_code == 200

    def test_invoke_posts_body(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"computed": 3, "total": 0})

        data = asyncio.run(self._backend(handler).invoke("compute-qualitative-metrics", {"limit": 10}))
        assert data == {"computed": 3, "total": 0}
        assert bodies == [("/functions/v1/compute-qualitative-metrics", {"limit": 10})]


class TestFormalityStore:
    def test_save_and_get(self):
        store = FormalityStore(LocalBackend())
        saved = asyncio.run(store.save(score_transcript("The cat is happy.", call_id="c1")))
        assert saved.id is not None
        loaded = asyncio.run(store.get(saved.id))
        assert loaded.f_score == 75
        assert loaded.tokens_data == saved.tokens_data
        assert [c.id for c in asyncio.run(store.list("c1"))] == [saved.id]

    def test_missing_calculation(self):
        with pytest.raises(NotFoundError):
            asyncio.run(FormalityStore(LocalBackend()).get("nope"))
