"""Unit tests for the serving layer.

Process-wide clients are replaced through FastAPI dependency overrides,
so no vector database, embedding API or LLM is needed.
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from librarian.errors import ExternalServiceError
from librarian.ingestion.pipeline import IngestPipeline, get_ingest_pipeline
from librarian.retrieval.factory import get_repository, get_vector_store
from librarian.retrieval.retriever import QueryPipeline, get_query_pipeline
from librarian.serving.app import app


@pytest.fixture()
def client(repository, fake_store, embedder) -> Iterator[TestClient]:
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_vector_store] = lambda: fake_store
    app.dependency_overrides[get_ingest_pipeline] = lambda: IngestPipeline(
        repository, fake_store, embedder, max_workers=2
    )
    app.dependency_overrides[get_query_pipeline] = lambda: QueryPipeline(fake_store, embedder, repository)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client: TestClient, filename: str, data: bytes, content_type: str = "text/plain", **form):
    return client.post("/documents", files={"file": (filename, data, content_type)}, data=form)


class TestHealth:
    def test_health_endpoint(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "vector_store": "ok"}

    def test_unreachable_vector_store(self, client: TestClient) -> None:
        store = MagicMock()
        store.health_check.return_value = False
        app.dependency_overrides[get_vector_store] = lambda: store
        assert client.get("/health").json()["vector_store"] == "unavailable"


class TestDocuments:
    def test_upload_text_file(self, client: TestClient, repository) -> None:
        response = _upload(client, "notes.txt", b"The library opens at nine!")

        assert response.status_code == 201
        body = response.json()
        assert (body["chunk_count"], body["indexed"], body["failed"]) == (1, 1, 0)
        assert repository.get_document(body["document_id"]).original_filename == "notes.txt"

    def test_upload_into_catalog(self, client: TestClient, repository) -> None:
        catalog = repository.create_catalog("Finance")
        body = _upload(client, "budget.md", b"# Budget\n\nNumbers!", catalog_id=catalog.id).json()
        assert repository.get_document(body["document_id"]).catalog_id == catalog.id

    def test_unsupported_upload_is_rejected(self, client: TestClient, repository) -> None:
        response = _upload(client, "photo.png", b"\x89PNG", content_type="image/png")
        assert response.status_code == 422
        assert response.json()["error"] == "validation"
        assert repository.list_documents() == []

    def test_get_document(self, client: TestClient) -> None:
        document_id = _upload(client, "notes.txt", b"The library opens at nine!").json()["document_id"]

        response = client.get(f"/documents/{document_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["original_filename"] == "notes.txt"
        assert body["content_text"] == "The library opens at nine!"
        assert body["chunk_count"] == 1

    def test_missing_document_is_404(self, client: TestClient) -> None:
        response = client.get("/documents/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "not_found", "detail": "Document missing not found"}

    def test_delete_document(self, client: TestClient, fake_store) -> None:
        document_id = _upload(client, "notes.txt", b"The library opens at nine!").json()["document_id"]

        assert client.delete(f"/documents/{document_id}").status_code == 204
        assert fake_store.points == {}
        assert client.delete(f"/documents/{document_id}").status_code == 404


class TestSearch:
    def test_filename_match(self, client: TestClient) -> None:
        _upload(client, "Task2_report.txt", b"Results of the second task!")

        response = client.post("/search", json={"query": "Task2", "rewrite": False})

        assert response.status_code == 200
        body = response.json()
        assert body["search_query"] == "Task2"
        assert body["results"][0]["filename"] == "Task2_report.txt"
        assert body["results"][0]["match_type"] in {"lexical", "both"}

    def test_nothing_found(self, client: TestClient) -> None:
        body = client.post("/search", json={"query": "zebra", "rewrite": False}).json()
        assert body["results"] == []

    @pytest.mark.parametrize("payload", [{"query": ""}, {"query": "x", "limit": 0}, {"query": "x", "limit": 51}])
    def test_invalid_request(self, client: TestClient, payload: dict) -> None:
        assert client.post("/search", json=payload).status_code == 422

    def test_backend_failure_is_502(self, client: TestClient) -> None:
        pipeline = MagicMock()
        pipeline.search.side_effect = ExternalServiceError("vector_store", "connection refused")
        app.dependency_overrides[get_query_pipeline] = lambda: pipeline

        response = client.post("/search", json={"query": "budget"})

        assert response.status_code == 502
        assert response.json() == {"error": "external_service", "detail": "vector_store: connection refused"}


class TestIndex:
    def test_clear_index_keeps_documents(self, client: TestClient, repository) -> None:
        _upload(client, "notes.txt", b"The library opens at nine!")

        assert client.delete("/index").json() == {"deleted": 1}
        assert len(repository.list_documents()) == 1

    def test_rebuild_index(self, client: TestClient, fake_store) -> None:
        _upload(client, "a.txt", b"First document!")
        _upload(client, "b.txt", b"Second document!")

        response = client.post("/index/rebuild")

        assert response.json() == {"documents": 2, "indexed": 2, "failed": 0}
        assert len(fake_store.points) == 2


class TestCatalogs:
    def test_create_and_list_tree(self, client: TestClient) -> None:
        parent = client.post("/catalogs", json={"name": "Finance"})
        assert parent.status_code == 201
        parent_id = parent.json()["id"]
        child = client.post("/catalogs", json={"name": "Budgets", "parent_id": parent_id}).json()

        tree = client.get("/catalogs").json()

        assert tree == [
            {"id": parent_id, "name": "Finance", "children": [{"id": child["id"], "name": "Budgets", "children": []}]}
        ]

    def test_catalog_name_required(self, client: TestClient) -> None:
        assert client.post("/catalogs", json={"name": ""}).status_code == 422
