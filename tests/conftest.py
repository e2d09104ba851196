"""Shared fixtures for pymxbai tests."""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

import pytest

from pymxbai.config import Config
from pymxbai.exceptions import MxbaiNotFoundError, MxbaiUploadError


def synced_file(
    file_id: str,
    file_path: str,
    file_hash: str,
    uploaded_at: str = "2025-01-15T10:30:00.000Z",
    **user_metadata: Any,
) -> dict[str, Any]:
    """Build a store file object carrying a sync marker."""
    metadata: dict[str, Any] = dict(user_metadata)
    metadata["sync"] = {
        "file_path": file_path,
        "file_hash": file_hash,
        "uploaded_at": uploaded_at,
        "synced": True,
    }
    return {"id": file_id, "filename": Path(file_path).name, "metadata": metadata}


class FakeStoreClient:
    """In-memory stand-in for MxbaiClient.

    Records every operation in ``events`` as ``(kind, target, "start"|"end")``
    and tracks the highest number of operations in flight at once.
    """

    def __init__(
        self,
        stores: Optional[list[dict[str, Any]]] = None,
        files: Optional[list[dict[str, Any]]] = None,
        delay: float = 0.0,
    ):
        self.stores = (
            stores if stores is not None else [{"id": "store_1", "name": "docs"}]
        )
        self.files: list[dict[str, Any]] = list(files or [])
        self.delay = delay
        self.events: list[tuple[str, str, str]] = []
        self.uploads: list[dict[str, Any]] = []
        self.fail_uploads: set[str] = set()
        self.fail_deletes: set[str] = set()
        self.list_error: Optional[Exception] = None
        self.in_flight = 0
        self.max_in_flight = 0
        self._next_id = 0

    async def __aenter__(self) -> "FakeStoreClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        return None

    @asynccontextmanager
    async def _operation(self, kind: str, target: str):
        self.events.append((kind, target, "start"))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            yield
        finally:
            self.in_flight -= 1
            self.events.append((kind, target, "end"))

    def calls(self, kind: str) -> list[str]:
        """Targets of started operations of one kind, in order."""
        return [t for k, t, stage in self.events if k == kind and stage == "start"]

    async def retrieve_store(self, identifier: str) -> dict[str, Any]:
        for store in self.stores:
            if store["id"] == identifier:
                return store
        raise MxbaiNotFoundError(f"Resource not found: /v1/stores/{identifier}", 404)

    async def iter_stores(self, page_size: int = 100):
        for store in self.stores:
            yield store

    async def iter_store_files(self, store: str, page_size: int = 100):
        if self.list_error is not None:
            raise self.list_error
        for store_file in list(self.files):
            yield store_file

    async def upload_file(
        self,
        store: str,
        file_path: Path,
        metadata: Optional[dict[str, Any]] = None,
        strategy: Optional[str] = None,
    ) -> dict[str, Any]:
        name = Path(file_path).name
        async with self._operation("upload", name):
            if name in self.fail_uploads:
                raise MxbaiUploadError(f"Upload of {name} rejected")
            self._next_id += 1
            created = {
                "id": f"new_{self._next_id}",
                "filename": name,
                "metadata": metadata or {},
            }
            self.files.append(created)
            self.uploads.append(
                {"path": Path(file_path), "metadata": metadata, "strategy": strategy}
            )
            return created

    async def delete_store_file(self, store: str, file_id: str) -> dict[str, Any]:
        async with self._operation("delete", file_id):
            if file_id in self.fail_deletes:
                raise MxbaiNotFoundError(f"File {file_id} not found", 404)
            before = len(self.files)
            self.files = [f for f in self.files if f["id"] != file_id]
            if len(self.files) == before:
                raise MxbaiNotFoundError(f"File {file_id} not found", 404)
            return {"id": file_id, "deleted": True}


@pytest.fixture
def fake_client():
    """Provide an empty fake store client with one store named 'docs'."""
    return FakeStoreClient()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run the test inside an empty temporary working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Point the shared config at an empty directory."""
    isolated = Config(tmp_path_factory.mktemp("config"))
    monkeypatch.setattr("pymxbai.store.config", isolated)
    monkeypatch.setattr("pymxbai.cli.config", isolated)
    monkeypatch.setattr("pymxbai.api.config", isolated)
    monkeypatch.delenv("MXBAI_API_KEY", raising=False)
    monkeypatch.delenv("MXBAI_BASE_URL", raising=False)
    return isolated
