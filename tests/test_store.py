"""Tests for the Drive store client against an in-memory fake Drive."""

import httpx
import pytest

from bgg_rules_extractor.errors import StoreAuthError, StoreError, StoreUnavailableError
from bgg_rules_extractor.store import (
    DriveStoreClient,
    FOLDER_MIME_TYPE,
    build_multipart_body,
    quote_query_value,
)

from conftest import make_store


class TestFindExisting:
    @pytest.mark.asyncio
    async def test_none_when_absent(self, drive):
        store = make_store(drive)
        assert await store.find_existing("root", "Catan.txt") is None

    @pytest.mark.asyncio
    async def test_scoped_to_container(self, drive):
        drive.add("Catan.txt", parent="other")
        file_id = drive.add("Catan.txt", parent="root")
        store = make_store(drive)
        ref = await store.find_existing("root", "Catan.txt")
        assert ref.artifact_id == file_id
        assert ref.artifact_name == "Catan.txt"
        assert ref.artifact_url == f"https://drive.google.com/file/d/{file_id}/view"

    @pytest.mark.asyncio
    async def test_name_with_quote(self, drive):
        file_id = drive.add("Tzolk'in.txt")
        store = make_store(drive)
        ref = await store.find_existing("root", "Tzolk'in.txt")
        assert ref.artifact_id == file_id


class TestUpload:
    @pytest.mark.asyncio
    async def test_creates_when_missing(self, drive):
        store = make_store(drive)
        ref = await store.upload("root", "Catan.txt", "Game: Catan\n")
        assert ref.artifact_name == "Catan.txt"
        assert drive.files[ref.artifact_id]["content"] == b"Game: Catan\n"
        assert drive.files[ref.artifact_id]["parents"] == ["root"]

    @pytest.mark.asyncio
    async def test_description_names_the_game(self, drive):
        store = make_store(drive)
        ref = await store.upload("root", "Tzolkin.txt", "x", title="Tzolk'in")
        assert drive.files[ref.artifact_id]["description"] == "BGG Rules forum export for Tzolk'in"
        other = await store.upload("root", "Catan.txt", "x")
        assert drive.files[other.artifact_id]["description"] == "BGG Rules forum export for Catan.txt"

    @pytest.mark.asyncio
    async def test_idempotent_upload(self, drive):
        store = make_store(drive)
        first = await store.upload("folder1", "Catan.txt", "version one")
        second = await store.upload("folder1", "Catan.txt", "version one")

        assert first.artifact_id == second.artifact_id
        assert len(drive.files) == 1
        assert drive.count("POST", "/upload/") == 1
        assert drive.count("PATCH", "/upload/") == 1
        found = await store.find_existing("folder1", "Catan.txt")
        assert found.artifact_id == first.artifact_id

    @pytest.mark.asyncio
    async def test_replaces_content(self, drive):
        store = make_store(drive)
        ref = await store.upload("root", "Catan.txt", "old")
        await store.upload("root", "Catan.txt", "new ✓")
        assert drive.files[ref.artifact_id]["content"] == "new ✓".encode("utf-8")

    @pytest.mark.asyncio
    async def test_default_container(self, drive):
        store = make_store(drive)
        ref = await store.upload(None, "Catan.txt", "x")
        assert drive.files[ref.artifact_id]["parents"] == ["root"]

    @pytest.mark.asyncio
    async def test_rejected_upload(self, drive):
        drive.fail_uploads_with = 500
        store = make_store(drive)
        with pytest.raises(StoreError) as info:
            await store.upload("root", "Catan.txt", "x")
        assert info.value.status == 500
        assert "rejected" in info.value.body

    @pytest.mark.asyncio
    async def test_bad_token(self, drive):
        store = make_store(drive, token="expired")
        with pytest.raises(StoreAuthError) as info:
            await store.upload("root", "Catan.txt", "x")
        assert info.value.status == 401

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("unreachable")

        store = DriveStoreClient("t", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(StoreUnavailableError) as info:
            await store.upload("root", "Catan.txt", "x")
        assert info.value.operation == "Lookup"
        assert "unreachable" in str(info.value)

    @pytest.mark.asyncio
    async def test_requires_open_client(self):
        store = DriveStoreClient("t")
        with pytest.raises(RuntimeError):
            await store.check_access()
        assert store.client is None


class TestFolders:
    @pytest.mark.asyncio
    async def test_list_folders_sorted(self, drive):
        drive.add("Zeta", mime_type=FOLDER_MIME_TYPE)
        drive.add("Alpha", mime_type=FOLDER_MIME_TYPE)
        drive.add("notes.txt")
        drive.add("Nested", parent="elsewhere", mime_type=FOLDER_MIME_TYPE)
        store = make_store(drive)
        folders = await store.list_folders("root")
        assert [name for _id, name in folders] == ["Alpha", "Zeta"]

    @pytest.mark.asyncio
    async def test_create_folder_then_upload_into_it(self, drive):
        store = make_store(drive)
        folder_id = await store.create_folder("Board Games", "root")
        assert (folder_id, "Board Games") in await store.list_folders("root")
        ref = await store.upload(folder_id, "Catan.txt", "x")
        assert drive.files[ref.artifact_id]["parents"] == [folder_id]

    @pytest.mark.asyncio
    async def test_check_access(self, drive):
        assert await make_store(drive).check_access() == {"displayName": "Tester"}
        with pytest.raises(StoreAuthError):
            await make_store(drive, token="bad").check_access()


class TestHelpers:
    def test_quote_query_value(self):
        assert quote_query_value("Tzolk'in") == "Tzolk\\'in"
        assert quote_query_value("a\\b") == "a\\\\b"

    def test_multipart_body(self):
        body = build_multipart_body({"name": "a.txt"}, b"hello", "BOUNDARY")
        assert body.startswith(b"--BOUNDARY\r\nContent-Type: application/json")
        assert b'{"name":"a.txt"}' in body
        assert b"\r\n\r\nhello\r\n--BOUNDARY--" in body
