import hashlib

import pytest

from filebox.core.config import settings
from filebox.schemas.file import FileUpdate
from filebox.services.file import FileService, clean_filename
from filebox.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
import uuid


async def upload(session_factory, blob_store, user, content=b"hello world", filename="hello.txt",
                 content_type="text/plain"):
    async with session_factory() as db:
        return await FileService(db, blob_store).upload_file(content, filename, content_type, user)


async def test_upload_stores_metadata_and_blob(session_factory, blob_store, owner):
    file = await upload(session_factory, blob_store, owner)

    assert file.owner_id == owner.id
    assert file.name == "hello.txt"
    assert file.size == 11
    assert file.content_type == "text/plain"
    assert file.sha256 == hashlib.sha256(b"hello world").hexdigest()
    assert file.object_name.startswith(f"users/{owner.id}/")
    assert file.object_name.endswith(".txt")
    assert not file.is_public
    assert await blob_store.get(file.object_name) == b"hello world"


async def test_upload_defaults_content_type(session_factory, blob_store, owner):
    file = await upload(session_factory, blob_store, owner, content_type=None)
    assert file.content_type == "application/octet-stream"


async def test_upload_rejects_empty_file(session_factory, blob_store, owner):
    with pytest.raises(ValidationError):
        await upload(session_factory, blob_store, owner, content=b"")


async def test_upload_rejects_oversized_file(session_factory, blob_store, owner, monkeypatch):
    monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 0)
    with pytest.raises(ValidationError):
        await upload(session_factory, blob_store, owner)
    assert not (blob_store.base_path / "users").exists()


@pytest.mark.parametrize("filename,expected", [
    ("report.pdf", "report.pdf"),
    ("../../etc/passwd", "passwd"),
    ("C:\\Users\\me\\photo.jpg", "photo.jpg"),
    ("  spaced.txt  ", "spaced.txt"),
])
def test_clean_filename(filename, expected):
    assert clean_filename(filename) == expected


@pytest.mark.parametrize("filename", [None, "", "   ", "dir/", "x" * 256])
def test_clean_filename_rejects(filename):
    with pytest.raises(ValidationError):
        clean_filename(filename)


async def test_access_is_owner_or_admin(session_factory, blob_store, owner, other_user, admin):
    file = await upload(session_factory, blob_store, owner)

    async with session_factory() as db:
        service = FileService(db, blob_store)
        assert (await service.get_owned_file(file.id, owner)).id == file.id
        assert (await service.get_owned_file(file.id, admin)).id == file.id
        with pytest.raises(AuthorizationError):
            await service.get_owned_file(file.id, other_user)
        with pytest.raises(NotFoundError):
            await service.get_owned_file(uuid.uuid4(), owner)


async def test_list_user_files_paginates(session_factory, blob_store, owner, other_user):
    for i in range(3):
        await upload(session_factory, blob_store, owner, filename=f"f{i}.txt")
    await upload(session_factory, blob_store, other_user)

    async with session_factory() as db:
        files, total = await FileService(db, blob_store).list_user_files(owner, page=2, limit=2)
    assert total == 3
    assert [f.name for f in files] == ["f0.txt"]


async def test_update_file(session_factory, blob_store, owner, other_user):
    file = await upload(session_factory, blob_store, owner)

    async with session_factory() as db:
        updated = await FileService(db, blob_store).update_file(
            file.id, owner, FileUpdate(name="renamed.txt", is_public=True)
        )
    assert updated.name == "renamed.txt"
    assert updated.is_public

    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await FileService(db, blob_store).update_file(file.id, other_user, FileUpdate(name="x.txt"))


async def test_delete_file_removes_row_and_blob(session_factory, blob_store, owner, other_user):
    file = await upload(session_factory, blob_store, owner)

    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await FileService(db, blob_store).delete_file(file.id, other_user)

    async with session_factory() as db:
        await FileService(db, blob_store).delete_file(file.id, owner)

    async with session_factory() as db:
        with pytest.raises(NotFoundError):
            await FileService(db, blob_store).get_owned_file(file.id, owner)
    with pytest.raises(NotFoundError):
        await blob_store.get(file.object_name)


async def test_failed_insert_discards_blob(session_factory, blob_store, owner, monkeypatch):
    async def broken_create(self, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr("filebox.repositories.file.FileRepository.create", broken_create)
    with pytest.raises(RuntimeError):
        await upload(session_factory, blob_store, owner)

    user_dir = blob_store.base_path / "users" / str(owner.id)
    assert not any(user_dir.iterdir())
