import pytest

from filebox.models.file import File
from filebox.repositories.file import FileRepository
from filebox.schemas.share import ShareCreate
from filebox.schemas.user import UserCreate
from filebox.services.auth import AuthService
from filebox.services.file import FileService
from filebox.services.gateway import AccessGateway
from filebox.services.share import ShareService
from filebox.utils.exceptions import AuthenticationError, AuthorizationError, GoneError


async def login(session_factory, email, password="abc12345"):
    async with session_factory() as db:
        return await AuthService(db).login(email, password)


@pytest.fixture
async def stored_file(session_factory, blob_store, owner) -> File:
    async with session_factory() as db:
        return await FileService(db, blob_store).upload_file(b"secret", "secret.txt", "text/plain", owner)


async def download_as_owner(session_factory, blob_store, access_token, file_id):
    async with session_factory() as db:
        return await AccessGateway(db, blob_store).download_as_owner(access_token, file_id)


async def test_owner_download_counts(session_factory, blob_store, owner, stored_file):
    token = await login(session_factory, owner.email)

    download = await download_as_owner(session_factory, blob_store, token.access_token, stored_file.id)
    assert download.content == b"secret"
    assert download.file.name == "secret.txt"

    async with session_factory() as db:
        file = await FileRepository(db).get_by_id(stored_file.id)
    assert file.download_count == 1


async def test_other_user_is_forbidden(session_factory, blob_store, other_user, stored_file):
    token = await login(session_factory, other_user.email)
    with pytest.raises(AuthorizationError):
        await download_as_owner(session_factory, blob_store, token.access_token, stored_file.id)


async def test_admin_can_download(session_factory, blob_store, admin, stored_file):
    token = await login(session_factory, admin.email)
    download = await download_as_owner(session_factory, blob_store, token.access_token, stored_file.id)
    assert download.content == b"secret"


async def test_revoked_token_is_rejected(session_factory, blob_store, owner, stored_file):
    token = await login(session_factory, owner.email)
    async with session_factory() as db:
        await AuthService(db).logout(token.access_token)

    with pytest.raises(AuthenticationError):
        await download_as_owner(session_factory, blob_store, token.access_token, stored_file.id)


async def test_share_path_needs_no_session(session_factory, blob_store, owner, stored_file):
    async with session_factory() as db:
        await ShareService(db, blob_store).create_share(
            stored_file.id, owner, ShareCreate(code="GATE01", download_limit=1)
        )

    async with session_factory() as db:
        download = await AccessGateway(db, blob_store).download_by_code("GATE01")
    assert download.content == b"secret"

    async with session_factory() as db:
        with pytest.raises(GoneError):
            await AccessGateway(db, blob_store).download_by_code("GATE01")


async def test_registered_session_works_immediately(session_factory, blob_store):
    async with session_factory() as db:
        token = await AuthService(db).register(
            UserCreate(email="alice@example.com", password="abc12345", username="alice")
        )
    async with session_factory() as db:
        user = await AuthService(db).get_current_user(token.access_token)
        file = await FileService(db, blob_store).upload_file(b"mine", "mine.txt", "text/plain", user)

    download = await download_as_owner(session_factory, blob_store, token.access_token, file.id)
    assert download.content == b"mine"
