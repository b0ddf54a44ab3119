import pytest

from ofertaflash.models import default_theme
from ofertaflash.storage import CompositionNotFound, LocalCompositionStore, StoreError, UploadFailure


@pytest.fixture
def store(tmp_path):
    return LocalCompositionStore(str(tmp_path), public_base_url="/files/", user_id="loja-1")


@pytest.mark.asyncio
async def test_upload_writes_file(store, tmp_path):
    asset = await store.upload(b"png-bytes", "oferta feed 1.png")

    assert asset.storage_path == "loja-1/oferta-feed-1.png"
    assert asset.public_url == "/files/loja-1/oferta-feed-1.png"
    assert (tmp_path / "files" / "loja-1" / "oferta-feed-1.png").read_bytes() == b"png-bytes"


@pytest.mark.asyncio
async def test_empty_upload_fails(store):
    with pytest.raises(UploadFailure):
        await store.upload(b"", "empty.png")


@pytest.mark.asyncio
async def test_persist_and_list_newest_first(store):
    theme = default_theme()
    first = await store.upload(b"1", "a.png")
    second = await store.upload(b"2", "b.png")
    id_a = await store.persist_record(first, "Story / TikTok", theme, timestamp=1000)
    id_b = await store.persist_record(second, "Instagram / Quadrado", theme, timestamp=2000)

    compositions = await store.list_by_user()
    assert [c.id for c in compositions] == [id_b, id_a]
    assert compositions[0].format_name == "Instagram / Quadrado"
    assert compositions[0].theme == theme
    assert await store.list_by_user("someone-else") == []


@pytest.mark.asyncio
async def test_persist_is_idempotent_per_upload(store):
    asset = await store.upload(b"1", "a.png")
    first = await store.persist_record(asset, "A4", default_theme(), timestamp=1)
    again = await store.persist_record(asset, "A4", default_theme(), timestamp=2)
    assert first == again
    assert len(await store.list_by_user()) == 1


@pytest.mark.asyncio
async def test_record_owns_theme_copy(store):
    theme = default_theme()
    asset = await store.upload(b"1", "a.png")
    composition_id = await store.persist_record(asset, "A4", theme)
    theme.primary_color = "#000000"

    saved = await store.get(composition_id)
    assert saved.theme.primary_color == "#dc2626"


@pytest.mark.asyncio
async def test_delete_removes_record_and_file(store, tmp_path):
    asset = await store.upload(b"1", "a.png")
    composition_id = await store.persist_record(asset, "A4", default_theme())

    await store.delete(composition_id)

    assert await store.list_by_user() == []
    assert not (tmp_path / "files" / asset.storage_path).exists()
    with pytest.raises(CompositionNotFound):
        await store.delete(composition_id)
    with pytest.raises(CompositionNotFound):
        await store.get(composition_id)


@pytest.mark.asyncio
async def test_unreadable_index_is_an_upload_failure(store, tmp_path):
    (tmp_path / "compositions.json").mkdir()
    asset = await store.upload(b"1", "a.png")

    with pytest.raises(UploadFailure):
        await store.persist_record(asset, "Story / TikTok", default_theme())
    with pytest.raises(StoreError):
        await store.list_by_user()


@pytest.mark.asyncio
async def test_corrupt_index_is_a_store_error(store, tmp_path):
    (tmp_path / "compositions.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        await store.get("missing")
