import pytest

from ofertaflash.models import Product, default_theme, starter_products
from ofertaflash.presets import FormatNotFound, known_format_ids
from ofertaflash.session import CompositionSession, ExportInProgress


def test_defaults():
    session = CompositionSession()
    assert session.format_id == "a4"
    assert [p.id for p in session.products] == ["1", "2", "3"]
    assert not session.busy


def test_snapshot_is_a_deep_copy():
    session = CompositionSession()
    snapshot = session.snapshot()
    session.theme.primary_color = "#000000"
    session.products[0].name = "Outro"

    assert snapshot.theme.primary_color == "#dc2626"
    assert snapshot.products[0].name == "Leite Integral 1L"


def test_restore_bumps_version():
    session = CompositionSession()
    snapshot = session.snapshot()
    session.update(products=[])
    session.restore(snapshot)
    assert len(session.products) == 3
    assert session.version > snapshot.version


def test_update_migrates_products():
    session = CompositionSession()
    session.update(products=[Product(id="x", name="Feijão", price="8.90")])
    assert set(session.products[0].layouts) == set(known_format_ids())


def test_set_format():
    session = CompositionSession(default_theme(), starter_products())
    session.set_format("tv")
    assert session.format_id == "tv"
    with pytest.raises(FormatNotFound):
        session.set_format("billboard")
    assert session.format_id == "tv"


@pytest.mark.asyncio
async def test_exclusive_section():
    session = CompositionSession()
    async with session.exclusive():
        assert session.busy
        with pytest.raises(ExportInProgress):
            async with session.exclusive():
                pass
    assert not session.busy


@pytest.mark.asyncio
async def test_exclusive_released_on_error():
    session = CompositionSession()
    with pytest.raises(RuntimeError):
        async with session.exclusive():
            raise RuntimeError("boom")
    assert not session.busy
