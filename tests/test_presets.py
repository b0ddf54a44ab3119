import pytest
from ofertaflash.presets import (
    DEFAULT_FORMAT_ID, FormatNotFound, get_format, get_format_options, known_format_ids, list_formats,
)


def test_registry_has_five_formats_in_display_order():
    assert known_format_ids() == ["story", "feed", "a4", "poster", "tv"]
    assert DEFAULT_FORMAT_ID == "a4"


def test_format_pixel_sizes():
    assert get_format("story").size == (1080, 1920)
    assert get_format("feed").size == (1080, 1080)
    assert get_format("a4").size == (2480, 3508)
    assert get_format("poster").size == (3508, 2480)
    assert get_format("tv").size == (1920, 1080)


def test_orientation_flags():
    assert get_format("poster").is_landscape
    assert get_format("tv").is_landscape
    assert not get_format("a4").is_landscape
    assert get_format("story").is_story


def test_preview_size_keeps_aspect_ratio():
    assert get_format("a4").preview_size(500) == (500, 707)
    assert get_format("feed").preview_size(540) == (540, 540)

    with pytest.raises(ValueError):
        get_format("feed").preview_size(0)


def test_unknown_format_raises():
    with pytest.raises(FormatNotFound) as exc:
        get_format("billboard")
    assert exc.value.format_id == "billboard"
    assert "billboard" in str(exc.value)


def test_format_options_cover_registry():
    options = get_format_options()
    assert [o["id"] for o in options] == [f.id for f in list_formats()]
    assert options[2]["dimensions"] == "2480x3508"
