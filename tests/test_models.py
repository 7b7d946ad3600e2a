"""Tests for the model catalogue and download states."""

from __future__ import annotations

import pytest

from whisper_dictate.errors import UnknownModelError
from whisper_dictate.models import (
    BASE,
    DEFAULT_MODEL,
    DOWNLOADED,
    LARGE_V3,
    LARGE_V3_TURBO,
    MODEL_VARIANTS,
    NOT_DOWNLOADED,
    SMALL,
    DownloadFailed,
    Downloading,
    format_bytes,
    get_variant,
    is_ready,
    short_status_text,
    state_name,
    status_text,
)


class TestModelVariants:
    """Tests for the fixed variant catalogue."""

    def test_catalogue_order(self) -> None:
        assert MODEL_VARIANTS == (BASE, SMALL, LARGE_V3_TURBO, LARGE_V3)
        assert DEFAULT_MODEL is LARGE_V3

    def test_identifiers_are_unique(self) -> None:
        identifiers = [v.identifier for v in MODEL_VARIANTS]
        assert len(set(identifiers)) == len(identifiers)
        assert len({v.file_name for v in MODEL_VARIANTS}) == len(MODEL_VARIANTS)

    def test_sizes_grow_with_quality(self) -> None:
        sizes = [v.size_bytes for v in MODEL_VARIANTS]
        assert sizes == sorted(sizes)

    @pytest.mark.parametrize("variant", MODEL_VARIANTS)
    def test_get_variant(self, variant) -> None:
        assert get_variant(variant.identifier) is variant

    def test_get_unknown_variant(self) -> None:
        with pytest.raises(UnknownModelError) as exc_info:
            get_variant("medium")
        assert exc_info.value.identifier == "medium"

    def test_str(self) -> None:
        assert str(BASE) == "🐇 Base (~145 MB)"


class TestDownloadStates:
    """Tests for state helpers."""

    def test_states_compare_by_value(self) -> None:
        assert Downloading(0.5, 10, 20) == Downloading(0.5, 10, 20)
        assert DownloadFailed("x") != DownloadFailed("y")
        assert NOT_DOWNLOADED != DOWNLOADED

    def test_is_ready(self) -> None:
        assert is_ready(DOWNLOADED)
        assert not is_ready(NOT_DOWNLOADED)
        assert not is_ready(Downloading(1.0, 20, 20))
        assert not is_ready(DownloadFailed("boom"))

    def test_state_names(self) -> None:
        assert state_name(NOT_DOWNLOADED) == "not_downloaded"
        assert state_name(Downloading(0.1, 1, 10)) == "downloading"
        assert state_name(DOWNLOADED) == "downloaded"
        assert state_name(DownloadFailed("boom")) == "error"

    def test_status_text(self) -> None:
        assert status_text(NOT_DOWNLOADED) == "Not downloaded"
        assert status_text(DOWNLOADED) == "Ready"
        assert status_text(DownloadFailed("disk full")) == "Error: disk full"
        assert (
            status_text(Downloading(0.426, 686_000_000, 1_610_000_000))
            == "42% (686.0 MB/1.6 GB)"
        )

    def test_short_status_text(self) -> None:
        assert short_status_text(Downloading(0.999, 144_000_000, 145_000_000)) == "Downloading: 99%"
        assert short_status_text(DOWNLOADED) == "Ready"

    def test_unknown_state_rejected(self) -> None:
        with pytest.raises(TypeError):
            status_text("downloaded")  # type: ignore[arg-type]


class TestFormatBytes:
    """Tests for format_bytes."""

    @pytest.mark.parametrize(
        "num_bytes, expected",
        [
            (0, "0.0 MB"),
            (145_000_000, "145.0 MB"),
            (1_000_000_000, "1.0 GB"),
            (3_080_000_000, "3.1 GB"),
        ],
    )
    def test_format(self, num_bytes: int, expected: str) -> None:
        assert format_bytes(num_bytes) == expected
