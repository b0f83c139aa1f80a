import io

import pytest
from PIL import Image

from image_editor.config import Settings
from image_editor.errors import DecodeError, SelectionReleasedError
from image_editor.services.resource_manager import ResourceManager


def count_closes(monkeypatch, handle) -> list:
    closes = []
    image = handle.image
    original = image.close

    def _close():
        closes.append(1)
        original()

    monkeypatch.setattr(image, "close", _close)
    return closes


class TestAcquireRelease:
    def test_acquire_decodes_to_rgba(self, resources, make_png):
        handle = resources.acquire(make_png(8, 6))
        assert handle.size == (8, 6)
        assert handle.image.mode == "RGBA"
        assert resources.live_handles == 1

    def test_release_twice_is_safe(self, resources, make_png, monkeypatch):
        handle = resources.acquire(make_png())
        closes = count_closes(monkeypatch, handle)
        resources.release(handle)
        resources.release(handle)
        handle.release()
        assert closes == [1]
        assert handle.released
        assert resources.live_handles == 0

    def test_size_survives_release(self, resources, make_png):
        handle = resources.acquire(make_png(5, 3))
        resources.release(handle)
        assert handle.size == (5, 3)

    def test_pixels_unavailable_after_release(self, resources, make_png):
        handle = resources.acquire(make_png())
        resources.release(handle)
        with pytest.raises(SelectionReleasedError):
            _ = handle.image

    def test_release_none_is_noop(self, resources):
        resources.release(None)

    @pytest.mark.parametrize("data", [b"", b"not an image at all", b"\x89PNG\r\n\x1a\n broken"])
    def test_invalid_bytes_raise_decode_error(self, resources, data):
        with pytest.raises(DecodeError):
            resources.acquire(data)
        assert resources.live_handles == 0


class TestScopedAcquisition:
    def test_scoped_releases_on_success(self, resources, make_png):
        with resources.scoped(make_png()) as handle:
            assert not handle.released
        assert handle.released
        assert resources.live_handles == 0

    def test_scoped_releases_on_error(self, resources, make_png):
        with pytest.raises(RuntimeError):
            with resources.scoped(make_png()) as handle:
                raise RuntimeError("boom")
        assert handle.released
        assert resources.live_handles == 0

    def test_buffer_is_closed_on_exit(self, resources):
        with resources.buffer() as stream:
            stream.write(b"abc")
            assert resources.live_buffers == 1
        assert stream.closed
        assert resources.live_buffers == 0

    def test_release_all_leaves_active_scopes_to_their_owner(self, resources, make_png):
        loose = resources.acquire(make_png())
        with resources.scoped(make_png(5, 5)) as handle, resources.buffer() as stream:
            resources.release_all()
            assert loose.released
            assert handle.image.size == (5, 5)
            stream.write(b"still writable")
        assert handle.released
        assert stream.closed
        assert resources.live_handles == 0
        assert resources.live_buffers == 0

    @pytest.mark.asyncio
    async def test_async_scope_releases_on_error(self, resources, make_png):
        with pytest.raises(RuntimeError):
            async with resources.scoped_async(make_png(4, 2)) as handle:
                assert handle.size == (4, 2)
                raise RuntimeError("boom")
        assert handle.released
        assert resources.live_handles == 0

    @pytest.mark.asyncio
    async def test_async_scope_decode_error(self, resources):
        with pytest.raises(DecodeError):
            async with resources.scoped_async(b"garbage"):
                pass
        assert resources.live_handles == 0

    def test_release_all(self, resources, make_png):
        handles = [resources.acquire(make_png()) for _ in range(3)]
        resources.release_all()
        assert all(handle.released for handle in handles)
        assert resources.live_handles == 0


class TestExifOrientation:
    @pytest.fixture
    def rotated_jpeg(self) -> bytes:
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90° clockwise on display
        stream = io.BytesIO()
        Image.new("RGB", (40, 20), (10, 200, 30)).save(stream, format="JPEG", exif=exif)
        return stream.getvalue()

    def test_exif_orientation_applied(self, resources, rotated_jpeg):
        assert resources.acquire(rotated_jpeg).size == (20, 40)

    def test_exif_orientation_can_be_disabled(self, rotated_jpeg):
        manager = ResourceManager(Settings(APPLY_EXIF_ORIENTATION=False))
        try:
            assert manager.acquire(rotated_jpeg).size == (40, 20)
        finally:
            manager.release_all()
