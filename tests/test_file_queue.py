from __future__ import annotations

import math

import pytest

from memories_backend.uploader.file_queue import FileQueue, is_accepted, wants_preview
from memories_backend.uploader.files import FileHandle
from memories_backend.uploader.previews import PreviewRegistry


def _img(name: str, size: int = 10) -> FileHandle:
    return FileHandle.from_bytes(name, b"x" * size, mime_type="image/jpeg")


def test_add_filters_disallowed_and_counts_rejections() -> None:
    queue = FileQueue()
    a = _img("a.jpg")
    b = FileHandle.from_bytes("b.txt", b"hello", mime_type="text/plain")

    result = queue.add([a, b])

    assert [e.file.name for e in queue.files] == ["a.jpg"]
    assert result.rejected == 1
    assert result.message == "Ignoramos 1 archivo(s) por formato no permitido."
    assert queue.last_rejection == result.message
    assert queue.files[0].preview_url is not None


def test_add_accepts_by_extension_when_mime_type_is_missing() -> None:
    queue = FileQueue()
    mov = FileHandle.from_bytes("IMG_0001.MOV", b"xx", mime_type="")

    result = queue.add([mov])

    assert len(result.added) == 1
    assert result.rejected == 0
    # Extension-detected videos still get a preview.
    assert result.added[0].preview_url is not None


def test_add_duplicate_is_a_noop() -> None:
    queue = FileQueue()
    queue.add([_img("a.jpg", size=3)])
    before = queue.files

    result = queue.add([_img("a.jpg", size=3)])

    assert result.added == ()
    assert result.duplicates == 1
    assert queue.files == before
    assert len(queue.previews.outstanding()) == 1


def test_same_name_different_size_is_not_a_duplicate() -> None:
    queue = FileQueue()
    queue.add([_img("a.jpg", size=3)])
    result = queue.add([_img("a.jpg", size=4)])
    assert len(result.added) == 1
    assert len(queue) == 2


def test_duplicates_within_one_batch_are_collapsed() -> None:
    queue = FileQueue()
    result = queue.add([_img("a.jpg"), _img("a.jpg")])
    assert len(result.added) == 1
    assert result.duplicates == 1


def test_add_truncates_to_remaining_capacity() -> None:
    queue = FileQueue(max_files=3)
    queue.add([_img("a.jpg")])
    assert queue.remaining_slots() == 2

    result = queue.add([_img("b.jpg"), _img("c.jpg"), _img("d.jpg"), _img("e.jpg")])

    assert [e.file.name for e in result.added] == ["b.jpg", "c.jpg"]
    assert result.truncated == 2
    assert len(queue) == 3
    assert queue.remaining_slots() == 0
    # Truncated files never acquired a preview.
    assert len(queue.previews.outstanding()) == 3


def test_remaining_slots_unbounded() -> None:
    queue = FileQueue()
    queue.add([_img("a.jpg")])
    assert queue.remaining_slots() == math.inf


def test_remove_releases_exactly_one_preview() -> None:
    registry = PreviewRegistry()
    queue = FileQueue(previews=registry)
    queue.add([_img("a.jpg"), _img("b.jpg")])
    first, second = queue.files

    assert queue.remove(first.id) is True
    assert registry.released_count == 1
    assert registry.outstanding() == [second.preview_url]

    # Removing again does not revisit the released reference.
    assert queue.remove(first.id) is False
    assert registry.released_count == 1


def test_remove_file_without_preview_releases_nothing() -> None:
    registry = PreviewRegistry()
    queue = FileQueue(
        accepted_mime_types=frozenset({"application/pdf"}),
        accepted_extensions=(".pdf",),
        previews=registry,
    )
    queue.add([FileHandle.from_bytes("doc.pdf", b"%PDF", mime_type="application/pdf")])
    entry = queue.files[0]
    assert entry.preview_url is None

    queue.remove(entry.id)
    assert registry.released_count == 0


def test_clear_releases_all_previews() -> None:
    registry = PreviewRegistry()
    queue = FileQueue(previews=registry)
    queue.add([_img("a.jpg"), _img("b.jpg"), _img("c.jpg")])

    queue.clear()

    assert len(queue) == 0
    assert registry.outstanding() == []
    assert registry.released_count == 3


def test_context_manager_releases_on_teardown() -> None:
    registry = PreviewRegistry()
    with FileQueue(previews=registry) as queue:
        queue.add([_img("a.jpg"), _img("b.jpg")])
        assert len(registry.outstanding()) == 2

    assert registry.outstanding() == []
    assert registry.released_count == 2
    with pytest.raises(RuntimeError):
        queue.add([_img("c.jpg")])


def test_close_is_idempotent() -> None:
    registry = PreviewRegistry()
    queue = FileQueue(previews=registry)
    queue.add([_img("a.jpg")])
    queue.close()
    queue.close()
    assert registry.released_count == 1


def test_registry_double_release_returns_false() -> None:
    registry = PreviewRegistry()
    url = registry.acquire(_img("a.jpg"))
    assert registry.resolve(url) is not None
    assert registry.release(url) is True
    assert registry.release(url) is False
    assert registry.resolve(url) is None
    assert registry.released_count == 1


def test_acceptance_helpers() -> None:
    assert is_accepted(FileHandle.from_bytes("x.heic", b"", mime_type="image/heic"))
    assert is_accepted(FileHandle.from_bytes("X.JPEG", b"", mime_type=""))
    assert not is_accepted(FileHandle.from_bytes("x.gif", b"", mime_type="image/gif"))
    assert wants_preview(FileHandle.from_bytes("x.gif", b"", mime_type="image/gif"))
    assert not wants_preview(FileHandle.from_bytes("x.txt", b"", mime_type="text/plain"))
