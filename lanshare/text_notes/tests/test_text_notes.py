"""Tests for text notes (service and /api/text routes)."""
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

from lanshare.app import create_app
from lanshare.common.errors import ShareNotFound, ShareValidationError
from lanshare.ledger.repository import InMemoryMetadataLedger
from lanshare.text_notes.models import NOTE_SEPARATOR, TextNote
from lanshare.text_notes.service import TextNoteService


@pytest.fixture
def notes(clock, events):
    return TextNoteService(InMemoryMetadataLedger("notes"), clock=clock, event_logger=events)


def test_create_and_get(notes, clock):
    note = notes.create("first")
    fetched = notes.get(note.id)
    assert fetched.content == "first"
    assert fetched.created_at == clock.now
    assert fetched.updated_at is None


def test_save_overwrites_last_write_wins(notes, clock):
    note = notes.create("one")
    clock.advance(minutes=1)
    notes.save(note.id, "two")
    saved = notes.save(note.id, "three")
    assert saved.content == "three"
    assert saved.updated_at == clock.now


def test_save_with_empty_content_keeps_existing(notes):
    note = notes.create("keep me")
    assert notes.save(note.id, "").content == "keep me"
    assert notes.save(note.id, None).content == "keep me"


def test_save_creates_missing_note_with_given_id(notes):
    note = notes.save("my-note", "hello")
    assert note.id == "my-note"
    assert notes.get("my-note").content == "hello"


def test_get_missing_note(notes):
    with pytest.raises(ShareNotFound):
        notes.get("missing")


def test_invalid_note_id(notes):
    with pytest.raises(ShareValidationError):
        notes.save("../../x", "hello")


def test_fragments_split_and_drop_blanks(clock):
    note = TextNote(id="n", content=f"a{NOTE_SEPARATOR}  {NOTE_SEPARATOR}b", created_at=clock.now)
    assert note.fragments() == ["a", "b"]
    assert TextNote(id="n", content="single", created_at=clock.now).fragments() == ["single"]


def test_concurrent_fragment_appends_are_all_kept(notes):
    notes.save("shared", "start")

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(lambda idx: notes.append_fragment("shared", f"line {idx}"), range(30)))

    fragments = notes.get("shared").fragments()
    assert fragments[0] == "start"
    assert sorted(fragments[1:]) == sorted(f"line {idx}" for idx in range(30))


def test_empty_fragment_rejected(notes):
    with pytest.raises(ShareValidationError):
        notes.append_fragment("shared", "   ")


def test_note_routes(settings, clock):
    client = TestClient(create_app(settings, clock=clock))

    created = client.post("/api/text", json={"content": "hi"}).json()
    assert created["url"] == f"/text/{created['id']}"
    assert client.get(f"/api/text/{created['id']}").json()["content"] == "hi"

    updated = client.put(f"/api/text/{created['id']}", json={"content": "hi again"}).json()
    assert updated["content"] == "hi again"
    assert "updatedAt" in updated and "createdAt" in updated

    appended = client.post(f"/api/text/{created['id']}/fragments", json={"fragment": "more"}).json()
    assert appended["content"] == f"hi again{NOTE_SEPARATOR}more"

    assert client.post("/api/text").status_code == 200
    missing = client.get("/api/text/does-not-exist")
    assert missing.status_code == 404
    assert missing.json()["error"] == "Text note not found"

    upserted = client.put("/api/text/brand-new", json={"content": "fresh"}).json()
    assert upserted["id"] == "brand-new"


def test_put_without_body_creates_or_keeps_note(settings, clock):
    client = TestClient(create_app(settings, clock=clock))

    fresh = client.put("/api/text/empty-put")
    assert fresh.status_code == 200
    assert fresh.json()["id"] == "empty-put"
    assert fresh.json()["content"] == ""

    client.put("/api/text/empty-put", json={"content": "kept"})
    clock.advance(minutes=1)
    again = client.put("/api/text/empty-put")
    assert again.status_code == 200
    assert again.json()["content"] == "kept"

    no_content_key = client.put("/api/text/empty-put", json={})
    assert no_content_key.json()["content"] == "kept"


def test_malformed_note_body_uses_error_envelope(settings, clock):
    client = TestClient(create_app(settings, clock=clock))
    resp = client.post("/api/text/abc/fragments", json={"wrong": "field"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "share.invalid_request"
    assert body["error"] == "Invalid request"
    assert "detail" not in body
