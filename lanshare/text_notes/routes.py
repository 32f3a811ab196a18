"""Text note routes under /api/text."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from lanshare.text_notes.models import NoteContent, NoteCreated, NoteFragment, TextNote
from lanshare.text_notes.service import TextNoteService

router = APIRouter(prefix="/api/text", tags=["text_notes"])


def get_note_service(request: Request) -> TextNoteService:
    return request.app.state.note_service


@router.post("", response_model=NoteCreated)
def create_note(
    payload: NoteContent | None = None,
    service: TextNoteService = Depends(get_note_service),
) -> NoteCreated:
    note = service.create(payload.content if payload else None)
    return NoteCreated(id=note.id, url=f"/text/{note.id}")


@router.get("/{note_id}", response_model=TextNote)
def get_note(note_id: str, service: TextNoteService = Depends(get_note_service)) -> TextNote:
    return service.get(note_id)


@router.put("/{note_id}", response_model=TextNote)
def save_note(
    note_id: str,
    payload: NoteContent | None = None,
    service: TextNoteService = Depends(get_note_service),
) -> TextNote:
    return service.save(note_id, payload.content if payload else None)


@router.post("/{note_id}/fragments", response_model=TextNote)
def append_note_fragment(
    note_id: str,
    payload: NoteFragment,
    service: TextNoteService = Depends(get_note_service),
) -> TextNote:
    return service.append_fragment(note_id, payload.fragment)
