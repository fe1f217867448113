"""
Sticky notes endpoints.
The store does blocking file or S3 I/O, so calls run in the thread pool.
"""

import asyncio
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, status

from dependencies import NotesStoreDep, ThreadPoolDep
from models import NoteCreate, NoteUpdate, StickyNote
from services.notes_store import CATEGORY_LABELS, NOTE_COLORS, NotesStorageError

router = APIRouter(
    prefix="/api/notes",
    tags=["notes"],
    responses={404: {"description": "Note not found"}},
)


def _storage_failure(e: NotesStorageError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(e),
    )


@router.get("", response_model=List[StickyNote])
async def list_notes(store: NotesStoreDep, thread_pool: ThreadPoolDep) -> List[StickyNote]:
    """All notes, newest first."""
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(thread_pool, store.list_notes)
    except NotesStorageError as e:
        raise _storage_failure(e)


@router.get("/categories")
async def get_categories() -> Dict[str, Any]:
    """Board columns and the note color palette."""
    return {
        "categories": [
            {"id": category, "label": label} for category, label in CATEGORY_LABELS.items()
        ],
        "colors": NOTE_COLORS,
    }


@router.post("", response_model=StickyNote, status_code=status.HTTP_201_CREATED)
async def create_note(
    note: NoteCreate, store: NotesStoreDep, thread_pool: ThreadPoolDep
) -> StickyNote:
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(thread_pool, store.create_note, note)
    except NotesStorageError as e:
        raise _storage_failure(e)


@router.patch("/{note_id}", response_model=StickyNote)
async def update_note(
    note_id: str, updates: NoteUpdate, store: NotesStoreDep, thread_pool: ThreadPoolDep
) -> StickyNote:
    """Update only the fields present in the body."""
    loop = asyncio.get_running_loop()
    try:
        note = await loop.run_in_executor(thread_pool, store.update_note, note_id, updates)
    except NotesStorageError as e:
        raise _storage_failure(e)

    if note is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Note {note_id} not found",
        )
    return note


@router.delete("/{note_id}")
async def delete_note(
    note_id: str, store: NotesStoreDep, thread_pool: ThreadPoolDep
) -> Dict[str, Any]:
    loop = asyncio.get_running_loop()
    try:
        deleted = await loop.run_in_executor(thread_pool, store.delete_note, note_id)
    except NotesStorageError as e:
        raise _storage_failure(e)

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Note {note_id} not found",
        )
    return {"success": True, "id": note_id}
