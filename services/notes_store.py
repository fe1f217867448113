"""
Sticky notes table.
Notes are kept as one JSON document in S3, or in a local file when no bucket is configured.
"""

import json
import os
import random
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import boto3
from loguru import logger

from models import NoteCreate, NoteUpdate, StickyNote

NOTE_COLORS = [
    "#fef08a",  # yellow
    "#fca5a5",  # red
    "#86efac",  # green
    "#93c5fd",  # blue
    "#c4b5fd",  # purple
    "#fdba74",  # orange
    "#f9a8d4",  # pink
]

CATEGORY_LABELS = {
    "todo": "To Do",
    "in_progress": "In Progress",
    "done": "Done",
}


class NotesStorageError(Exception):
    """Raised when the notes document cannot be read or written."""


class NotesStore:
    """Manages sticky notes stored in S3 or a local JSON file."""

    def __init__(self, bucket: str = "", key: str = "notes/sticky_notes.json", local_path: str = "sticky_notes.json"):
        self.bucket = bucket
        self.key = key
        self.local_path = local_path
        self._lock = threading.Lock()
        self.s3_client = None
        if bucket:
            self.s3_client = boto3.client("s3")
            logger.info(f"Notes stored in s3://{bucket}/{key}")

    def _load(self) -> Dict[str, Any]:
        """Load notes from S3 or local file"""
        if not self.s3_client:
            if not os.path.exists(self.local_path):
                return {"notes": []}
            try:
                with open(self.local_path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error loading local notes file {self.local_path}: {e}")
                raise NotesStorageError("Failed to load notes") from e

        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=self.key)
            return json.loads(response["Body"].read().decode("utf-8"))
        except self.s3_client.exceptions.NoSuchKey:
            logger.warning("Notes document not found in S3, starting empty")
            return {"notes": []}
        except Exception as e:
            logger.error(f"Error loading notes from S3: {e}")
            raise NotesStorageError("Failed to load notes") from e

    def _save(self, data: Dict[str, Any]) -> None:
        """Save notes to S3 or local file"""
        if not self.s3_client:
            try:
                with open(self.local_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                return
            except OSError as e:
                logger.error(f"Error saving local notes file {self.local_path}: {e}")
                raise NotesStorageError("Failed to save notes") from e

        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=self.key,
                Body=json.dumps(data, indent=2).encode("utf-8"),
                ContentType="application/json",
                ServerSideEncryption="AES256",
            )
        except Exception as e:
            logger.error(f"Error saving notes to S3: {e}")
            raise NotesStorageError("Failed to save notes") from e

    def list_notes(self) -> List[StickyNote]:
        """All notes, newest first."""
        notes = [StickyNote(**n) for n in self._load().get("notes", [])]
        return sorted(notes, key=lambda n: n.created_at, reverse=True)

    def create_note(self, note: NoteCreate) -> StickyNote:
        now = datetime.now(timezone.utc).isoformat()
        new_note = StickyNote(
            id=str(uuid.uuid4()),
            title=note.title or "",
            content=note.content or "",
            color=note.color or NOTE_COLORS[0],
            category=note.category or "todo",
            position_x=note.position_x or random.random() * 200,
            position_y=note.position_y or random.random() * 200,
            created_at=now,
            updated_at=now,
        )

        with self._lock:
            data = self._load()
            data.setdefault("notes", []).append(new_note.model_dump())
            self._save(data)

        logger.info(f"Created note {new_note.id}")
        return new_note

    def update_note(self, note_id: str, updates: NoteUpdate) -> Optional[StickyNote]:
        """Apply the provided fields; returns None when the note does not exist."""
        changes = updates.model_dump(exclude_unset=True, exclude_none=True)

        with self._lock:
            data = self._load()
            for index, stored in enumerate(data.get("notes", [])):
                if stored.get("id") != note_id:
                    continue
                stored.update(changes)
                stored["updated_at"] = datetime.now(timezone.utc).isoformat()
                data["notes"][index] = stored
                self._save(data)
                return StickyNote(**stored)

        logger.warning(f"Note not found for update: {note_id}")
        return None

    def delete_note(self, note_id: str) -> bool:
        with self._lock:
            data = self._load()
            notes = data.get("notes", [])
            remaining = [n for n in notes if n.get("id") != note_id]
            if len(remaining) == len(notes):
                logger.warning(f"Note not found for delete: {note_id}")
                return False
            data["notes"] = remaining
            self._save(data)

        logger.info(f"Deleted note {note_id}")
        return True
