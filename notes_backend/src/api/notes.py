from typing import List, Optional

from sqlalchemy.orm import Session

from src.api.errors import NotFound, ValidationError
from src.api.models import Note, utcnow

MAX_BODY_LENGTH = 10000


def clean_body(body: str) -> str:
    body = (body or "").strip()
    if not body:
        raise ValidationError("Note content required")
    if len(body) > MAX_BODY_LENGTH:
        raise ValidationError(f"Note content exceeds {MAX_BODY_LENGTH} characters")
    return body


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class NoteStore:
    """
    CRUD over notes, always scoped to one owner.

    Every lookup and mutation filters on id and owner_id in the same
    statement, so a note owned by someone else is indistinguishable from a
    missing one.
    """

    def __init__(self, db: Session):
        self.db = db

    def _owned(self, owner_id: str, note_id: str):
        return self.db.query(Note).filter(Note.id == note_id, Note.owner_id == owner_id)

    def create(self, owner_id: str, body: str) -> Note:
        note = Note(owner_id=owner_id, body=clean_body(body))
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        return note

    def list(self, owner_id: str, q: Optional[str] = None) -> List[Note]:
        """Notes of owner_id, newest-created first, optionally filtered by body text."""
        query = self.db.query(Note).filter(Note.owner_id == owner_id)
        if q and q.strip():
            # search text is literal; % and _ in it must not act as wildcards
            query = query.filter(Note.body.ilike(f"%{_escape_like(q.strip())}%", escape="\\"))
        return query.order_by(Note.created_at.desc(), Note.id.desc()).all()

    def get(self, owner_id: str, note_id: str) -> Note:
        note = self._owned(owner_id, note_id).first()
        if note is None:
            raise NotFound()
        return note

    def update(self, owner_id: str, note_id: str, body: str) -> Note:
        body = clean_body(body)
        updated = self._owned(owner_id, note_id).update(
            {Note.body: body, Note.updated_at: utcnow()}, synchronize_session=False
        )
        if not updated:
            self.db.rollback()
            raise NotFound()
        self.db.commit()
        return self.get(owner_id, note_id)

    def delete(self, owner_id: str, note_id: str) -> None:
        deleted = self._owned(owner_id, note_id).delete(synchronize_session=False)
        if not deleted:
            self.db.rollback()
            raise NotFound()
        self.db.commit()
