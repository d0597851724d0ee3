"""
Session repository: CRUD over sessions and their images.

Owns the collection invariants:
- sessions are ordered newest-created first,
- session ids are unique,
- `total_count` equals the sum of image counts after every image mutation
  made here.

Every mutation is a whole-collection read-modify-write through the
PersistenceStore, serialized by a per-repository lock so concurrent callers
(e.g. the HTTP server's worker threads) cannot lose each other's updates.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence

from models.detection import Detection
from models.errors import NotFoundError, ValidationError
from models.session import ImageCount, Session
from storage.store import SESSIONS_KEY, PersistenceStore


class SessionRepository:
    """Session CRUD built on a PersistenceStore."""

    def __init__(self, store: PersistenceStore, key: str = SESSIONS_KEY):
        self.store = store
        self.key = key
        self._lock = threading.RLock()

    # ---------------- Internal helpers -----------------

    def _load_all(self) -> List[Session]:
        raw = self.store.load(self.key)
        if not isinstance(raw, list):
            if raw is not None:
                logging.warning(f"Session collection under {self.key} is not a list, ignoring it")
            return []

        sessions: List[Session] = []
        for item in raw:
            try:
                sessions.append(Session.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logging.warning(f"Skipping unreadable session record: {e}")
        return sessions

    def _save_all(self, sessions: List[Session]) -> None:
        self.store.save(self.key, [s.to_dict() for s in sessions])

    @staticmethod
    def _index_of(sessions: List[Session], session_id: str) -> int:
        for i, s in enumerate(sessions):
            if s.id == session_id:
                return i
        return -1

    def _require(self, sessions: List[Session], session_id: str) -> int:
        index = self._index_of(sessions, session_id)
        if index < 0:
            raise NotFoundError(f"Session not found: {session_id}")
        return index

    # ---------------- Public CRUD API -----------------

    def list_sessions(self) -> List[Session]:
        """All sessions, most recently created first. Never raises on bad data."""
        with self._lock:
            return self._load_all()

    def get_session(self, session_id: str) -> Optional[Session]:
        """The session with `session_id`, or None."""
        with self._lock:
            sessions = self._load_all()
            index = self._index_of(sessions, session_id)
            return sessions[index] if index >= 0 else None

    def require_session(self, session_id: str) -> Session:
        """The session with `session_id`; raises NotFoundError when absent."""
        session = self.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return session

    def create_session(self, name: str, object_type: Optional[str] = None) -> Session:
        """
        Create and persist a new, empty session at the front of the collection.

        Raises:
            ValidationError: if `name` is blank.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Session name must not be empty")
        object_type = (object_type or "").strip() or None

        with self._lock:
            session = Session.create(name, object_type)
            sessions = self._load_all()
            sessions.insert(0, session)
            self._save_all(sessions)

        logging.info(f"Session created: id={session.id}, name={session.name!r}")
        return session

    def update_session(self, session: Session) -> None:
        """
        Replace the stored session that has the same id, verbatim.

        `total_count` is not re-derived: callers that edit `images` directly
        must call `session.recompute_total()` first.

        Raises:
            NotFoundError: if no stored session has that id.
        """
        with self._lock:
            sessions = self._load_all()
            index = self._require(sessions, session.id)
            sessions[index] = session
            self._save_all(sessions)
        logging.debug(f"Session updated: id={session.id}")

    def delete_session(self, session_id: str) -> None:
        """Remove a session. Deleting an unknown id is not an error."""
        with self._lock:
            sessions = self._load_all()
            remaining = [s for s in sessions if s.id != session_id]
            if len(remaining) == len(sessions):
                logging.debug(f"Delete ignored, no session {session_id}")
                return
            self._save_all(remaining)
        logging.info(f"Session deleted: id={session_id}")

    def add_image_to_session(
        self,
        session_id: str,
        path: str,
        count: int,
        detections: Sequence[Detection],
        corrections: int = 0,
    ) -> ImageCount:
        """
        Append a reviewed photo to a session and restore the total invariant.

        Args:
            session_id: Owning session.
            path: Durable photo location supplied by the capture layer.
            count: Accepted count for the photo.
            detections: Detection set to freeze into the image record.
            corrections: Edits made during review (0 when not tracked).

        Returns:
            The stored ImageCount.

        Raises:
            NotFoundError: if the session does not exist.
        """
        with self._lock:
            sessions = self._load_all()
            index = self._require(sessions, session_id)
            session = sessions[index]

            image = ImageCount.create(path, count, list(detections), corrections=corrections)
            session.images.append(image)
            session.recompute_total()
            self._save_all(sessions)

        logging.info(
            f"Image added: session={session_id}, image={image.id}, "
            f"count={image.count}, total={session.total_count}"
        )
        return image

    def remove_image_from_session(self, session_id: str, image_id: str) -> Optional[ImageCount]:
        """
        Remove one image and recompute the total.

        An unknown `image_id` is a no-op and nothing is written.

        Returns:
            The removed ImageCount, or None.

        Raises:
            NotFoundError: if the session does not exist.
        """
        with self._lock:
            sessions = self._load_all()
            session = sessions[self._require(sessions, session_id)]

            image = session.find_image(image_id)
            if image is None:
                logging.debug(f"Remove ignored, no image {image_id} in session {session_id}")
                return None

            session.images = [img for img in session.images if img.id != image_id]
            session.recompute_total()
            self._save_all(sessions)

        logging.info(
            f"Image removed: session={session_id}, image={image_id}, total={session.total_count}"
        )
        return image

    def update_image_count(
        self,
        session_id: str,
        image_id: str,
        count: int,
        corrections: int,
    ) -> ImageCount:
        """
        Re-score an existing image and recompute the total.

        Raises:
            NotFoundError: if the session or the image does not exist.
        """
        with self._lock:
            sessions = self._load_all()
            session = sessions[self._require(sessions, session_id)]

            for i, img in enumerate(session.images):
                if img.id == image_id:
                    updated = img.rescored(count, corrections)
                    session.images[i] = updated
                    break
            else:
                raise NotFoundError(f"Image not found: {image_id}")

            session.recompute_total()
            self._save_all(sessions)

        logging.info(
            f"Image rescored: session={session_id}, image={image_id}, "
            f"count={updated.count}, total={session.total_count}"
        )
        return updated
