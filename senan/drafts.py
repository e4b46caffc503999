# DraftStore: patch-note drafts on disk, one JSON file per version
# (data/patch-notes-drafts/draft-<version>.json). Reviewed and published from
# the dashboard; the bot writes them from !patchnotes.

import json
import logging
import os
from datetime import datetime, timezone
from pydantic import ValidationError

from senan.errors import InputError, NotFoundError, PersistenceError
from senan.matching import reresolve_associations
from senan.models import PatchDraft
from senan.patchnotes import order_categories, render_discord, render_html, valid_version

logger = logging.getLogger(__name__)


def _version_key(version: str) -> tuple:
    return tuple(int(part) for part in version.split("."))


def check_version(version: str) -> str:
    """Versions become file names, so only plain x.y.z is accepted."""
    if not valid_version(version):
        raise InputError(f"Bad version {version!r}", user_message="Versions look like `0.10.43`.")
    return version


class DraftStore:

    def __init__(self, drafts_dir: str):
        self.drafts_dir = drafts_dir

    def _path(self, version: str) -> str:
        return os.path.join(self.drafts_dir, f"draft-{check_version(version)}.json")

    def save(self, draft: PatchDraft) -> PatchDraft:
        os.makedirs(self.drafts_dir, exist_ok=True)
        path = self._path(draft.version)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(draft.to_json(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e
        logger.info("Saved patch-note draft %s", draft.version)
        return draft

    def load(self, version: str):
        """The draft for version, or None if there isn't one."""
        path = self._path(version)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return PatchDraft.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Unreadable draft %s: %s", path, e)
            return None

    def get(self, version: str) -> PatchDraft:
        draft = self.load(version)
        if draft is None:
            raise NotFoundError(f"No draft {version}", user_message=f"No draft for version `{version}`.")
        return draft

    def list(self) -> list:
        """All readable drafts, newest version first."""
        if not os.path.isdir(self.drafts_dir):
            return []
        drafts = []
        for name in os.listdir(self.drafts_dir):
            if not (name.startswith("draft-") and name.endswith(".json")):
                continue
            version = name[len("draft-"):-len(".json")]
            if not valid_version(version):
                continue
            draft = self.load(version)
            if draft is not None:
                drafts.append(draft)
        return sorted(drafts, key=lambda d: _version_key(d.version), reverse=True)

    def delete(self, version: str) -> None:
        path = self._path(version)
        if not os.path.exists(path):
            raise NotFoundError(f"No draft {version}", user_message=f"No draft for version `{version}`.")
        try:
            os.remove(path)
        except OSError as e:
            raise PersistenceError(f"Could not delete {path}: {e}") from e
        logger.info("Deleted patch-note draft %s", version)

    def update_categories(self, version: str, categories: dict) -> PatchDraft:
        """
        Replace a draft's categories wholesale (the dashboard edit). Image
        associations follow the edited notes where they can, renderings are
        regenerated, and the draft is saved.
        """
        draft = self.get(version)
        if not isinstance(categories, dict) or not all(
            isinstance(notes, list) and all(isinstance(n, str) for n in notes) for notes in categories.values()
        ):
            raise InputError("categories must map names to lists of strings")

        cleaned = {name: [n.strip() for n in notes if n.strip()] for name, notes in categories.items()}
        ordered = order_categories(cleaned)
        associations = draft.image_associations
        if draft.with_images:
            associations = reresolve_associations(draft.image_associations, draft.raw_notes, ordered)

        updated = draft.model_copy(update={
            "categories": ordered,
            "image_associations": associations,
            "discord": render_discord(ordered),
            "html": render_html(ordered),
            "updated": datetime.now(timezone.utc).isoformat(),
        })
        return self.save(updated)

    def mark_published(self, version: str) -> PatchDraft:
        draft = self.get(version)
        published = draft.model_copy(update={
            "status": "published",
            "published_at": datetime.now(timezone.utc).isoformat(),
        })
        return self.save(published)

    def mark_published_to_web(self, version: str, item_id: str = None) -> PatchDraft:
        """Record a website publish; keeps an earlier Discord publish time."""
        draft = self.get(version)
        published = draft.model_copy(update={
            "status": "published",
            "published_at": draft.published_at or datetime.now(timezone.utc).isoformat(),
            "published_to_wix": True,
            "wix_item_id": item_id,
        })
        return self.save(published)
