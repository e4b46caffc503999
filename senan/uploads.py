# Uploaded knowledge files for "file usage" mode.
# Knowledge files are converted to plain text and uploaded through the Files
# API; FileCache remembers which remote file ids belong to which local file so
# re-uploads replace instead of piling up. Single-process cache, no locking.

import json
import logging
import os
from datetime import datetime, timezone

from senan.errors import NotFoundError, PersistenceError, UpstreamError
from senan.rag import format_document

logger = logging.getLogger(__name__)


class FileCache:
    """JSON map: knowledge file name → {"file_ids": [...], "uploaded_at": iso}."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("File cache %s unreadable, starting empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e

    def get(self, name: str) -> list:
        return self.load().get(name, {}).get("file_ids", [])

    def set(self, name: str, file_ids: list) -> None:
        data = self.load()
        data[name] = {"file_ids": list(file_ids), "uploaded_at": datetime.now(timezone.utc).isoformat()}
        self._write(data)

    def remove_file_id(self, file_id: str) -> bool:
        data = self.load()
        changed = False
        for name in list(data):
            ids = data[name].get("file_ids", [])
            if file_id in ids:
                ids.remove(file_id)
                changed = True
                if not ids:
                    del data[name]
        if changed:
            self._write(data)
        return changed

    def all_file_ids(self) -> list:
        ids = []
        for entry in self.load().values():
            ids.extend(entry.get("file_ids", []))
        return ids

    def clear(self) -> None:
        self._write({})


def render_knowledge_file(documents: list) -> str:
    """Plain-text rendering of a knowledge file, one entry block per document."""
    return "\n\n---\n\n".join(format_document(d) for d in documents)


async def upload_knowledge(completion_client, knowledge_store, file_cache, filename: str = None) -> dict:
    """
    Upload one knowledge file (or all of them) and record the new file ids.
    Replaced uploads are deleted remotely. Returns {filename: file_id}.
    """
    paths = knowledge_store.knowledge_files()
    if filename:
        paths = [p for p in paths if os.path.basename(p) == filename]
        if not paths:
            raise NotFoundError(f"No knowledge file {filename}", user_message=f"No knowledge file named `{filename}`.")

    uploaded = {}
    for path in paths:
        name = os.path.basename(path)
        documents, _ = knowledge_store.load_file(path)
        if not documents:
            logger.info("Skipping upload of %s: no valid documents", name)
            continue

        text_name = os.path.splitext(name)[0] + ".txt"
        file_id = await completion_client.upload_file(text_name, render_knowledge_file(documents).encode("utf-8"))

        for old_id in file_cache.get(name):
            try:
                await completion_client.delete_file(old_id)
            except UpstreamError as e:
                # Stale remote copy; the new upload already replaced it locally
                logger.warning("Could not delete replaced upload %s: %s", old_id, e)
        file_cache.set(name, [file_id])
        uploaded[name] = file_id
    return uploaded


async def delete_all_uploads(completion_client, file_cache) -> int:
    """Delete every workspace file and clear the cache. Returns the count."""
    files = await completion_client.list_files()
    for item in files:
        await completion_client.delete_file(item["id"])
    file_cache.clear()
    return len(files)
