# KnowledgeStore: the JSON knowledge base under data/.
# Every *.json file (except the bot's own state files) is a JSON array of
# document records. Files are re-read on every call so edits show up without
# a restart.

import json
import logging
import os
from pydantic import ValidationError

from senan.errors import PersistenceError
from senan.models import Document

logger = logging.getLogger(__name__)

# Files in data/ that hold bot state rather than documents.
NON_KNOWLEDGE_FILES = {"uploaded_files.json"}


class KnowledgeStore:

    def __init__(self, data_dir: str):
        self.data_dir = data_dir

    def knowledge_files(self) -> list:
        """Sorted paths of every knowledge file in the data directory."""
        if not os.path.isdir(self.data_dir):
            return []
        return [
            os.path.join(self.data_dir, name)
            for name in sorted(os.listdir(self.data_dir))
            if name.endswith(".json") and name not in NON_KNOWLEDGE_FILES
        ]

    def load_file(self, path: str) -> tuple:
        """
        Load one knowledge file.

        Returns (documents, rejected) where rejected is a list of
        (index, reason) for records that failed validation. A file that isn't
        valid JSON, or isn't an array, is rejected as a whole.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Skipping knowledge file %s: %s", os.path.basename(path), e)
            return [], [(None, str(e))]

        if not isinstance(data, list):
            logger.warning("Skipping knowledge file %s: top level is not an array", os.path.basename(path))
            return [], [(None, "top level is not an array")]

        documents, rejected = [], []
        for i, record in enumerate(data):
            try:
                documents.append(Document.model_validate(record))
            except ValidationError as e:
                # First error is enough to find the record in the file
                reason = e.errors()[0].get("msg", "invalid record")
                logger.warning("Skipping record %d in %s: %s", i, os.path.basename(path), reason)
                rejected.append((i, reason))
        return documents, rejected

    def load_all(self) -> list:
        """Every valid document across all knowledge files, in file order."""
        documents = []
        for path in self.knowledge_files():
            docs, _ = self.load_file(path)
            documents.extend(docs)
        return documents

    def load_by_category(self, category: str) -> list:
        return [d for d in self.load_all() if d.category == category]

    def load_by_priority(self, priority: str) -> list:
        return [d for d in self.load_all() if d.priority == priority]

    def save_documents(self, filename: str, documents: list) -> str:
        """Write documents to data/<filename> as a JSON array. Returns the path."""
        os.makedirs(self.data_dir, exist_ok=True)
        path = os.path.join(self.data_dir, os.path.basename(filename))
        payload = [d.model_dump() for d in documents]
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e
        logger.info("Wrote %d documents to %s", len(documents), path)
        return path
