# Patch-note screenshots: download from the Discord CDN into
# data/patch-notes-images/<version>/ and, when Wix credentials are set, push
# them to the site's media manager so the published HTML can reference them.
# WixCMSPublisher puts the finished HTML into the site's patch-notes collection.
# Blocking requests calls; callers run these in a worker thread.

import logging
import mimetypes
import os
import re
from datetime import datetime, timezone

import requests

from senan.errors import UpstreamError
from senan.models import DownloadedImage

logger = logging.getLogger(__name__)

WIX_API_BASE = "https://www.wixapis.com"
REQUEST_TIMEOUT = 30
HEADERS = {"User-Agent": "senan-bot (+patch notes)"}

# Discord CDN: /attachments/<channel_id>/<attachment_id>/<filename>
ATTACHMENT_ID_RE = re.compile(r"/attachments/\d+/(\d+)/")


def image_filename(attachment) -> str:
    """Stable local name: attachment id + original extension (CDN URLs are immutable)."""
    match = ATTACHMENT_ID_RE.search(attachment.url)
    stem = attachment.id or (match.group(1) if match else "image")
    ext = os.path.splitext(attachment.filename)[1] or ".png"
    return f"{stem}{ext.lower()}"


def download_images(raw_notes: list, version: str, images_dir: str, session=None) -> list:
    """
    Download every image attachment of the raw notes. Files already on disk
    are reused. A failed download is logged and skipped; the rest continue.
    """
    session = session or requests
    target = os.path.join(images_dir, version)
    os.makedirs(target, exist_ok=True)

    downloaded = []
    for index, note in enumerate(raw_notes):
        for attachment in note.images:
            filename = image_filename(attachment)
            path = os.path.join(target, filename)
            if not os.path.exists(path):
                try:
                    response = session.get(attachment.url, headers=HEADERS, timeout=REQUEST_TIMEOUT)
                except requests.RequestException as e:
                    logger.warning("Image download failed for %s: %s", attachment.filename, e)
                    continue
                if response.status_code != 200:
                    logger.warning("Image download failed for %s: HTTP %d", attachment.filename, response.status_code)
                    continue
                with open(path, "wb") as f:
                    f.write(response.content)
            downloaded.append(DownloadedImage(
                filename=filename,
                original_name=attachment.filename,
                raw_index=index,
                path=path,
            ))
    logger.info("Downloaded %d image(s) for %s", len(downloaded), version)
    return downloaded


class WixMediaUploader:
    """Two-step Wix Media Manager upload: request an upload URL, then PUT the bytes."""

    def __init__(self, api_key: str, site_id: str, session=None):
        self.api_key = api_key
        self.site_id = site_id
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.site_id)

    def upload(self, path: str, folder: str = None) -> str:
        """Upload one file; returns its public URL. Raises UpstreamError."""
        filename = os.path.basename(path)
        mime_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        payload = {"mimeType": mime_type, "fileName": filename}
        if folder:
            payload["filePath"] = folder

        try:
            response = self.session.post(
                f"{WIX_API_BASE}/site-media/v1/files/generate-upload-url",
                json=payload,
                headers={"Authorization": self.api_key, "wix-site-id": self.site_id},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"Wix upload URL request failed: {e}", retryable=True) from e
        if not 200 <= response.status_code < 300:
            raise UpstreamError(f"Wix API error ({response.status_code}): {response.text[:200]}",
                                status=response.status_code, retryable=response.status_code >= 500)
        upload_url = response.json().get("uploadUrl")
        if not upload_url:
            raise UpstreamError("Wix did not return an upload URL")

        with open(path, "rb") as f:
            data = f.read()
        try:
            put = self.session.put(
                upload_url,
                params={"filename": filename},
                data=data,
                headers={"Content-Type": mime_type},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"Wix file upload failed: {e}", retryable=True) from e
        if not 200 <= put.status_code < 300:
            raise UpstreamError(f"Wix upload error ({put.status_code}): {put.text[:200]}",
                                status=put.status_code, retryable=put.status_code >= 500)
        return put.json().get("file", {}).get("url", "")

    def upload_all(self, images: list, version: str) -> list:
        """
        Upload downloaded images, returning copies with media_url filled in.
        Failures are logged and leave media_url unset.
        """
        results = []
        for image in images:
            try:
                url = self.upload(image.path, folder=f"/patch-notes/{version}")
            except (UpstreamError, OSError) as e:
                logger.warning("Wix upload failed for %s: %s", image.filename, e)
                results.append(image)
                continue
            results.append(image.model_copy(update={"media_url": url or None}))
        return results


# ─────────────────────────────────────────
# WEBSITE PUBLISHING (Wix CMS)
# ─────────────────────────────────────────

WIX_PATCH_NOTES_COLLECTION = "Import1"


def version_order(version: str) -> int:
    """Sortable number for a version: "0.10.43" → 1043."""
    parts = version.split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return 0
    major, minor, patch = (int(p) for p in parts)
    return major * 10000 + minor * 100 + patch


def release_dates(timestamp: str) -> tuple:
    """ISO timestamp → ("Dec 5, 2025 6:00 PM", "December 5, 2025") as the site shows them."""
    dt = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    hour = dt.hour % 12 or 12
    release = f"{dt:%b} {dt.day}, {dt.year} {hour}:{dt:%M} {dt:%p}"
    display = f"{dt:%B} {dt.day}, {dt.year}"
    return release, display


class WixCMSPublisher:
    """
    Upserts patch notes into the site's Wix Data collection, keyed by version:
    query for an existing item, then PUT over it or POST a new one.
    """

    def __init__(self, api_key: str, site_id: str, session=None, collection_id: str = WIX_PATCH_NOTES_COLLECTION):
        self.api_key = api_key
        self.site_id = site_id
        self.collection_id = collection_id
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.site_id)

    def _request(self, method: str, path: str, payload: dict) -> dict:
        try:
            response = getattr(self.session, method)(
                f"{WIX_API_BASE}{path}",
                json=payload,
                headers={"Authorization": self.api_key, "wix-site-id": self.site_id},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"Wix CMS request failed: {e}", retryable=True) from e
        if not 200 <= response.status_code < 300:
            raise UpstreamError(f"Wix CMS error ({response.status_code}): {response.text[:200]}",
                                status=response.status_code, retryable=response.status_code >= 500)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Wix CMS returned invalid JSON: {e}") from e

    def find_by_version(self, version: str):
        """The existing item's id for version, or None."""
        result = self._request("post", "/wix-data/v2/items/query", {
            "dataCollectionId": self.collection_id,
            "query": {"filter": {"version": version}, "paging": {"limit": 1}},
        })
        items = result.get("dataItems") or []
        if not items:
            return None
        item = items[0]
        return item.get("id") or item.get("data", {}).get("_id")

    def publish(self, version: str, html: str, release_date: str = None, display_date: str = None) -> dict:
        """
        Insert or update the item for version. Returns
        {"action": "inserted"|"updated", "itemId", "version"}. Raises UpstreamError.
        """
        now = datetime.now(timezone.utc).isoformat()
        item = {"data": {
            "version": version,
            "body": html,
            "releaseDate": release_date or now,
            "displayDate": display_date or now,
            "versionOrder": version_order(version),
        }}
        payload = {"dataCollectionId": self.collection_id, "dataItem": item}

        item_id = self.find_by_version(version)
        if item_id:
            self._request("put", f"/wix-data/v2/items/{item_id}", payload)
            action = "updated"
        else:
            result = self._request("post", "/wix-data/v2/items", payload)
            item_id = (result.get("dataItem") or {}).get("id")
            action = "inserted"
        logger.info("Published patch notes %s to the website (%s, item %s)", version, action, item_id)
        return {"action": action, "itemId": item_id, "version": version}
