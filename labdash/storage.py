import logging
import os
import uuid

from flask import current_app, url_for
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp", "pdf", "doc", "docx", "xls", "xlsx", "txt"}


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


class FileStore:
    """Where uploaded file bytes live. ``upload`` returns the URL to store on the row."""

    def upload(self, filename: str, data: bytes, mime_type: str = None) -> str:
        raise NotImplementedError

    def delete(self, url: str) -> None:
        raise NotImplementedError


class LocalFileStore(FileStore):
    """Keeps files under ``UPLOAD_FOLDER/<subdir>`` and serves them from ``/uploads``."""

    def __init__(self, base_dir: str, subdir: str = "files"):
        self.base_dir = base_dir
        self.subdir = subdir

    def _dir(self):
        path = os.path.join(self.base_dir, self.subdir)
        os.makedirs(path, exist_ok=True)
        return path

    def upload(self, filename, data, mime_type=None):
        safe = secure_filename(filename) or "upload"
        ext = safe.rsplit(".", 1)[1].lower() if "." in safe else "bin"
        unique_name = f"{uuid.uuid4().hex}.{ext}"
        stored_path = os.path.join(self._dir(), unique_name)
        with open(stored_path, "wb") as fh:
            fh.write(data)
        logger.info("Stored %s (%d bytes) as %s", safe, len(data), unique_name)
        return url_for("main.serve_upload", subdir=self.subdir, filename=unique_name)

    def _url_prefix(self):
        sample = url_for("main.serve_upload", subdir=self.subdir, filename="_")
        return sample[:-1]

    def delete(self, url):
        """Remove a file this store handed out. Any other URL is left alone."""
        prefix = self._url_prefix()
        if not url or not url.startswith(prefix):
            logger.debug("Not a stored file, skipping delete: %s", url)
            return
        name = url[len(prefix):]
        if not name or name != os.path.basename(name):
            return
        path = os.path.join(self._dir(), name)
        if os.path.isfile(path):
            os.remove(path)
            logger.info("Removed stored file %s", name)


def get_file_store() -> FileStore:
    store = current_app.extensions.get("labdash.file_store")
    if store is None:
        store = LocalFileStore(current_app.config["UPLOAD_FOLDER"])
        current_app.extensions["labdash.file_store"] = store
    return store
