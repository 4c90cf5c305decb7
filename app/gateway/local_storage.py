import logging
from pathlib import Path

from app.errors import RemoteError

logger = logging.getLogger(__name__)


# ==========================================================
# LOCAL OBJECT STORAGE
# ==========================================================
class LocalStorage:
    """
    Bucket/path object storage on the local filesystem.
    Files land in <media_path>/<bucket>/<path> and are served
    by the /media static mount.
    """

    def __init__(self, media_path: str, base_url: str):
        self.media_path = Path(media_path)
        self.base_url = base_url.rstrip("/")

    def _resolve(self, bucket: str, path: str) -> Path:
        key = path.strip("/")
        if not key or ".." in Path(key).parts:
            raise RemoteError(f"Invalid storage key: {path!r}", code="400")
        return self.media_path / bucket / key

    def save(self, bucket: str, path: str, data: bytes, *, upsert: bool = True) -> str:
        if not data:
            raise RemoteError("File is empty – nothing to upload", code="400")

        file_path = self._resolve(bucket, path)
        if file_path.exists() and not upsert:
            raise RemoteError("The resource already exists", code="409")

        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)

        logger.info("Local upload OK: %s/%s", bucket, path)
        return path.strip("/")

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/media/{bucket}/{path.strip('/')}"
