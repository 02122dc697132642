"""Event image storage."""
import logging
import os
import uuid

from event_manager.config import settings
from event_manager.errors import BadRequestError, InternalError

logger = logging.getLogger(__name__)


class ImageStore:
    """Interface: persist an uploaded image and return its durable URL."""

    def save(self, filename: str, content: bytes, content_type: str) -> str:
        raise NotImplementedError

    def delete(self, url: str) -> None:
        raise NotImplementedError


class LocalImageStore(ImageStore):
    def __init__(self, root: str, base_url: str):
        self.root = root
        self.base_url = base_url.rstrip("/")

    def save(self, filename: str, content: bytes, content_type: str) -> str:
        if not (content_type or "").startswith("image/"):
            raise BadRequestError("Only image uploads are allowed")
        if not content:
            raise BadRequestError("Uploaded image is empty")

        ext = os.path.splitext(filename or "")[1].lower()
        stored_name = f"{uuid.uuid4().hex}{ext}"
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(os.path.join(self.root, stored_name), "wb") as fh:
                fh.write(content)
        except OSError as exc:
            logger.exception("Failed to store image %s", stored_name)
            raise InternalError("Image upload failed") from exc

        logger.info("Stored image %s (%d bytes)", stored_name, len(content))
        return f"{self.base_url}/{stored_name}"

    def delete(self, url: str) -> None:
        """Remove an image previously returned by ``save``; missing files are ignored."""
        stored_name = os.path.basename(url)
        try:
            os.remove(os.path.join(self.root, stored_name))
        except FileNotFoundError:
            return
        except OSError:
            logger.exception("Failed to remove image %s", stored_name)
            return
        logger.info("Removed image %s", stored_name)


def get_image_store() -> ImageStore:
    """FastAPI dependency returning the configured image store."""
    return LocalImageStore(settings.MEDIA_ROOT, settings.MEDIA_URL)
