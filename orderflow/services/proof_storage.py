"""
Proof-of-Payment Storage

Stores uploaded proof-of-payment images on disk under the upload
directory and returns the public URL they are served from. The artifact
is opaque: nothing here verifies a transaction.
"""

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

PROOF_SUBDIRECTORY = "proofs"


class ArtifactRejected(ValueError):
    """The uploaded artifact is not an accepted image or is too large."""


@dataclass(frozen=True)
class StoredArtifact:
    url: str
    path: Path
    size: int


def _extension(filename: str, content_type: str) -> str:
    suffix = Path(filename or "").suffix.lstrip(".").lower()
    if suffix and re.fullmatch(r"[a-z0-9]{1,5}", suffix):
        return suffix
    return content_type.split("/")[-1].lower()


class ProofStorage:
    """Validates and writes proof-of-payment images."""

    def __init__(
        self,
        directory: str | Path,
        url_prefix: str = "/uploads",
        max_bytes: int = 5 * 1024 * 1024,
        allowed_types: tuple[str, ...] = ("image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"),
    ):
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes
        self.allowed_types = tuple(t.lower() for t in allowed_types)

    def validate(self, content_type: str, size: int) -> None:
        """
        Raises:
            ArtifactRejected: Content type not allowed, empty or oversized
        """
        if (content_type or "").lower() not in self.allowed_types:
            raise ArtifactRejected("File type not allowed. Only images are accepted.")
        if size == 0:
            raise ArtifactRejected("Uploaded file is empty.")
        if size > self.max_bytes:
            raise ArtifactRejected(
                f"File too large. Maximum size: {self.max_bytes // (1024 * 1024)}MB"
            )

    async def save(self, order_id: str, filename: str, content_type: str, data: bytes) -> StoredArtifact:
        """Validate and write the artifact as `<order_id>-<millis>.<ext>`."""
        self.validate(content_type, len(data))

        target_dir = self.directory / PROOF_SUBDIRECTORY
        name = f"{order_id}-{int(time.time() * 1000)}.{_extension(filename, content_type)}"
        path = target_dir / name

        def _write() -> None:
            target_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await run_in_threadpool(_write)
        logger.info(f"Stored proof of payment for order {order_id}: {path} ({len(data)} bytes)")

        return StoredArtifact(
            url=f"{self.url_prefix}/{PROOF_SUBDIRECTORY}/{name}",
            path=path,
            size=len(data),
        )

    async def discard(self, artifact: StoredArtifact) -> None:
        """Remove an artifact no order points to."""
        await run_in_threadpool(artifact.path.unlink, missing_ok=True)
        logger.info(f"Discarded unattached proof of payment {artifact.path}")
