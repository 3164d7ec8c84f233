"""
Content hashing service with tolerance for flaky storage.

Hashing never raises for read failures: the caller receives either a hex
digest or a HashError sentinel string. Before reading, the hasher waits for
the file (and its storage root) to become visible, which covers
cloud-synchronized folders whose paths intermittently disappear.
"""

from __future__ import annotations

import errno
import hashlib
import logging
import os
import time
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Callable, Optional

import xxhash

from treereconcile.core.models import HashError


# Windows ERROR_GEN_FAILURE: "A device attached to the system is not functioning."
WINERROR_GEN_FAILURE = 31
DEVICE_NOT_FUNCTIONING_TEXT = "device attached to the system is not functioning"


class HashAlgorithm(Enum):
    """Supported hash algorithms."""
    MD5 = auto()
    SHA1 = auto()
    SHA256 = auto()
    XXH64 = auto()  # Fast non-cryptographic hash

    @classmethod
    def from_string(cls, value: str) -> 'HashAlgorithm':
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown algorithm: {value}") from None


@dataclass
class HashPolicy:
    """Retry and wait behaviour for a ContentHasher."""
    poll_interval: float = 30.0
    device_retries: int = 2
    retry_delay: float = 5.0
    chunk_size: int = 65536


def is_device_not_functioning(error: OSError) -> bool:
    """Match the transient 'device not functioning' failure signature."""
    if getattr(error, 'winerror', None) == WINERROR_GEN_FAILURE:
        return True
    if error.errno == errno.EIO:
        return True
    return DEVICE_NOT_FUNCTIONING_TEXT in str(error).lower()


class ContentHasher:
    """
    Computes streaming content digests.

    `sleep` is injectable so waits and retries can be simulated without real
    delays.
    """

    def __init__(
        self,
        algorithm: HashAlgorithm = HashAlgorithm.MD5,
        policy: Optional[HashPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.algorithm = algorithm
        self.policy = policy or HashPolicy()
        self._sleep = sleep

    def hash_file(self, path: Path | str, root: Optional[Path | str] = None) -> str:
        """
        Hash a file, returning a hex digest or a HashError sentinel.

        Args:
            path: File to hash
            root: Storage root the file lives under; defaults to the path anchor

        Returns:
            Hex digest, or a sentinel from `HashError.make_sentinel`
        """
        path = Path(path)
        self.wait_until_available(path, root)

        attempts = 1 + max(self.policy.device_retries, 0)
        for attempt in range(1, attempts + 1):
            try:
                return self._digest(path)
            except OSError as e:
                if not is_device_not_functioning(e):
                    logging.warning(f"ContentHasher - Failed to hash {path}: {e}")
                    return HashError.COMPUTE_FAILED.make_sentinel(str(e))
                if attempt < attempts:
                    logging.warning(
                        f"ContentHasher - Device not functioning for {path}, "
                        f"retry {attempt}/{attempts - 1} in {self.policy.retry_delay}s"
                    )
                    self._sleep(self.policy.retry_delay)

        logging.warning(f"ContentHasher - Device not functioning for {path}, giving up")
        return HashError.DEVICE_NOT_FUNCTIONING.make_sentinel()

    def wait_until_available(self, path: Path, root: Optional[Path | str] = None) -> int:
        """
        Block until the storage root is reachable and the file is visible.

        Polls every `policy.poll_interval` seconds with no upper bound.
        Returns the number of polls that were needed.
        """
        root = Path(root) if root is not None else Path(path.anchor or os.sep)
        polls = 0
        while not (root.is_dir() and path.exists()):
            polls += 1
            logging.warning(
                f"ContentHasher - {path} not available (poll {polls}), "
                f"waiting {self.policy.poll_interval}s"
            )
            self._sleep(self.policy.poll_interval)
        if polls:
            logging.info(f"ContentHasher - {path} available again after {polls} polls")
        return polls

    def _digest(self, path: Path) -> str:
        hasher = self._create_hasher()
        with open(path, 'rb') as f:
            while chunk := f.read(self.policy.chunk_size):
                hasher.update(chunk)
        return hasher.hexdigest()

    def _create_hasher(self):
        """Create a hasher for the configured algorithm."""
        if self.algorithm == HashAlgorithm.MD5:
            return hashlib.md5()
        elif self.algorithm == HashAlgorithm.SHA1:
            return hashlib.sha1()
        elif self.algorithm == HashAlgorithm.SHA256:
            return hashlib.sha256()
        elif self.algorithm == HashAlgorithm.XXH64:
            return xxhash.xxh64()
        else:
            raise ValueError(f"Unknown algorithm: {self.algorithm}")
