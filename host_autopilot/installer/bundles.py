"""
Bundle fetching and inspection.

A bundle URL is either file:// (used as-is) or anything else, which is
downloaded over https into a temporary directory. Downloads are cached per
URL for the lifetime of the fetcher.

A .happ bundle is a gzip-compressed msgpack document whose `manifest.roles`
lists the roles an installation must supply membrane proofs for.
"""

import gzip
import logging
import os
import shutil
import tempfile
from typing import Dict, List, Optional
from urllib.parse import unquote, urlparse, urlunparse

import msgpack
import requests

from host_autopilot.errors import BundleError

logger = logging.getLogger(__name__)

READ_ONLY_MEMBRANE_PROOF = b"\x00"

DOWNLOAD_CHUNK_BYTES = 64 * 1024


class BundleFetcher:
    """Resolves bundle URLs to local file paths."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        download_dir: Optional[str] = None,
        timeout_seconds: float = 60.0,
    ):
        self.session = session or requests.Session()
        self.download_dir = download_dir
        self.timeout_seconds = timeout_seconds
        self._cache: Dict[str, str] = {}

    def fetch(self, bundle_url: str) -> str:
        """Local path of the bundle, downloading it first if needed."""
        if bundle_url in self._cache:
            return self._cache[bundle_url]

        url = urlparse(bundle_url)
        if url.scheme == "file":
            path = unquote(url.path)
            if not os.path.isfile(path):
                raise BundleError(f"bundle not found: {path}")
        else:
            path = self._download(url._replace(scheme="https"))

        self._cache[bundle_url] = path
        return path

    def _download(self, url) -> str:
        basename = os.path.basename(unquote(url.path))
        if not basename:
            raise BundleError(f"bundle url has no file name: {urlunparse(url)}")

        target_dir = tempfile.mkdtemp(prefix="bundle-", dir=self.download_dir)
        path = os.path.join(target_dir, basename)
        logger.info("downloading %s", urlunparse(url))
        try:
            with self.session.get(
                urlunparse(url), stream=True, timeout=self.timeout_seconds
            ) as response:
                response.raise_for_status()
                with open(path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                        f.write(chunk)
        except (requests.RequestException, OSError) as exc:
            shutil.rmtree(target_dir, ignore_errors=True)
            raise BundleError(f"failed to download {urlunparse(url)}: {exc}") from exc

        logger.debug("downloaded %s to %s", basename, path)
        return path


def read_role_names(bundle_path: str) -> List[str]:
    """Role names from the manifest of a .happ bundle."""
    try:
        with gzip.open(bundle_path, "rb") as f:
            bundle = msgpack.unpackb(f.read(), raw=False)
    except (OSError, EOFError, ValueError, msgpack.ExtraData, msgpack.FormatError) as exc:
        raise BundleError(f"unreadable bundle {bundle_path}: {exc}") from exc

    manifest = bundle.get("manifest") if isinstance(bundle, dict) else None
    roles = manifest.get("roles") if isinstance(manifest, dict) else None
    if not isinstance(roles, list):
        raise BundleError(f"bundle {bundle_path} has no role manifest")
    return [role["name"] for role in roles if isinstance(role, dict) and "name" in role]


class ReadOnlyMembraneProofs:
    """
    Membrane proofs for a read-only hosted instance: every role gets the
    one-byte read-only proof.
    """

    def __init__(self, fetcher: BundleFetcher):
        self.fetcher = fetcher

    def proofs_for(self, bundle_url: str) -> Dict[str, bytes]:
        path = self.fetcher.fetch(bundle_url)
        return {role: READ_ONLY_MEMBRANE_PROOF for role in read_role_names(path)}
