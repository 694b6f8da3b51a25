"""
File upload over SFTP.

Every path listed in a file manifest is uploaded concurrently on a bounded
thread pool. Each task opens its own SFTP channel on the shared transport and
reports a TransferResult; the caller waits for one result per file.
"""

import os
import posixpath
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import paramiko

from .config import CHUNK_SIZE, DeployConfig, log
from .connection import Connection
from .manifest import read_manifest


@dataclass
class TransferResult:
    path: str
    remote_path: str
    success: bool
    bytes_sent: int = 0
    duration_ms: int = 0
    error: Optional[str] = None


@dataclass
class UploadReport:
    results: List[TransferResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def status(self) -> str:
        return 'ok' if self.ok else 'nok'

    @property
    def succeeded(self) -> List[TransferResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[TransferResult]:
        return [r for r in self.results if not r.success]


def remote_path_for(local_path: str, remote_dir: Optional[str] = None) -> str:
    """Remote files keep the local basename, optionally under remote_dir"""
    name = os.path.basename(local_path)
    if remote_dir:
        return posixpath.join(remote_dir, name)
    return name


def _upload_single_file(connection: Connection, path: str, remote_path: str) -> TransferResult:
    """Copy one local file to the remote host in fixed-size chunks"""
    start_time = time.time()
    sent = 0

    try:
        with connection.client.open_sftp() as sftp:
            with open(path, 'rb') as src, sftp.open(remote_path, 'wb') as dst:
                while True:
                    chunk = src.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    dst.write(chunk)
                    sent += len(chunk)
    except (OSError, paramiko.SSHException) as e:
        return TransferResult(
            path=path,
            remote_path=remote_path,
            success=False,
            bytes_sent=sent,
            duration_ms=int((time.time() - start_time) * 1000),
            error=str(e) or type(e).__name__,
        )
    except Exception as e:
        return TransferResult(
            path=path,
            remote_path=remote_path,
            success=False,
            bytes_sent=sent,
            duration_ms=int((time.time() - start_time) * 1000),
            error=f"Unexpected error: {type(e).__name__}: {e}",
        )

    return TransferResult(
        path=path,
        remote_path=remote_path,
        success=True,
        bytes_sent=sent,
        duration_ms=int((time.time() - start_time) * 1000),
    )


def upload_files(connection: Connection, manifest_path: str, config: DeployConfig) -> UploadReport:
    """
    Upload every file listed in a manifest.

    Args:
        connection: open connection whose transport is shared by all uploads
        manifest_path: file manifest, one local path per line
        config: worker cap and remote directory

    Returns:
        UploadReport with one result per distinct manifest path, in manifest order.
        A path whose remote name is already taken by an earlier entry is not
        uploaded and is reported as failed.

    Raises:
        ManifestReadError: the manifest cannot be read
    """
    paths: List[str] = []
    targets: Dict[str, str] = {}
    claimed: Dict[str, str] = {}
    results: List[TransferResult] = []

    for entry in read_manifest(manifest_path):
        if entry.text in targets:
            config.debug_log(f"Skipping duplicate manifest entry {entry.text} (line {entry.line_number})")
            continue
        remote_path = remote_path_for(entry.text, config.remote_dir)
        paths.append(entry.text)
        targets[entry.text] = remote_path
        if remote_path in claimed:
            error = f"remote name {remote_path} collides with {claimed[remote_path]}"
            log(f"{os.path.basename(entry.text)} failed: {error}")
            results.append(TransferResult(path=entry.text, remote_path=remote_path,
                                          success=False, error=error))
            continue
        claimed[remote_path] = entry.text

    if not paths:
        log(f"No files listed in {manifest_path}")
        return UploadReport()

    order: Dict[str, int] = {p: i for i, p in enumerate(paths)}
    uploads = list(claimed.values())
    max_workers = min(len(uploads), config.max_workers)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {}
        for path in uploads:
            log(f"Uploading {os.path.basename(path)}")
            futures[executor.submit(_upload_single_file, connection, path, targets[path])] = path

        for future in as_completed(futures):
            result = future.result()
            name = os.path.basename(result.path)
            if result.success:
                log(f"{name} uploaded ({result.bytes_sent} bytes)")
            else:
                log(f"{name} failed: {result.error}")
            results.append(result)

    results.sort(key=lambda r: order[r.path])
    return UploadReport(results)
