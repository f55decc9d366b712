# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Chunked binary upload to the UEM server.

A local file is read strictly sequentially in fixed-size windows. Each window
is Base64-encoded and posted to the uploadchunk endpoint together with a
transaction identifier. The server issues that identifier: the first request
sends an empty string, and every later request forwards exactly the value
returned by the previous response. The identifier returned by the last
chunk is what the create-application call references.

State Machine:

    Start -> ReadChunk -> EncodeChunk -> UploadChunk -> (more data? ReadChunk : Done)
                                              |
                                              +-> Failed (any chunk error)

Termination:

- A short read (fewer bytes than the chunk size) ends the transfer.
- The transfer also ends once the file's total size has been sent, so a
  file whose size is an exact multiple of the chunk size produces exactly
  size / chunk_size chunks and never a trailing empty chunk.
- In general a file of S bytes produces ceil(S / C) chunks whose ChunkSize
  values add up to S.
- An empty file is rejected before any request is sent.

Failure Handling:

- Any failed chunk (connection error, non-2xx, UploadSuccess false) raises
  TransferError and aborts the whole file. No retry, no resume.
- An empty transaction identifier after the last chunk is a protocol
  violation and raises TransferError.
- HTTP 401/403 raise SessionError, which ends the whole run.
- The file handle is released on every exit path.

Constants:

- DEFAULT_CHUNK_SIZE (int): 5 MiB per chunk.

Example:
    >>> from pathlib import Path
    >>> from appingest.transfer import upload_chunked
    >>> transaction_id = upload_chunked(context, http, Path("C:/pkgs/7z.msi"))
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from appingest.api.session import AUTH_STATUSES, UemContext, send, server_message
from appingest.exceptions import NetworkError, SessionError, TransferError
from appingest.logging import get_global_logger

UPLOAD_CHUNK_PATH = "/API/mam/apps/internal/uploadchunk"

# Chunk size per request (5 MiB).
DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024

# The server spells the response field "TranscationId"; accept both.
_TRANSACTION_ID_KEYS = ("TranscationId", "TransactionId", "transactionId")


@dataclass(frozen=True)
class ChunkRequest:
    """Body of one uploadchunk request.

    Attributes:
        transaction_id: Identifier from the previous response ("" first).
        chunk_data: Base64-encoded bytes of this chunk.
        sequence_number: 1-based chunk number.
        total_size: Size of the whole file in bytes.
        chunk_size: Number of bytes actually read for this chunk.
    """

    transaction_id: str
    chunk_data: str
    sequence_number: int
    total_size: int
    chunk_size: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "TransactionId": self.transaction_id,
            "ChunkData": self.chunk_data,
            "ChunkSequenceNumber": self.sequence_number,
            "TotalApplicationSize": self.total_size,
            "ChunkSize": self.chunk_size,
        }


@dataclass
class ChunkedUpload:
    """Mutable state of one transfer.

    Attributes:
        source: Local file being uploaded.
        total_size: File size in bytes.
        chunk_size: Window size in bytes.
        sequence: Number of the next chunk (starts at 1).
        transaction_id: Last identifier received ("" before the first chunk).
        bytes_sent: Bytes acknowledged by the server so far.
    """

    source: Path
    total_size: int
    chunk_size: int
    sequence: int = 1
    transaction_id: str = ""
    bytes_sent: int = 0

    @property
    def expected_chunks(self) -> int:
        return -(-self.total_size // self.chunk_size)

    def next_request(self, data: bytes) -> ChunkRequest:
        return ChunkRequest(
            transaction_id=self.transaction_id,
            chunk_data=base64.b64encode(data).decode("ascii"),
            sequence_number=self.sequence,
            total_size=self.total_size,
            chunk_size=len(data),
        )

    def accept(self, transaction_id: str, sent: int) -> None:
        """Record a successful chunk and advance the sequence counter."""
        self.transaction_id = transaction_id
        self.bytes_sent += sent
        self.sequence += 1

    def finished(self, last_read: int) -> bool:
        return last_read < self.chunk_size or self.bytes_sent >= self.total_size


def _transaction_id_from(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    for key in _TRANSACTION_ID_KEYS:
        value = body.get(key)
        if value is not None:
            return str(value)
    return ""


def post_chunk(
    context: UemContext, http: requests.Session, request: ChunkRequest
) -> str:
    """Send one chunk and return the transaction identifier from the response.

    Raises:
        TransferError: On connection failures, non-2xx responses or an
            explicit UploadSuccess of false.
        SessionError: On HTTP 401/403.
    """
    action = f"chunk {request.sequence_number} upload"
    try:
        resp = send(
            http,
            "POST",
            context.url(UPLOAD_CHUNK_PATH),
            json=request.to_payload(),
            action=action,
        )
    except SessionError as err:
        if err.status_code in AUTH_STATUSES:
            raise
        raise TransferError(str(err), status_code=err.status_code) from err
    except NetworkError as err:
        raise TransferError(str(err), status_code=err.status_code) from err

    if not resp.ok:
        raise TransferError(
            f"{action} failed (HTTP {resp.status_code}): {server_message(resp)}",
            status_code=resp.status_code,
        )
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if isinstance(body, dict) and body.get("UploadSuccess") is False:
        raise TransferError(f"{action} rejected by server: {server_message(resp)}")
    return _transaction_id_from(body)


def upload_chunked(
    context: UemContext,
    http: requests.Session,
    file_path: Path,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Upload a local file in sequential chunks.

    Args:
        context: Run context.
        http: Authenticated session.
        file_path: File to upload.
        chunk_size: Bytes per chunk. Must be positive.

    Returns:
        The transaction identifier returned for the final chunk.

    Raises:
        ValueError: If chunk_size is not positive.
        FileNotFoundError: If the file does not exist.
        TransferError: If the file is empty, any chunk fails, or the server
            never returned a transaction identifier.
        SessionError: On authentication failure.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    logger = get_global_logger()
    path = Path(file_path)
    total_size = path.stat().st_size
    if total_size == 0:
        raise TransferError(f"refusing to upload empty file: {path}")

    state = ChunkedUpload(source=path, total_size=total_size, chunk_size=chunk_size)
    logger.verbose(
        "CHUNK",
        f"Uploading {path.name}: {total_size} bytes in "
        f"{state.expected_chunks} chunk(s) of up to {chunk_size} bytes",
    )

    with path.open("rb") as f:
        while True:
            data = f.read(chunk_size)
            if not data:
                break
            request = state.next_request(data)
            transaction_id = post_chunk(context, http, request)
            state.accept(transaction_id, len(data))
            logger.verbose(
                "CHUNK",
                f"Chunk {request.sequence_number}/{state.expected_chunks} "
                f"({len(data)} bytes) acknowledged",
            )
            if state.finished(len(data)):
                break

    if state.bytes_sent == 0:
        raise TransferError(f"no data read from {path}")
    if not state.transaction_id:
        raise TransferError(
            f"server returned no transaction id after uploading {path.name}"
        )
    return state.transaction_id
