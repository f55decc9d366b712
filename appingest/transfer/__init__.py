"""Binary transfer engines for AppIngest.

Modules:

chunked : module
    Sequential Base64 chunk upload with a server-issued transaction id.
link : module
    Server-side fetch of a publicly reachable link, after a HEAD probe.

Public API:

upload_chunked : function
    Upload a local file and return the final transaction id.
upload_via_link : function
    Probe a link and return the blob id the server created from it.
"""

from .chunked import DEFAULT_CHUNK_SIZE, ChunkRequest, upload_chunked
from .link import LinkProbe, probe_link, upload_via_link

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "ChunkRequest",
    "LinkProbe",
    "probe_link",
    "upload_chunked",
    "upload_via_link",
]
