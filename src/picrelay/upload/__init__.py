"""Upload invocation, output parsing and URL verification."""

from .invoker import UploadInvoker, build_upload_command
from .parse import classify_failure, parse_upload_output
from .verify import verify_remote_url

__all__ = [
    "UploadInvoker",
    "build_upload_command",
    "classify_failure",
    "parse_upload_output",
    "verify_remote_url",
]
