from typing import Optional
from urllib.parse import quote
import io

from fastapi import UploadFile
from fastapi.responses import StreamingResponse

from filebox.services.file import Download
from filebox.utils.exceptions import ValidationError


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback and an RFC 5987 UTF-8 name"""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "'").replace("?", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def download_response(download: Download) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(download.content),
        media_type=download.file.content_type,
        headers={
            "Content-Disposition": content_disposition(download.file.name),
            "Content-Length": str(len(download.content))
        }
    )


async def read_upload(upload: UploadFile, max_size: int) -> bytes:
    """Read an uploaded file, refusing to buffer more than ``max_size`` bytes"""
    content = await upload.read(max_size + 1)
    if len(content) > max_size:
        raise ValidationError(f"File is larger than {max_size // (1024 * 1024)} MB")
    return content


def optional_int(value: Optional[str], field: str) -> Optional[int]:
    """Parse an optional integer form field; blank means not given"""
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{field} must be an integer")


def optional_str(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()
