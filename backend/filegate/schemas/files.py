"""
Pydantic schemas for file endpoints.

Wire names are the camelCase form fields clients send (remoteFilePath,
srcFilePath, ...); attributes are snake_case.
"""
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _FileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=False)

    @field_validator("*")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if isinstance(value, str) and not value.strip():
            raise ValueError("must not be blank")
        return value


class UploadRequest(_FileRequest):
    """Local file plus destination key for an upload."""
    local_source: str = Field(..., description="Local filesystem path of the bytes to send")
    remote_path: str = Field(..., alias="remoteFilePath", description="Destination key")


class DeleteRequest(_FileRequest):
    """Request schema for deleting one object."""
    remote_path: str = Field(..., alias="remoteFilePath", description="Key to delete")


class CopyRequest(_FileRequest):
    """Request schema for a server-side copy."""
    src_path: str = Field(..., alias="srcFilePath", description="Existing source key")
    dst_path: str = Field(..., alias="dstFilePath", description="Destination key")


class PolicyRequest(_FileRequest):
    """Request schema for upload policy issuance."""
    remote_path: str = Field(..., alias="remoteFilePath", description="Key the client may upload to")
    callback_url: str = Field(..., alias="callbackURL", description="Absolute URL notified after upload")
    callback_body: str = Field(..., alias="callbackBody", description="Opaque payload echoed to the callback")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "remoteFilePath": "a/b.png",
                "callbackURL": "https://cb.example/done",
                "callbackBody": "id=42"
            }
        }
    )


class SuccessResponse(BaseModel):
    """Success envelope for upload, delete and copy."""
    status: Union[int, str] = Field(..., description="Uploaded filename, or 10000 for delete/copy")
    message: str = "success"


class ErrorResponse(BaseModel):
    """Error envelope returned for every failure."""
    error: str
    code: str
