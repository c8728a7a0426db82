# docportal/storage/dto.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class DocumentRecord(BaseModel):
    """
    A standardized Data Transfer Object for a stored document, abstracting away
    provider-specific blob/file representations.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: str
    size: int = Field(ge=0)
    uploaded_at: datetime = Field(alias="uploadedAt")
    url: str


class UploadResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    file_name: str = Field(alias="fileName")
    url: str


class DeleteResult(BaseModel):
    success: bool = True
