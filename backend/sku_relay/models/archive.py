from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class ArchiveItem(BaseModel):
    """One processed file selected for the ZIP"""
    model_config = ConfigDict(populate_by_name=True)

    server_name: str = Field(..., alias="serverName", min_length=1)
    buffer_id: Optional[str] = Field(default=None, alias="bufferId")
    preview_url: Optional[str] = Field(default=None, alias="previewUrl")


class ZipTelegramRequest(BaseModel):
    sku: str = Field(..., min_length=1)
    items: List[ArchiveItem]
    links: List[str] = []


class ZipTelegramResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool
    zip_file_name: str = Field(alias="zipFileName")
    telegram_message_id: int = Field(alias="telegramMessageId")
    telegram_message_ids: List[int] = Field(default_factory=list, alias="telegramMessageIds")
