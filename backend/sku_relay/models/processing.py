from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from sku_relay.services.exceptions import InvalidStatusTransition


class ProcessingStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    ProcessingStatus.QUEUED: {ProcessingStatus.PROCESSING},
    ProcessingStatus.PROCESSING: {ProcessingStatus.DONE, ProcessingStatus.FAILED},
    ProcessingStatus.DONE: set(),
    ProcessingStatus.FAILED: set(),
}


@dataclass
class UploadItem:
    """One file as received in the multipart body (all fields untrusted)"""
    filename: str
    data: bytes
    content_type: str = ""


class ProcessingRecord(BaseModel):
    """Tracked state of one uploaded file"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    original_name: str = Field(alias="originalName")
    server_name: str = Field(alias="serverName")
    status: ProcessingStatus = ProcessingStatus.QUEUED
    width: Optional[int] = None
    height: Optional[int] = None
    bytes: Optional[int] = None
    preview_url: Optional[str] = Field(default=None, alias="previewUrl")
    buffer_id: Optional[str] = Field(default=None, alias="bufferId")
    error: Optional[str] = None
    error_type: Optional[str] = Field(default=None, alias="errorType")

    _history: List[ProcessingStatus] = PrivateAttr(default_factory=list)

    def model_post_init(self, context: Any) -> None:
        self._history.append(self.status)

    @property
    def history(self) -> List[ProcessingStatus]:
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProcessingStatus.DONE, ProcessingStatus.FAILED)

    def transition(self, new_status: ProcessingStatus) -> None:
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransition(
                f"Record {self.id}: cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
        self._history.append(new_status)

    def mark_processing(self) -> None:
        self.transition(ProcessingStatus.PROCESSING)

    def mark_done(
        self,
        *,
        width: Optional[int],
        height: Optional[int],
        byte_length: int,
        preview_url: str,
    ) -> None:
        self.transition(ProcessingStatus.DONE)
        self.width = width
        self.height = height
        self.bytes = byte_length
        self.preview_url = preview_url

    def mark_failed(self, error: str, error_type: Optional[str] = None) -> None:
        self.transition(ProcessingStatus.FAILED)
        self.error = error or "Unknown error"
        self.error_type = error_type


class SubmissionResult(BaseModel):
    """Response for one POST /process call"""
    sku: str
    items: List[ProcessingRecord]


class ProcessingSnapshotResponse(BaseModel):
    items: List[ProcessingRecord]


class UploadLimitsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_uploads: int = Field(alias="maxUploads")
    max_file_mb: int = Field(alias="maxFileMb")
