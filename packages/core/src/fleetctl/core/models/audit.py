"""AuditEntry Domain Model

审计日志 append-only，只允许插入，不允许更新或删除。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import AuditAction


class AuditEntry(BaseModel):
    """一次受控操作的结果记录"""

    entry_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    ts: datetime = Field(description="记录时间")
    action: AuditAction = Field(description="动作名")
    actor: str = Field(default="cli", description="发起方")
    subject_id: str | None = Field(default=None, description="操作对象 ID（通常是 worker）")
    subject_name: str | None = Field(default=None, description="操作对象显示名")
    detail: dict[str, Any] = Field(default_factory=dict, description="结构化详情")
    success: bool = Field(default=True)
    error: str | None = Field(default=None)
