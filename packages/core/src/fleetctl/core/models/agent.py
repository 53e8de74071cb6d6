"""Worker Domain Model -- agent roster 的只读视图

能力、描述、session key 都是具名字段并带默认值，路由无需防御式取值。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import WorkerRole, WorkerStatus


class Worker(BaseModel):
    """Worker 数据模型 -- 路由候选者"""

    agent_id: str = Field(description="唯一标识，ULID 格式")
    name: str = Field(min_length=1, description="显示名")
    host: str = Field(min_length=1, description="SSH 可达的主机名或 IP")
    user: str = Field(default="openclaw", description="远端登录用户")
    role: WorkerRole = Field(default=WorkerRole.WORKER, description="角色")
    status: WorkerStatus = Field(default=WorkerStatus.UNKNOWN, description="可达性")
    capabilities: list[str] = Field(default_factory=list, description="能力标签")
    description: str = Field(default="", description="自由文本描述")
    session_key: str | None = Field(default=None, description="直连消息 session 标识")
    tags: list[str] = Field(default_factory=list, description="分组标签")
    ssh_key_path: str | None = Field(default=None, description="SSH 私钥路径")
    workspace_dir: str | None = Field(default=None, description="远端 workspace 根目录")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
