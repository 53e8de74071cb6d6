"""数据模型 -- 远端命令执行结果"""

from pydantic import BaseModel, Field


class ExecResult(BaseModel):
    """远端命令执行结果"""

    stdout: str = Field(default="")
    stderr: str = Field(default="")
    exit_code: int | None = Field(default=None, description="退出码；被信号终止时为 None")

    @property
    def ok(self) -> bool:
        return self.exit_code == 0
