"""Vault 数据模型

磁盘格式（所有二进制字段为 hex）：
{version, salt, payload: {data, iv, tag}, check: {data, iv, tag}}
"""

from typing import Literal

from pydantic import BaseModel, Field


class EncryptedPayload(BaseModel):
    """一次 AEAD 加密的输出"""

    data: str = Field(description="密文（hex）")
    iv: str = Field(description="nonce（hex）")
    tag: str = Field(description="认证标签（hex）")


class VaultFile(BaseModel):
    """secrets.json 文件结构"""

    version: Literal[1] = 1
    salt: str = Field(description="口令派生盐（hex）")
    payload: EncryptedPayload = Field(description="加密后的 secret map")
    check: EncryptedPayload = Field(description="加密后的口令校验常量")


class SecretEntry(BaseModel):
    """单个 secret；key 是唯一身份，作用域只是属性"""

    value: str
    agent_id: str | None = Field(default=None, description="作用域；None 表示全局")


class SecretListing(BaseModel):
    """list() 的结果项 -- 永不包含值"""

    key: str
    agent_id: str | None = None

    @property
    def scope(self) -> str:
        return self.agent_id or "global"
