from typing import Optional

from pydantic import BaseModel, Field, field_validator

from novelsync.settings import DEFAULT_PATH_PREFIX


class StoreConfig(BaseModel):
    """GitHub repository the chapters are committed to. Held in memory only."""

    token: str = Field(..., min_length=1, description="Personal access token with contents write access")
    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    path_prefix: str = Field(DEFAULT_PATH_PREFIX, description="Folder inside the repository, e.g. 'novels/'")

    @field_validator("owner", "repo")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("path_prefix", mode="before")
    @classmethod
    def _prefix(cls, v: Optional[str]) -> str:
        return (v or "").strip()


class StoreConfigOut(BaseModel):
    owner: str
    repo: str
    path_prefix: str
    token_set: bool

    @classmethod
    def from_config(cls, config: StoreConfig) -> "StoreConfigOut":
        return cls(owner=config.owner, repo=config.repo, path_prefix=config.path_prefix, token_set=bool(config.token))
