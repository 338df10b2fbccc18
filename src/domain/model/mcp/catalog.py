"""
Catalog Domain Models

Pydantic models for the static catalog of installable tool servers.
Templates are external data; the installer only reads them.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from src.domain.model.mcp.server import ServerState
from src.domain.model.mcp.transport import TransportType


class CatalogCategory(BaseModel):
    """A browsing category for catalog templates."""

    id: str = Field(..., description="Category identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="Short category description")


class CatalogField(BaseModel):
    """
    A user-supplied value a template needs at install time.

    ``target`` decides where the value lands in the generated ServerConfig:
    ``env`` sets the environment variable named by ``key``, ``args`` appends
    the value (or each list item) to the argument list, ``flag`` appends
    ``[flag, value]``.
    """

    key: str = Field(..., description="Field key, also the env var name for env targets")
    label: str = Field(..., description="Display label")
    type: Literal["string", "password", "array"] = Field(default="string")
    description: str = Field(default="")
    placeholder: str | None = Field(default=None)
    required: bool = Field(default=False)
    target: Literal["env", "args", "flag"] = Field(default="env")
    flag: str | None = Field(default=None, description="Command line flag for flag targets")

    @model_validator(mode="after")
    def _check_flag(self) -> "CatalogField":
        if self.target == "flag" and not self.flag:
            raise ValueError(f"Field '{self.key}' targets a flag but declares none")
        return self


class CatalogTemplate(BaseModel):
    """Static description of a popular tool server used to pre-fill a ServerConfig."""

    id: str = Field(..., description="Stable template id, recorded as catalog_id")
    name: str
    category: str
    description: str = Field(default="")
    author: str | None = None
    repository: str | None = None
    package: str | None = None
    transport_type: TransportType = Field(default=TransportType.PROCESS)
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    url: str | None = None
    configurable: list[CatalogField] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    def catalog_meta(self) -> dict[str, Any]:
        """Provenance stored on the generated ServerConfig."""
        return {
            "author": self.author,
            "repository": self.repository,
            "package": self.package,
            "tools": list(self.tools),
            "tags": list(self.tags),
        }

    def matches(self, query: str) -> bool:
        """Case-insensitive match against name, description and tags."""
        q = query.lower().strip()
        if not q:
            return True
        return (
            q in self.name.lower()
            or q in self.description.lower()
            or any(q in tag.lower() for tag in self.tags)
        )


class InstallResult(BaseModel):
    """Outcome of installing a catalog template."""

    server_id: str
    template_id: str
    state: ServerState
    start_error: str | None = None

    @property
    def started(self) -> bool:
        return self.state == ServerState.CONNECTED
