"""Instance metadata endpoints and their normalization to ``InstanceInfo``."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fedifetch.remote.models import ContactAccount, InstanceInfo, InstanceStats


class MastodonInstance(BaseModel):
    """Body of ``/api/v1/instance`` (Mastodon, Pleroma, Akkoma)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    uri: str | None = None
    title: str | None = None
    version: str
    description: str | None = None
    short_description: str | None = None
    languages: list[str] | None = None
    registrations: bool | None = None
    approval_required: bool | None = None
    invites_enabled: bool | None = None
    contact_account: ContactAccount | None = None
    stats: InstanceStats | None = None


class MisskeyMeta(BaseModel):
    """Body of ``/api/meta`` (Misskey and forks)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = None
    version: str
    description: str | None = None
    langs: list[str] | None = None
    disable_registration: bool | None = Field(
        default=None, alias="disableRegistration"
    )


class NodeInfoSoftware(BaseModel):
    """``software`` section of a NodeInfo document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    version: str | None = None

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        """Some servers send numeric versions."""
        return str(v) if isinstance(v, int | float) else v


class NodeInfo(BaseModel):
    """NodeInfo 2.0 document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: str | None = None
    software: NodeInfoSoftware
    open_registrations: bool | None = Field(default=None, alias="openRegistrations")
    usage: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


def _from_mastodon(domain: str, endpoint: str, data: MastodonInstance) -> InstanceInfo:
    version = data.version
    software = "pleroma" if "pleroma" in version.lower() else "mastodon"
    return InstanceInfo(
        domain=domain,
        software=software,
        version=version,
        title=data.title,
        description=data.description or data.short_description,
        languages=data.languages,
        registrations=data.registrations,
        approval_required=data.approval_required,
        invites_enabled=data.invites_enabled,
        contact_account=data.contact_account,
        stats=data.stats,
        source_endpoint=endpoint,
    )


def _from_misskey(domain: str, endpoint: str, data: MisskeyMeta) -> InstanceInfo:
    registrations = None
    if data.disable_registration is not None:
        registrations = not data.disable_registration
    return InstanceInfo(
        domain=domain,
        software="misskey",
        version=data.version,
        title=data.name,
        description=data.description,
        languages=data.langs,
        registrations=registrations,
        source_endpoint=endpoint,
    )


def _from_nodeinfo(domain: str, endpoint: str, data: NodeInfo) -> InstanceInfo:
    description = data.metadata.get("nodeDescription")
    title = data.metadata.get("nodeName")

    users = data.usage.get("users")
    user_count = users.get("total") if isinstance(users, dict) else None
    status_count = data.usage.get("localPosts")
    stats = None
    if isinstance(user_count, int) or isinstance(status_count, int):
        stats = InstanceStats(
            user_count=user_count if isinstance(user_count, int) else None,
            status_count=status_count if isinstance(status_count, int) else None,
        )

    return InstanceInfo(
        domain=domain,
        software=data.software.name.lower(),
        version=data.software.version,
        title=title if isinstance(title, str) else None,
        description=description if isinstance(description, str) else None,
        registrations=data.open_registrations,
        stats=stats,
        source_endpoint=endpoint,
    )


@dataclass(frozen=True)
class InstanceEndpoint:
    """A metadata endpoint probed for instance information.

    Attributes:
        path: Path on the instance.
        schema: Model the response must validate against.
        transform: Builds ``InstanceInfo`` from the validated response.
    """

    path: str
    schema: type[BaseModel]
    transform: Callable[[str, str, Any], InstanceInfo]

    def url(self, domain: str) -> str:
        """Absolute URL of this endpoint on an instance."""
        return f"https://{domain}{self.path}"


# Probe order is also preference order
INSTANCE_ENDPOINTS: tuple[InstanceEndpoint, ...] = (
    InstanceEndpoint("/api/v1/instance", MastodonInstance, _from_mastodon),
    InstanceEndpoint("/api/meta", MisskeyMeta, _from_misskey),
    InstanceEndpoint("/nodeinfo/2.0", NodeInfo, _from_nodeinfo),
)
