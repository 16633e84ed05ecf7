"""Pydantic models for challenge requests and external-dns records."""

from enum import StrEnum
from typing import Any, ClassVar, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# =============================================================================
# Enums
# =============================================================================


class RecordType(StrEnum):
    """DNS record types understood by this library."""

    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"
    NS = "NS"
    SOA = "SOA"
    TXT = "TXT"


class OperationResult(StrEnum):
    """Outcome of a create-or-patch call against the record store."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


# =============================================================================
# Challenge input
# =============================================================================


class ChallengeRequest(BaseModel):
    """A DNS-01 challenge as handed to the solver by cert-manager."""

    uid: str = ""
    action: str = ""
    type: str = "dns-01"
    dns_name: str = Field(alias="dnsName")
    key: str
    resource_namespace: str = Field(alias="resourceNamespace")
    resolved_fqdn: str = Field(alias="resolvedFQDN")
    resolved_zone: str = Field(default="", alias="resolvedZone")
    allow_ambient_credentials: bool = Field(default=False, alias="allowAmbientCredentials")
    config: Any = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


def provider_specific_map(value: Any) -> Any:
    """Normalize providerSpecific to a map.

    Accepts null, a map, or the external-dns list of name/value pairs.
    Anything else is returned unchanged for pydantic to reject.
    """
    if value is None:
        return {}
    if isinstance(value, list):
        properties = {}
        for item in value:
            if not isinstance(item, dict) or "name" not in item:
                raise ValueError("providerSpecific entries need a name")
            properties[item["name"]] = item.get("value", "")
        return properties
    return value


class ProviderSpecificConfig(BaseModel):
    """Solver config block; only ``providerSpecific`` is read.

    A null document decodes as an empty config.
    """

    provider_specific: dict[str, str] = Field(default_factory=dict, alias="providerSpecific")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _null_document(cls, data: Any) -> Any:
        return {} if data is None else data

    @field_validator("provider_specific", mode="before")
    @classmethod
    def _provider_specific(cls, value: Any) -> Any:
        return provider_specific_map(value)


# =============================================================================
# Records
# =============================================================================


class RecordIdentity(NamedTuple):
    """Address of a DNSEndpoint object in the store."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class EndpointKey(NamedTuple):
    """Uniqueness key of an endpoint inside the responder's table."""

    dns_name: str
    record_type: str
    set_identifier: str


class Endpoint(BaseModel):
    """A single DNS record set as modelled by external-dns."""

    dns_name: str = Field(alias="dnsName")
    record_type: str = Field(default=RecordType.TXT.value, alias="recordType")
    targets: list[str] = Field(default_factory=list)
    set_identifier: str = Field(default="", alias="setIdentifier")
    record_ttl: int | None = Field(default=None, alias="recordTTL")
    provider_specific: dict[str, str] = Field(default_factory=dict, alias="providerSpecific")
    labels: dict[str, str] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}

    @field_validator("provider_specific", mode="before")
    @classmethod
    def _provider_specific(cls, value: Any) -> Any:
        return provider_specific_map(value)

    @property
    def key(self) -> EndpointKey:
        return EndpointKey(self.dns_name, self.record_type, self.set_identifier)

    def to_manifest(self) -> dict[str, Any]:
        """Serialize to the external-dns CRD wire shape.

        ``providerSpecific`` is a list of name/value pairs on the wire.
        """
        data: dict[str, Any] = {
            "dnsName": self.dns_name,
            "recordType": self.record_type,
            "targets": list(self.targets),
        }
        if self.set_identifier:
            data["setIdentifier"] = self.set_identifier
        if self.record_ttl is not None:
            data["recordTTL"] = self.record_ttl
        if self.provider_specific:
            data["providerSpecific"] = [
                {"name": name, "value": value} for name, value in self.provider_specific.items()
            ]
        if self.labels:
            data["labels"] = dict(self.labels)
        return data

    @classmethod
    def from_manifest(cls, data: dict[str, Any]) -> "Endpoint":
        """Parse an endpoint from the external-dns CRD wire shape."""
        return cls.model_validate(data)


class DNSEndpoint(BaseModel):
    """A DNSEndpoint object: the record held by the store."""

    namespace: str
    name: str
    endpoints: list[Endpoint] = Field(default_factory=list)
    resource_version: str | None = None

    API_VERSION: ClassVar[str] = "externaldns.k8s.io/v1alpha1"
    KIND: ClassVar[str] = "DNSEndpoint"

    @property
    def identity(self) -> RecordIdentity:
        return RecordIdentity(self.namespace, self.name)

    def to_manifest(self) -> dict[str, Any]:
        """Serialize to a Kubernetes object manifest."""
        metadata: dict[str, Any] = {"name": self.name, "namespace": self.namespace}
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        return {
            "apiVersion": self.API_VERSION,
            "kind": self.KIND,
            "metadata": metadata,
            "spec": {"endpoints": [ep.to_manifest() for ep in self.endpoints]},
        }

    @classmethod
    def from_manifest(cls, data: dict[str, Any]) -> "DNSEndpoint":
        """Parse a Kubernetes object manifest."""
        metadata = data.get("metadata", {})
        spec = data.get("spec") or {}
        return cls(
            namespace=metadata.get("namespace", ""),
            name=metadata["name"],
            resource_version=metadata.get("resourceVersion"),
            endpoints=[Endpoint.from_manifest(ep) for ep in spec.get("endpoints") or []],
        )


class Changes(BaseModel):
    """A batch of endpoint mutations applied atomically by the responder."""

    create: list[Endpoint] = Field(default_factory=list)
    update: list[Endpoint] = Field(default_factory=list)
    delete: list[Endpoint] = Field(default_factory=list)

    def has_changes(self) -> bool:
        return bool(self.create or self.update or self.delete)
