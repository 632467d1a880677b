"""Credential schema models produced by the template extractor."""

from enum import Enum
from typing import List, Optional
from pydantic import ConfigDict, Field

from n8n_provisioner.models.base import CamelModel


class FieldKind(str, Enum):
    """How an operator-supplied field is entered and displayed."""
    TEXT = "text"
    SECRET = "secret"


class CredentialField(CamelModel):
    """A single input the operator must (or may) supply."""
    name: str
    label: str
    kind: FieldKind = FieldKind.SECRET
    required: bool = True
    default: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class SimpleCredential(CamelModel):
    """A secret identified by its n8n credential type alone."""
    type: str
    display_name: str
    instances: int = 0
    fields: List[CredentialField] = Field(default_factory=list)
    is_oauth: bool = False
    note: Optional[str] = None


class SpecialCredential(SimpleCredential):
    """A generic-auth secret told apart by the name given to it in the template."""
    keyword: str


class CredentialSchema(CamelModel):
    """Everything a template needs before it can be deployed."""
    simple: List[SimpleCredential] = Field(default_factory=list)
    special: List[SpecialCredential] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.simple) + len(self.special)

    @property
    def requires_manual_oauth(self) -> bool:
        return any(c.is_oauth for c in [*self.simple, *self.special])
