"""Keycloak directory representations.

Field names follow the Keycloak admin REST representations
(https://www.keycloak.org/docs-api/latest/rest-api/index.html); only the
fields this bridge reads or writes are modelled.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List

MASTER_REALM = "master"

# Realm roles used by the backup service
APPLICATION_OWNER = "px-backup-app.admin"
APPLICATION_USER = "px-backup-app.user"
INFRASTRUCTURE_OWNER = "px-backup-infra.admin"
DEFAULT_ROLES = "default-roles-master"


@dataclass
class UserCredential:
    type: str = "password"
    temporary: bool = False
    value: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "temporary": self.temporary, "value": self.value}


@dataclass
class User:
    id: str = ""
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    email_verified: bool = False
    enabled: bool = False
    credentials: List[UserCredential] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data.get("id") or "",
            username=data.get("username") or "",
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            email=data.get("email") or "",
            email_verified=bool(data.get("emailVerified", False)),
            enabled=bool(data.get("enabled", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "username": self.username,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "emailVerified": self.email_verified,
            "enabled": self.enabled,
            "credentials": [cred.to_dict() for cred in self.credentials],
        }
        if self.id:
            payload["id"] = self.id
        return payload


@dataclass
class Group:
    id: str = ""
    name: str = ""
    path: str = ""
    sub_groups: List[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Group":
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            path=data.get("path") or "",
            sub_groups=list(data.get("subGroups") or []),
        )


@dataclass
class RoleComposites:
    client: Dict[str, Any] = field(default_factory=dict)
    realm: List[str] = field(default_factory=list)


@dataclass
class Role:
    id: str = ""
    name: str = ""
    description: str = ""
    composite: bool = False
    client_role: bool = False
    container_id: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    composites: RoleComposites = field(default_factory=RoleComposites)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Role":
        composites = data.get("composites") or {}
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            description=data.get("description") or "",
            composite=bool(data.get("composite", False)),
            client_role=bool(data.get("clientRole", False)),
            container_id=data.get("containerId") or "",
            attributes=dict(data.get("attributes") or {}),
            composites=RoleComposites(
                client=dict(composites.get("client") or {}),
                realm=list(composites.get("realm") or []),
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "composite": self.composite,
            "clientRole": self.client_role,
            "containerId": self.container_id,
        }


@dataclass
class GroupMembership:
    user_id: str
    group_id: str
    realm: str = MASTER_REALM

    def to_dict(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "groupId": self.group_id, "realm": self.realm}
