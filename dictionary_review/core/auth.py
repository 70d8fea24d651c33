from dataclasses import dataclass, field

ADMIN_ROLE = "admin"


@dataclass(slots=True, frozen=True)
class IdentityContext:
    """Caller identity handed in by the external auth collaborator."""

    user_id: str
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

    def has_role(self, role: str) -> bool:
        return role in self.roles


def parse_roles(raw: object) -> frozenset[str]:
    if isinstance(raw, str):
        return frozenset(chunk.strip() for chunk in raw.split(",") if chunk.strip())
    if isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset(item.strip() for item in raw if isinstance(item, str) and item.strip())
    return frozenset()
