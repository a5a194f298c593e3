"""Contract parties of a residential lease."""

from enum import Enum


class PartyRole(str, Enum):
    """The two signatories of a lease."""

    OWNER = "owner"
    TENANT = "tenant"

    @property
    def counterparty(self) -> "PartyRole":
        return PartyRole.TENANT if self is PartyRole.OWNER else PartyRole.OWNER
