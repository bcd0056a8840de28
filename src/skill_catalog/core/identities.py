"""Lookup of configured git identities."""

from typing import Optional

from skill_catalog.config.schema import SkillCatalogConfig
from skill_catalog.fetch.git import Identity


def resolve_identity(config: SkillCatalogConfig, identity_id: Optional[str]) -> Optional[Identity]:
    """Map a configured identity id to the credential used for git calls.

    Unknown ids resolve to no identity. An identity without an SSH key
    still partitions the scan cache but clones over HTTPS.
    """
    wanted = (identity_id or "").strip()
    if not wanted:
        return None
    for profile in config.identities:
        if profile.id == wanted:
            key = (profile.ssh_key or "").strip() or None
            return Identity(id=profile.id, ssh_key_path=key)
    return None


def identity_summaries(config: SkillCatalogConfig) -> list[dict[str, str]]:
    """Id and display name of every configured identity."""
    return [{"id": profile.id, "name": profile.name} for profile in config.identities]
