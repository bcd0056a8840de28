"""Request and response boundary for scan and install calls.

Callers (a web handler, a desktop bridge, the CLI) send camelCase JSON
payloads and get back ``{"ok": true, ...}`` or ``{"ok": false, "error":
{...}}``. Exceptions never cross this boundary.
"""

import logging
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from skill_catalog.config.schema import SkillCatalogConfig
from skill_catalog.core.catalog import CatalogService
from skill_catalog.core.conflicts import ConflictPolicy, Decision
from skill_catalog.core.identities import identity_summaries
from skill_catalog.core.installer import InstallRequest, Installer
from skill_catalog.core.scanner import ScanRequest
from skill_catalog.errors import AuthRequiredError, CatalogError, InvalidSourceError, UnknownError
from skill_catalog.fetch.git import Identity
from skill_catalog.utils.paths import expand_path

logger = logging.getLogger(__name__)


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class IdentityPayload(_Payload):
    id: Optional[str] = None
    ssh_key_path: Optional[str] = None

    def to_identity(self) -> Identity:
        return Identity(id=self.id, ssh_key_path=self.ssh_key_path)


class ScanPayload(_Payload):
    source: str
    subpath: Optional[str] = None
    default_subpath: Optional[str] = None
    identity: Optional[IdentityPayload] = None
    refresh: bool = False

    def to_request(self) -> ScanRequest:
        return ScanRequest(
            source=self.source,
            subpath=self.subpath,
            default_subpath=self.default_subpath,
            identity=self.identity.to_identity() if self.identity else None,
        )


class SelectionPayload(_Payload):
    skill_dir: str


class InstallPayload(_Payload):
    source: str
    subpath: Optional[str] = None
    default_subpath: Optional[str] = None
    identity: Optional[IdentityPayload] = None
    scope: str
    working_directory: Optional[str] = None
    user_skill_dir: Optional[str] = None
    selections: list[SelectionPayload] = Field(default_factory=list)
    conflict_policy: Optional[Literal["skipAll", "overwriteAll"]] = None
    conflict_decisions: dict[str, Literal["skip", "overwrite"]] = Field(default_factory=dict)

    def to_request(self, config: Optional[SkillCatalogConfig] = None) -> InstallRequest:
        user_skill_dir = self.user_skill_dir
        if not user_skill_dir and config is not None:
            user_skill_dir = config.settings.user_skill_dir

        extra: dict[str, Any] = {}
        if config is not None:
            extra["project_skill_dir"] = config.settings.project_skill_dir

        return InstallRequest(
            source=self.source,
            subpath=self.subpath,
            default_subpath=self.default_subpath,
            identity=self.identity.to_identity() if self.identity else None,
            scope=self.scope,
            working_directory=Path(self.working_directory) if self.working_directory else None,
            user_skill_dir=expand_path(user_skill_dir) if user_skill_dir else None,
            selections=[s.skill_dir for s in self.selections],
            conflict_policy=ConflictPolicy(self.conflict_policy) if self.conflict_policy else None,
            conflict_decisions={name: Decision(d) for name, d in self.conflict_decisions.items()},
            **extra,
        )


def error_response(error: CatalogError) -> dict[str, Any]:
    return {"ok": False, "error": error.to_dict()}


def _invalid_payload(e: ValidationError) -> CatalogError:
    first = e.errors()[0] if e.errors() else {}
    where = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid request")
    return InvalidSourceError(f"{where}: {message}" if where else message)


def _with_identities(error: CatalogError, config: Optional[SkillCatalogConfig]) -> CatalogError:
    if isinstance(error, AuthRequiredError) and config is not None and error.identities is None:
        error.identities = identity_summaries(config) or None
    return error


async def handle_scan(
    payload: Union[dict[str, Any], ScanPayload], service: CatalogService
) -> dict[str, Any]:
    """Scan a repository and return a ScanResponse payload."""
    try:
        if not isinstance(payload, ScanPayload):
            payload = ScanPayload.model_validate(payload)
        result = await service.scan(payload.to_request(), refresh=payload.refresh)
    except ValidationError as e:
        return error_response(_invalid_payload(e))
    except CatalogError as e:
        return error_response(_with_identities(e, service.config))
    except Exception as e:
        logger.exception("Unexpected scan failure")
        return error_response(UnknownError(str(e) or type(e).__name__))

    return {"ok": True, **result.to_dict()}


async def handle_install(
    payload: Union[dict[str, Any], InstallPayload],
    installer: Installer,
    config: Optional[SkillCatalogConfig] = None,
) -> dict[str, Any]:
    """Install selected skills and return an InstallResponse payload."""
    try:
        if not isinstance(payload, InstallPayload):
            payload = InstallPayload.model_validate(payload)
        outcome = await installer.install(payload.to_request(config))
    except ValidationError as e:
        return error_response(_invalid_payload(e))
    except CatalogError as e:
        return error_response(_with_identities(e, config))
    except Exception as e:
        logger.exception("Unexpected install failure")
        return error_response(UnknownError(str(e) or type(e).__name__))

    return {"ok": True, **outcome.to_dict()}
