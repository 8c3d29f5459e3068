"""
API route definitions.

Routes are plain (sync) functions so FastAPI runs them in its worker
threadpool; an orchestration keeps running to completion even if the
client disconnects.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request

from ..exceptions import MoverError
from ..services import Services
from ..validation import build_migration_request
from .schemas import CloneInstanceRequest, CloneNamespaceRequest, MigrateRequest

logger = logging.getLogger(__name__)
router = APIRouter()


def get_services(request: Request) -> Services:
    """Dependency returning the application's ``Services``."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized")
    return services


@router.post("/instances/{instance_id}/migrate", status_code=201)
def migrate_instance(
    instance_id: str,
    body: MigrateRequest,
    services: Services = Depends(get_services),
    user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
):
    """Copy an instance into another namespace, then apply the cutover."""
    request = build_migration_request(
        body.target_namespace_id,
        cutover_mode=body.cutover_mode,
        target_instance_name=body.target_instance_name,
        migrate_alarms=body.migrate_alarms,
        run_verification=body.run_verification,
    )
    try:
        result = services.migrations.migrate(instance_id, request, actor=user_email)
    except MoverError:
        raise
    except Exception as exc:
        logger.exception("Migration of instance %s failed", instance_id)
        raise MoverError(f"Migration failed: {exc}") from exc
    return result.to_dict()


@router.post("/namespaces/{namespace_id}/clone", status_code=201)
def clone_namespace(
    namespace_id: str,
    body: CloneNamespaceRequest,
    services: Services = Depends(get_services),
    user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
):
    try:
        result = services.clones.clone_namespace(
            namespace_id, body.name, deep_clone=body.deep_clone, actor=user_email
        )
    except MoverError:
        raise
    except Exception as exc:
        logger.exception("Clone of namespace %s failed", namespace_id)
        raise MoverError(f"Clone failed: {exc}") from exc
    return result.to_dict()


@router.post("/instances/{instance_id}/clone", status_code=201)
def clone_instance(
    instance_id: str,
    body: CloneInstanceRequest,
    services: Services = Depends(get_services),
    user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
):
    try:
        result = services.clones.clone_instance(instance_id, body.name, actor=user_email)
    except MoverError:
        raise
    except Exception as exc:
        logger.exception("Clone of instance %s failed", instance_id)
        raise MoverError(f"Clone failed: {exc}") from exc
    return result.to_dict()


@router.delete("/instances/{instance_id}/freeze")
def unfreeze_instance(
    instance_id: str,
    services: Services = Depends(get_services),
    user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
):
    """Make a frozen instance writable again."""
    try:
        return services.migrations.unfreeze(instance_id, actor=user_email)
    except MoverError:
        raise
    except Exception as exc:
        logger.exception("Unfreeze of instance %s failed", instance_id)
        raise MoverError(f"Unfreeze failed: {exc}") from exc


@router.get("/jobs")
def list_jobs(
    status: Optional[str] = None,
    namespace_id: Optional[str] = None,
    limit: int = Query(default=50),
    services: Services = Depends(get_services),
):
    jobs = services.jobs.list(status=status, namespace_id=namespace_id, limit=limit)
    return {"jobs": [job.to_dict() for job in jobs]}


@router.get("/jobs/{job_id}")
def get_job(job_id: str, services: Services = Depends(get_services)):
    return {"job": services.jobs.get(job_id).to_dict()}
