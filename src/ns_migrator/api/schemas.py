"""
Request schemas for the API.

Field validation beyond basic typing happens in ``ns_migrator.validation``
so the CLI and the API reject the same inputs with the same messages.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MigrateRequest(BaseModel):
    """Body of ``POST /api/instances/{id}/migrate``."""
    model_config = ConfigDict(populate_by_name=True)

    target_namespace_id: Optional[str] = Field(default=None, alias="targetNamespaceId")
    target_instance_name: Optional[str] = Field(default=None, alias="targetInstanceName")
    cutover_mode: Optional[str] = Field(default=None, alias="cutoverMode")
    migrate_alarms: Optional[bool] = Field(default=None, alias="migrateAlarms")
    run_verification: Optional[bool] = Field(default=None, alias="runVerification")


class CloneNamespaceRequest(BaseModel):
    """Body of ``POST /api/namespaces/{id}/clone``."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    deep_clone: bool = Field(default=False, alias="deepClone")


class CloneInstanceRequest(BaseModel):
    name: Optional[str] = None
