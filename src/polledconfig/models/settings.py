from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, NonNegativeFloat, PositiveFloat, field_validator

ENV_PREFIX = "POLLEDCONFIG_"


class DatastoreConnectionConfig(BaseModel):
    """Connection settings for the Cloud Datastore v1 REST API.

    ``access_token`` is an already-acquired OAuth2 bearer token; obtaining it is
    left to the hosting process.
    """

    project_id: str
    base_url: str = "https://datastore.googleapis.com"
    namespace: Optional[str] = None
    database_id: Optional[str] = None
    timeout_seconds: PositiveFloat = 30.0
    access_token: Optional[str] = None

    @field_validator("project_id")
    @classmethod
    def _project_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("project_id must not be blank")
        return value.strip()


class SchedulerConfig(BaseModel):
    # Defaults mirror the usual fixed-delay wiring: first poll after 1s, then every 5s.
    initial_delay_seconds: NonNegativeFloat = 1.0
    delay_seconds: PositiveFloat = 5.0
    synchronous_first_poll: bool = False


class PolledConfigSettings(BaseModel):
    datastore: Optional[DatastoreConnectionConfig] = None
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PolledConfigSettings":
        """Build settings from ``POLLEDCONFIG_*`` environment variables.

        POLLEDCONFIG_PROJECT_ID: Datastore project (no datastore settings when unset)
        POLLEDCONFIG_BASE_URL: REST endpoint (default: https://datastore.googleapis.com)
        POLLEDCONFIG_NAMESPACE: Datastore namespace (default: none)
        POLLEDCONFIG_DATABASE_ID: Datastore database id (default: none)
        POLLEDCONFIG_TIMEOUT_SECONDS: float (default: 30)
        POLLEDCONFIG_ACCESS_TOKEN: bearer token (default: none)
        POLLEDCONFIG_INITIAL_DELAY_SECONDS: float (default: 1)
        POLLEDCONFIG_DELAY_SECONDS: float (default: 5)
        POLLEDCONFIG_SYNCHRONOUS_FIRST_POLL: "true" | "false" (default: "false")
        POLLEDCONFIG_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: INFO)
        """
        env = os.environ if environ is None else environ

        def _get(name: str) -> Optional[str]:
            val = env.get(ENV_PREFIX + name)
            return val if val not in (None, "") else None

        datastore = None
        project_id = _get("PROJECT_ID")
        if project_id is not None:
            ds: dict = {"project_id": project_id}
            for field_name in ("base_url", "namespace", "database_id", "timeout_seconds", "access_token"):
                val = _get(field_name.upper())
                if val is not None:
                    ds[field_name] = val
            datastore = DatastoreConnectionConfig.model_validate(ds)

        sched: dict = {}
        for field_name in ("initial_delay_seconds", "delay_seconds"):
            val = _get(field_name.upper())
            if val is not None:
                sched[field_name] = val
        sync_flag = _get("SYNCHRONOUS_FIRST_POLL")
        if sync_flag is not None:
            sched["synchronous_first_poll"] = sync_flag.lower() == "true"

        return cls(
            datastore=datastore,
            scheduler=SchedulerConfig.model_validate(sched),
            log_level=_get("LOG_LEVEL") or "INFO",
        )
