"""polledconfig.

Dynamic configuration kept fresh by polling a Cloud Datastore entity.

A fixed-delay scheduler fetches one entity, maps its properties onto typed
values and atomically republishes them into a configuration registry. Typed
property handles obtained from the registry always read the latest values.
"""

from polledconfig.bootstrap import DynamicConfiguration
from polledconfig.core.contracts import EntityIdentity, PollResult, ValueSet
from polledconfig.core.values import TypedValue, ValueKind, coerce
from polledconfig.registry import ConfigurationRegistry, get_instance
from polledconfig.scheduler import FixedDelayPollingScheduler
from polledconfig.source import DatastoreConfigurationSource

__version__ = "0.1.0"

__all__ = [
    "ConfigurationRegistry",
    "DatastoreConfigurationSource",
    "DynamicConfiguration",
    "EntityIdentity",
    "FixedDelayPollingScheduler",
    "PollResult",
    "TypedValue",
    "ValueKind",
    "ValueSet",
    "coerce",
    "get_instance",
]
