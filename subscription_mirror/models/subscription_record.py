"""Subscription mirror table.

The table name and column names come from the sync configuration, so the table is built
from the configuration instead of being declared as a fixed model.
"""

from sqlalchemy import Boolean, Column, DateTime, MetaData, String, Table

from subscription_mirror.core.sync_config import SyncConfig

# Column type per logical field; identity/status/plan are always present
FIELD_TYPES = {
    "identity": String,
    "status": String(50),
    "plan": String,
    "trial": Boolean,
    "trial_start": DateTime(timezone=True),
    "trial_end": DateTime(timezone=True),
    "payment_method": String,
    "current_period_start": DateTime(timezone=True),
    "current_period_end": DateTime(timezone=True),
    "canceled_at": DateTime(timezone=True),
    "cancel_at_period_end": Boolean,
}


def build_subscription_table(metadata: MetaData, config: SyncConfig) -> Table:
    """Build (or return the already registered) mirror table for a configuration."""
    if config.table in metadata.tables:
        return metadata.tables[config.table]

    columns = []
    for field, column_name in config.mirrored_columns().items():
        if field == "identity":
            columns.append(Column(column_name, String, primary_key=True))
        else:
            columns.append(Column(column_name, FIELD_TYPES[field], nullable=True))
    return Table(config.table, metadata, *columns)
