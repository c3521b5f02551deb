"""Validated, immutable sync configuration.

The configuration names the mirror table and the columns the engine writes, the optional
provider-derived fields that are mirrored, and the sync policy flags. Field names are
resolved to storage columns once, when the configuration is built.
"""

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from subscription_mirror.core.exceptions import ConfigInvalid


class ProrationMode(str, Enum):
    """How a mid-period price change is billed."""

    IMMEDIATE = "immediate"
    DEFERRED = "deferred"

    @property
    def stripe_value(self) -> str:
        """The Stripe `proration_behavior` this mode is sent as."""
        return _STRIPE_PRORATION[self]


_STRIPE_PRORATION = {
    ProrationMode.IMMEDIATE: "always_invoice",
    ProrationMode.DEFERRED: "create_prorations",
}


class MirroredField(str, Enum):
    """Optional provider-derived fields that can be mirrored."""

    TRIAL = "trial"
    TRIAL_START = "trial_start"
    TRIAL_END = "trial_end"
    PAYMENT_METHOD = "payment_method"
    CURRENT_PERIOD_START = "current_period_start"
    CURRENT_PERIOD_END = "current_period_end"
    CANCELED_AT = "canceled_at"
    CANCEL_AT_PERIOD_END = "cancel_at_period_end"


TRIAL_FIELDS = frozenset({MirroredField.TRIAL, MirroredField.TRIAL_START, MirroredField.TRIAL_END})

# Logical fields that always exist on a mirror record
CORE_FIELDS = ("identity", "status", "plan")


class SyncConfig(BaseModel):
    """Sync configuration value object.

    Accepts both the camelCase keys used by embedding applications
    (``identityField``, ``trialFieldsMirrored``...) and the snake_case attribute names.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    table: str = Field(default="users", min_length=1)
    identity_field: str = Field(default="email", alias="identityField", min_length=1)
    status_field: str = Field(default="subscription_status", alias="statusField", min_length=1)
    plan_field: str = Field(default="plan", alias="planField", min_length=1)
    trial_fields_mirrored: bool = Field(default=False, alias="trialFieldsMirrored")
    mirrored_fields: frozenset[MirroredField] = Field(
        default_factory=frozenset, alias="mirroredFields"
    )
    column_names: dict[str, str] = Field(
        default_factory=dict, alias="columnNames", validate_default=True
    )
    proration_behavior_default: Optional[ProrationMode] = Field(
        default=None, alias="prorationBehaviorDefault"
    )
    preserve_trial_periods: bool = Field(default=False, alias="preserveTrialPeriods")
    auto_create_on_miss: bool = Field(default=False, alias="autoCreateOnMiss")
    debug: bool = False

    @field_validator("table", "identity_field", "status_field", "plan_field", mode="before")
    @classmethod
    def strip_names(cls, v: Any) -> Any:
        """Reject blank names; whitespace-only strings count as empty."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("mirrored_fields", mode="before")
    @classmethod
    def check_mirrored_fields(cls, v: Any) -> Any:
        """Reject optional field names outside the known set, naming the first offender."""
        if v is None:
            return frozenset()
        known = {field.value for field in MirroredField}
        for name in v:
            value = name.value if isinstance(name, MirroredField) else name
            if value not in known:
                raise ValueError(f"unknown mirrored field '{value}'")
        return v

    @field_validator("column_names")
    @classmethod
    def check_column_names(cls, v: dict[str, str], info: ValidationInfo) -> dict[str, str]:
        """Only optional fields can be remapped, to non-empty columns no other field uses.

        Identity, status and plan are named by their own settings.
        """
        optional = {field.value for field in MirroredField}
        for field, column in v.items():
            if field in CORE_FIELDS:
                raise ValueError(f"'{field}' is set by its own field setting")
            if field not in optional:
                raise ValueError(f"unknown field '{field}'")
            if not column or not column.strip():
                raise ValueError(f"empty column name for field '{field}'")

        mirrored = set(info.data.get("mirrored_fields") or ())
        if info.data.get("trial_fields_mirrored"):
            mirrored |= TRIAL_FIELDS
        columns = [
            ("identity", info.data.get("identity_field")),
            ("status", info.data.get("status_field")),
            ("plan", info.data.get("plan_field")),
        ]
        columns += [(name, v.get(name, name)) for name in sorted(f.value for f in mirrored)]

        owners: dict[str, str] = {}
        for field, column in columns:
            if column is None:
                continue
            if column in owners:
                raise ValueError(
                    f"column '{column}' is used by both '{owners[column]}' and '{field}'"
                )
            owners[column] = field
        return v

    @model_validator(mode="after")
    def resolve_columns(self) -> "SyncConfig":
        """Expand the trial shorthand and resolve every logical field to a column once."""
        mirrored = set(self.mirrored_fields)
        if self.trial_fields_mirrored:
            mirrored |= TRIAL_FIELDS

        columns = {field.value: field.value for field in MirroredField}
        columns.update(self.column_names)
        columns["identity"] = self.identity_field
        columns["status"] = self.status_field
        columns["plan"] = self.plan_field

        # The model is frozen, so derived values are written past __setattr__
        object.__setattr__(self, "mirrored_fields", frozenset(mirrored))
        object.__setattr__(self, "trial_fields_mirrored", TRIAL_FIELDS <= mirrored)
        object.__setattr__(self, "column_names", columns)
        return self

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]] = None) -> "SyncConfig":
        """Build a configuration, converting validation failures into ConfigInvalid.

        Raises:
            ConfigInvalid: Naming the first offending field.
        """
        try:
            return cls.model_validate(dict(values or {}))
        except ValidationError as exc:
            error = exc.errors()[0]
            field_name = str(error["loc"][0]) if error["loc"] else "config"
            if error["type"] == "extra_forbidden":
                raise ConfigInvalid(field_name, "Unrecognized configuration field") from exc
            detail = error["msg"].removeprefix("Value error, ")
            raise ConfigInvalid(field_name, f"Invalid configuration field ({detail})") from exc

    def is_mirrored(self, field: MirroredField) -> bool:
        """Whether an optional field is written to the mirror."""
        return field in self.mirrored_fields

    def column_for(self, field: str) -> str:
        """Storage column for a logical field name."""
        return self.column_names[field]

    def mirrored_columns(self) -> dict[str, str]:
        """Logical name to column for every field present on this mirror's table."""
        fields = list(CORE_FIELDS) + sorted(field.value for field in self.mirrored_fields)
        return {field: self.column_names[field] for field in fields}
