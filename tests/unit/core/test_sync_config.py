"""Unit tests for the sync configuration."""

import pytest
from pydantic import ValidationError

from subscription_mirror.core.exceptions import ConfigInvalid
from subscription_mirror.core.sync_config import (
    MirroredField,
    ProrationMode,
    SyncConfig,
    TRIAL_FIELDS,
)


class TestSyncConfigDefaults:
    """Tests for configuration defaults."""

    def test_defaults(self):
        """Default configuration targets the users table with the usual column names."""
        config = SyncConfig()

        assert config.table == "users"
        assert config.identity_field == "email"
        assert config.status_field == "subscription_status"
        assert config.plan_field == "plan"
        assert config.trial_fields_mirrored is False
        assert config.proration_behavior_default is None
        assert config.preserve_trial_periods is False
        assert config.auto_create_on_miss is False
        assert config.mirrored_fields == frozenset()

    def test_mirrored_columns_core_only(self):
        """Only identity, status and plan are on the table by default."""
        config = SyncConfig()

        assert config.mirrored_columns() == {
            "identity": "email",
            "status": "subscription_status",
            "plan": "plan",
        }


class TestSyncConfigFromMapping:
    """Tests for building a configuration from a mapping."""

    def test_camel_case_keys(self):
        """The camelCase keys used by embedding applications are accepted."""
        config = SyncConfig.from_mapping(
            {
                "identityField": "user_email",
                "statusField": "sub_status",
                "planField": "price_id",
                "prorationBehaviorDefault": "deferred",
                "preserveTrialPeriods": True,
                "autoCreateOnMiss": True,
            }
        )

        assert config.identity_field == "user_email"
        assert config.column_for("identity") == "user_email"
        assert config.column_for("status") == "sub_status"
        assert config.column_for("plan") == "price_id"
        assert config.proration_behavior_default == ProrationMode.DEFERRED
        assert config.preserve_trial_periods is True
        assert config.auto_create_on_miss is True

    def test_snake_case_keys(self):
        """Attribute names are accepted as well."""
        config = SyncConfig.from_mapping({"identity_field": "login", "auto_create_on_miss": True})

        assert config.identity_field == "login"
        assert config.auto_create_on_miss is True

    def test_unknown_key_rejected(self):
        """Unknown keys fail with the key in the message."""
        with pytest.raises(ConfigInvalid) as exc_info:
            SyncConfig.from_mapping({"subscriptionField": "status"})

        assert exc_info.value.field_name == "subscriptionField"
        assert "subscriptionField" in exc_info.value.message

    @pytest.mark.parametrize("field", ["identityField", "statusField", "planField"])
    def test_blank_core_field_rejected(self, field):
        """Identity, status and plan column names must be non-empty."""
        with pytest.raises(ConfigInvalid) as exc_info:
            SyncConfig.from_mapping({field: "   "})

        assert exc_info.value.field_name == field

    def test_unknown_mirrored_field_rejected(self):
        """Optional fields outside the known set are rejected, naming the field."""
        with pytest.raises(ConfigInvalid) as exc_info:
            SyncConfig.from_mapping({"mirroredFields": ["trial_end", "invoice_total"]})

        assert exc_info.value.field_name == "mirroredFields"
        assert "invoice_total" in exc_info.value.message

    def test_invalid_proration_rejected(self):
        """Proration default must be immediate or deferred."""
        with pytest.raises(ConfigInvalid) as exc_info:
            SyncConfig.from_mapping({"prorationBehaviorDefault": "sometimes"})

        assert exc_info.value.field_name == "prorationBehaviorDefault"

    def test_column_mapping_for_unknown_field_rejected(self):
        """Column names can only be remapped for known logical fields."""
        with pytest.raises(ConfigInvalid) as exc_info:
            SyncConfig.from_mapping({"columnNames": {"coupon": "coupon_code"}})

        assert exc_info.value.field_name == "columnNames"

    @pytest.mark.parametrize("field", ["identity", "status", "plan"])
    def test_column_mapping_for_core_field_rejected(self, field):
        """Core columns are named by their own settings, never through columnNames."""
        with pytest.raises(ConfigInvalid) as exc_info:
            SyncConfig.from_mapping({"columnNames": {field: "renamed"}})

        assert exc_info.value.field_name == "columnNames"
        assert field in exc_info.value.message

    def test_two_fields_on_one_column_rejected(self):
        """Two mirrored fields cannot share a column."""
        with pytest.raises(ConfigInvalid) as exc_info:
            SyncConfig.from_mapping(
                {
                    "mirroredFields": ["current_period_end", "canceled_at"],
                    "columnNames": {"canceled_at": "current_period_end"},
                }
            )

        assert exc_info.value.field_name == "columnNames"
        assert "current_period_end" in exc_info.value.message

    def test_optional_field_on_core_column_rejected(self):
        with pytest.raises(ConfigInvalid) as exc_info:
            SyncConfig.from_mapping(
                {"trialFieldsMirrored": True, "columnNames": {"trial_end": "plan"}}
            )

        assert exc_info.value.field_name == "columnNames"

    def test_core_fields_on_one_column_rejected(self):
        """Status and plan cannot share a column."""
        with pytest.raises(ConfigInvalid) as exc_info:
            SyncConfig.from_mapping({"statusField": "plan"})

        assert exc_info.value.field_name == "columnNames"

    def test_unmirrored_field_may_reuse_default_name(self):
        """Only mirrored fields take part in the column uniqueness check."""
        config = SyncConfig.from_mapping({"planField": "trial"})

        assert config.mirrored_columns()["plan"] == "trial"

    def test_none_mapping_gives_defaults(self):
        """A missing mapping builds the default configuration."""
        assert SyncConfig.from_mapping(None) == SyncConfig()


class TestSyncConfigMirroredFields:
    """Tests for optional mirrored fields and column resolution."""

    def test_trial_shorthand_expands(self):
        """trialFieldsMirrored adds the trial flag, start and end."""
        config = SyncConfig.from_mapping({"trialFieldsMirrored": True})

        assert TRIAL_FIELDS <= config.mirrored_fields
        assert config.is_mirrored(MirroredField.TRIAL_END)
        assert not config.is_mirrored(MirroredField.PAYMENT_METHOD)

    def test_listing_all_trial_fields_sets_shorthand(self):
        """Listing every trial field is the same as the shorthand."""
        config = SyncConfig.from_mapping({"mirroredFields": ["trial", "trial_start", "trial_end"]})

        assert config.trial_fields_mirrored is True

    def test_column_names_resolved_once(self):
        """Remapped columns appear in the resolved mapping."""
        config = SyncConfig.from_mapping(
            {
                "mirroredFields": ["payment_method", "current_period_end"],
                "columnNames": {"current_period_end": "renews_at"},
            }
        )

        assert config.mirrored_columns() == {
            "identity": "email",
            "status": "subscription_status",
            "plan": "plan",
            "current_period_end": "renews_at",
            "payment_method": "payment_method",
        }

    def test_config_is_immutable(self):
        """Configurations cannot be changed after validation."""
        config = SyncConfig()

        with pytest.raises(ValidationError):
            config.table = "accounts"


class TestProrationMode:
    """Tests for the proration mode mapping."""

    def test_stripe_values(self):
        """Immediate invoices now; deferred leaves prorations for the next invoice."""
        assert ProrationMode.IMMEDIATE.stripe_value == "always_invoice"
        assert ProrationMode.DEFERRED.stripe_value == "create_prorations"
