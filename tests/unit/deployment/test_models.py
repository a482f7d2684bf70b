"""Tests for deployment data models."""

from datetime import datetime, timezone

import pytest

from canary_deploy.deployment import (
    CanarySettings,
    CanaryState,
    CanaryStatus,
    DeploymentConfig,
    DeploymentMetrics,
    MetricValues,
    load_deployment_config,
)
from canary_deploy.errors import InvalidDeploymentConfigError


class TestDeploymentConfig:
    def test_from_dict_with_defaults(self):
        config = DeploymentConfig.from_dict({"version": "v2", "environment": "staging"})

        assert config.features == {}
        assert config.canary == CanarySettings(enabled=False, percentage=0, metrics=[])

    def test_json_round_trip(self, canary_config):
        assert DeploymentConfig.from_json(canary_config.to_json()) == canary_config

    def test_missing_required_field(self):
        with pytest.raises(InvalidDeploymentConfigError, match="Missing required field: version"):
            DeploymentConfig.from_dict({"environment": "production"})

    @pytest.mark.parametrize("percentage", [-5, 120, "ten", True])
    def test_invalid_canary_percentage(self, percentage):
        with pytest.raises(InvalidDeploymentConfigError):
            DeploymentConfig.from_dict(
                {
                    "version": "v2",
                    "environment": "production",
                    "canary": {"enabled": True, "percentage": percentage},
                }
            )

    def test_feature_flags_must_be_boolean(self):
        with pytest.raises(InvalidDeploymentConfigError, match="new_checkout"):
            DeploymentConfig(version="v2", environment="production", features={"new_checkout": 1})

    @pytest.mark.parametrize(
        "features", [["new_checkout"], "new_checkout", [("new_checkout", True)]]
    )
    def test_features_must_be_a_mapping(self, features):
        with pytest.raises(InvalidDeploymentConfigError, match="features must be a mapping"):
            DeploymentConfig.from_dict(
                {"version": "v2", "environment": "production", "features": features}
            )

    @pytest.mark.parametrize("metrics", ["errorRate", {"errorRate": 1}, ["errorRate", 3]])
    def test_canary_metrics_must_be_a_list_of_names(self, metrics):
        with pytest.raises(InvalidDeploymentConfigError, match="canary.metrics"):
            DeploymentConfig.from_dict(
                {
                    "version": "v2",
                    "environment": "production",
                    "canary": {"enabled": True, "percentage": 10, "metrics": metrics},
                }
            )

    def test_non_mapping_canary_section_is_malformed(self):
        with pytest.raises(InvalidDeploymentConfigError, match="Malformed deployment config"):
            DeploymentConfig.from_dict(
                {"version": "v2", "environment": "production", "canary": ["enabled"]}
            )

    def test_from_dict_copies_collections(self):
        features = {"new_checkout": True}
        metrics = ["errorRate"]
        config = DeploymentConfig.from_dict(
            {
                "version": "v2",
                "environment": "production",
                "features": features,
                "canary": {"metrics": metrics},
            }
        )

        features["dark_mode"] = False
        metrics.append("conversionRate")

        assert config.features == {"new_checkout": True}
        assert config.canary.metrics == ["errorRate"]

    def test_empty_environment_rejected(self):
        with pytest.raises(InvalidDeploymentConfigError, match="environment is required"):
            DeploymentConfig(version="v2", environment="")

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "deploy.yaml"
        path.write_text(
            "version: v2\n"
            "environment: production\n"
            "features:\n"
            "  new_checkout: true\n"
            "canary:\n"
            "  enabled: true\n"
            "  percentage: 5\n"
            "  metrics: [errorRate]\n"
        )

        config = load_deployment_config(path)

        assert config.features == {"new_checkout": True}
        assert config.canary.percentage == 5
        assert config.canary.metrics == ["errorRate"]

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(InvalidDeploymentConfigError):
            load_deployment_config(tmp_path / "absent.yaml")


class TestCanaryState:
    def test_serialized_form(self):
        started = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        state = CanaryState(percentage=10, start_time=started, revision=4)

        assert state.to_dict() == {
            "percentage": 10,
            "startTime": "2026-03-01T12:00:00+00:00",
            "status": "active",
            "revision": 4,
        }
        assert CanaryState.from_json(state.to_json()) == state

    def test_record_without_revision(self):
        state = CanaryState.from_dict(
            {"percentage": 20, "startTime": "2026-03-01T12:00:00+00:00", "status": "stopped"}
        )

        assert state.revision == 0
        assert state.status == CanaryStatus.STOPPED
        assert not state.is_active

    def test_percentage_validated(self):
        with pytest.raises(InvalidDeploymentConfigError):
            CanaryState(percentage=101)


def test_metrics_snapshot_uses_camel_case_keys():
    snapshot = DeploymentMetrics(
        version="v2",
        metrics=MetricValues(error_rate=0.01, response_time=120, active_users=7),
    )

    payload = snapshot.to_dict()

    assert payload["version"] == "v2"
    assert payload["metrics"]["errorRate"] == 0.01
    assert payload["metrics"]["activeUsers"] == 7
    assert payload["metrics"]["customMetrics"] == {}
