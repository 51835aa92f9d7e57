"""
Configuration tests - environment loading and cross-field validation.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from config import (
    AccessConfig,
    AppConfig,
    BoundaryConfig,
    DatabaseConfig,
    PollerConfig,
    debug_config,
    get_config,
    get_postgres_connection_string,
    reset_config,
)


class TestAppConfigFromEnvironment:

    def test_defaults_with_memory_backend(self, clean_env):
        clean_env.setenv("ACCESS_STORAGE_BACKEND", "memory")
        config = AppConfig.from_environment()
        assert config.database is None
        assert config.access.storage_backend == "memory"
        assert config.boundary.fail_open is True
        assert config.reconciliation.enabled is True
        assert config.access.resolver_cache_ttl_seconds <= config.poller.interval_seconds

    def test_postgres_backend_requires_database(self, clean_env):
        clean_env.setenv("ACCESS_STORAGE_BACKEND", "postgres")
        with pytest.raises(PydanticValidationError, match="POSTGIS_HOST"):
            AppConfig.from_environment()

    def test_postgres_backend_with_database(self, clean_env):
        clean_env.setenv("ACCESS_STORAGE_BACKEND", "POSTGRES")
        clean_env.setenv("POSTGIS_HOST", "db.internal")
        clean_env.setenv("POSTGIS_DATABASE", "access")
        clean_env.setenv("POSTGIS_PASSWORD", "s3cret")
        config = AppConfig.from_environment()
        assert config.access.storage_backend == "postgres"
        assert config.database.host == "db.internal"
        assert config.database.app_schema == "app"

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("ACCESS_STORAGE_BACKEND", "memory")
        clean_env.setenv("BOUNDARY_FAIL_OPEN", "false")
        clean_env.setenv("BOUNDARY_NAME_PROPERTIES", "STATE_NAME, ,NAME_1")
        clean_env.setenv("ACCESS_GRANT_ADMIN_ROLES", "Supervisor,ADMIN")
        clean_env.setenv("RECONCILIATION_INTERVAL_SECONDS", "60")
        config = AppConfig.from_environment()
        assert config.boundary.fail_open is False
        assert config.boundary.name_properties == ["STATE_NAME", "NAME_1"]
        assert config.access.is_grant_admin("supervisor")
        assert not config.access.is_grant_admin("manager")
        assert config.reconciliation.interval_seconds == 60


class TestValidation:

    def test_cache_ttl_must_not_exceed_poll_interval(self):
        with pytest.raises(PydanticValidationError, match="POLLER_INTERVAL_SECONDS"):
            AppConfig(
                access=AccessConfig(storage_backend="memory", resolver_cache_ttl_seconds=60),
                poller=PollerConfig(interval_seconds=30),
            )

    def test_unknown_backend(self):
        with pytest.raises(PydanticValidationError):
            AccessConfig(storage_backend="redis")

    def test_unknown_default_access_level(self):
        with pytest.raises(PydanticValidationError):
            AccessConfig(default_access_level="owner")

    def test_name_properties_required(self):
        with pytest.raises(PydanticValidationError):
            BoundaryConfig(name_properties=[" "])


class TestDatabaseConfig:

    def test_connection_string(self):
        config = DatabaseConfig(host="db", database="access", user="svc", password="pw")
        conn = get_postgres_connection_string(config)
        assert "host=db" in conn and "dbname=access" in conn and "password=pw" in conn

    def test_password_masked(self):
        config = DatabaseConfig(host="db", database="access", password="pw")
        assert config.debug_dict()["password"] == "***MASKED***"
        assert "pw" not in repr(config)


class TestSingleton:

    def test_get_config_is_cached_until_reset(self, clean_env):
        clean_env.setenv("ACCESS_STORAGE_BACKEND", "memory")
        first = get_config()
        assert get_config() is first
        reset_config()
        assert get_config() is not first

    def test_debug_config_masks_and_reports_errors(self, clean_env):
        clean_env.setenv("ACCESS_STORAGE_BACKEND", "postgres")
        assert "error" in debug_config()


class TestLogLevel:

    def test_normalized(self):
        config = AppConfig(access=AccessConfig(storage_backend="memory"), log_level=" warning ")
        assert config.log_level == "WARNING"

    def test_unknown_rejected(self):
        with pytest.raises(PydanticValidationError, match="LOG_LEVEL"):
            AppConfig(access=AccessConfig(storage_backend="memory"), log_level="chatty")


class TestBoundaryDefaults:

    def test_no_default_dataset(self, clean_env):
        clean_env.setenv("ACCESS_STORAGE_BACKEND", "memory")
        assert BoundaryConfig().source is None
        assert AppConfig.from_environment().boundary.source is None

    def test_empty_source_is_unset(self, clean_env):
        clean_env.setenv("ACCESS_STORAGE_BACKEND", "memory")
        clean_env.setenv("BOUNDARY_SOURCE", "")
        assert AppConfig.from_environment().boundary.source is None
