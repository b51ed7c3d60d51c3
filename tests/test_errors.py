"""Tests for error hierarchy."""

from fleetcmd.errors import CodecError, ConfigurationError, FleetCmdError


class TestErrorHierarchy:
    """Tests for error class hierarchy."""

    def test_all_errors_inherit_from_base(self):
        for error in (ConfigurationError("test"), CodecError("test")):
            assert isinstance(error, FleetCmdError)

    def test_configuration_error_keeps_path(self):
        error = ConfigurationError("bad key", path="/tmp/key")

        assert str(error) == "bad key"
        assert error.path == "/tmp/key"

    def test_configuration_error_path_optional(self):
        assert ConfigurationError("bad").path is None
