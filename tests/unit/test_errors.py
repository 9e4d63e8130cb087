"""Unit tests for kindup errors."""

from kindup.errors import (
    INSTALL_FAILED,
    RELEASE_RESOLUTION_FAILED,
    InstallFailed,
    ProvisionError,
    ReadinessTimeout,
    ReleaseResolutionError,
    missing_command,
)


class TestProvisionError:
    """Tests for ProvisionError and subclasses."""

    def test_str_includes_step(self):
        """Test string form is prefixed with the step name."""
        error = ReadinessTimeout(message="not ready after 60s", step="docker-daemon")
        assert str(error) == "[docker-daemon] not ready after 60s"

    def test_str_without_step(self):
        assert str(InstallFailed(message="apt-get failed")) == "apt-get failed"

    def test_default_kinds(self):
        """Test subclasses carry their default kind."""
        assert InstallFailed().kind == INSTALL_FAILED
        assert ReleaseResolutionError().kind == RELEASE_RESOLUTION_FAILED
        assert isinstance(ReleaseResolutionError(), InstallFailed)

    def test_to_dict(self):
        """Test JSON-serializable form omits empty fields."""
        error = ProvisionError(kind="install_failed", message="boom")
        assert error.to_dict() == {"kind": "install_failed", "message": "boom"}

        error.step = "kind"
        error.data["returncode"] = 1
        assert error.to_dict() == {
            "kind": "install_failed",
            "message": "boom",
            "step": "kind",
            "data": {"returncode": 1},
        }

    def test_data_not_shared(self):
        """Test each error gets its own data dict."""
        first, second = InstallFailed(), InstallFailed()
        first.data["x"] = 1
        assert second.data == {}

    def test_missing_command(self):
        error = missing_command("kubectl")
        assert error.message == "command 'kubectl' not found; aborting."
        assert error.data == {"command": "kubectl"}
