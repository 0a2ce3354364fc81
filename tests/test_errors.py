"""Tests for the error taxonomy and CLI error formatting."""

import pytest

from brewbar.core.errors import (
    BrewCommandError,
    BrewError,
    BundleError,
    DecodeError,
    LogReadError,
    PackageNotFoundError,
    RefreshError,
    SystemError,
    TransientError,
    UserError,
    format_error_message,
)


@pytest.mark.unit
def test_with_context_merges_and_returns_same_instance():
    error = BrewError("boom", context={"package": "git"})

    assert error.with_context(operation="pin") is error
    assert error.context == {"package": "git", "operation": "pin"}
    assert str(error) == "boom [package=git, operation=pin]"


@pytest.mark.unit
def test_categories():
    assert issubclass(BrewCommandError, TransientError)
    assert issubclass(PackageNotFoundError, UserError)
    assert issubclass(BundleError, UserError)
    assert issubclass(DecodeError, SystemError)
    assert issubclass(LogReadError, SystemError)


@pytest.mark.unit
def test_command_error_default_message_embeds_command_and_stderr():
    error = BrewCommandError(command="brew pin nope", returncode=1, error="Error: not installed")

    assert error.message == "brew pin nope failed: Error: not installed"
    assert error.stderr == "Error: not installed"


@pytest.mark.unit
def test_command_error_without_stderr_mentions_exit_code():
    error = BrewCommandError(command="brew upgrade", returncode=3)

    assert "exit code 3" in error.message


@pytest.mark.unit
def test_refresh_error_wraps_cause_and_its_context():
    cause = DecodeError(adapter="services", error="missing 'name'")
    error = RefreshError(cause)

    assert error.cause is cause
    assert error.context["adapter"] == "services"
    assert error.context["cause"] == "DecodeError"
    assert error.message.startswith("Refresh failed:")


@pytest.mark.unit
def test_refresh_error_wraps_non_brew_exception():
    error = RefreshError(OSError("pipe closed"))

    assert "pipe closed" in error.message


@pytest.mark.unit
def test_format_error_message_uses_type_template():
    error = PackageNotFoundError(package="ghost", kind="formula")

    text = format_error_message(error)

    assert "ghost" in text
    assert "brewbar search ghost" in text


@pytest.mark.unit
def test_format_error_message_for_unreadable_log():
    error = LogReadError(path="/opt/homebrew/var/log/redis.log", error="Is a directory")

    text = format_error_message(error)

    assert "/opt/homebrew/var/log/redis.log" in text
    assert "Is a directory" in text


@pytest.mark.unit
def test_format_error_message_falls_back_on_missing_context():
    error = BrewCommandError("custom failure")

    assert format_error_message(error) == "❌ custom failure"
