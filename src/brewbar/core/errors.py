"""Module defining custom exceptions for BrewBar."""

from __future__ import annotations

from typing import Any, Self

# Exit Codes
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2
EXIT_TRANSIENT_ERROR = 3


class BrewError(Exception):
    """Base exception class with context propagation.

    All exceptions in BrewBar inherit from this class.
    Context is a dictionary that accumulates relevant information
    as the exception propagates up the call stack.

    Example:
        raise BrewError("An error occurred", context={"package": "foo"})

        # Or with context propagation
        try:
            ...
        except BrewError as e:
            raise e.with_context(operation="refresh")
    """
    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def with_context(self, **new_context: Any) -> Self:
        """Merge additional context into the exception and return it.

        Args:
            **new_context: Additional context to add to the exception.

        Returns:
            The same exception instance with merged context.
        """
        self.context.update(new_context)
        return self

    def __str__(self) -> str:
        """String representation of the exception including context."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class TransientError(BrewError):
    """Errors caused by temporary conditions.

    The caller may try again later; nothing in BrewBar retries on its own.
    """
    pass


class UserError(BrewError):
    """Errors caused by user actions or inputs.

    These should not be repeated without correction.
    """
    pass


class SystemError(BrewError):
    """Errors due to the local environment.

    Missing executables, unreadable files, or a brew installation whose
    output no longer matches what BrewBar understands.
    """
    pass


## Specific Exceptions ##

class BrewCommandError(TransientError):
    """Brew command returned a non-zero exit code.

    Carries the command line and the captured stderr text.
    """
    def __init__(
        self,
        message: str | None = None,
        command: str | None = None,
        returncode: int | None = None,
        error: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        """Initialise BrewCommandError with detailed context.

        Args:
            message: Optional custom error message.
            command: The brew command that was executed.
            returncode: The exit code returned by the command.
            error: The stderr output from the command.
            context: Additional context information.
        """
        ctx = context or {}
        if command:
            ctx["command"] = command
        if returncode is not None:
            ctx["returncode"] = returncode
        ctx.setdefault("error", error or "")

        if message is None:
            message = f"{command or 'brew'} failed: {error or 'exit code ' + str(returncode)}"

        super().__init__(message, context=ctx)

    @property
    def stderr(self) -> str:
        return self.context.get("error", "")


class BrewTimeoutError(TransientError):
    """Brew command did not finish within its timeout and was killed."""
    def __init__(
        self,
        message: str | None = None,
        command: str | None = None,
        timeout: int | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if command:
            ctx["command"] = command
        if timeout is not None:
            ctx["timeout"] = timeout

        if message is None:
            message = f"Brew command timed out after {timeout or 'unknown'}s"

        super().__init__(message, context=ctx)


class BrewNotFoundError(SystemError):
    """The brew executable could not be started."""
    def __init__(
        self,
        message: str | None = None,
        executable: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if executable:
            ctx["executable"] = executable

        if message is None:
            message = f"Could not run '{executable or 'brew'}'"

        super().__init__(message, context=ctx)


class DecodeError(SystemError):
    """Structured output did not match the shape an adapter expects.

    Typically indicates:
        - A brew release changed its JSON schema
        - Output polluted by warnings on stdout
    """
    def __init__(
        self,
        message: str | None = None,
        adapter: str | None = None,
        error: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        """Initialise DecodeError.

        Args:
            message: Optional custom error message.
            adapter: Name of the data source adapter that failed.
            error: Description of the underlying decode problem.
            context: Additional context information.
        """
        ctx = context or {}
        if adapter:
            ctx["adapter"] = adapter
        if error:
            ctx["error"] = error

        if message is None:
            message = f"Could not decode {adapter or 'brew'} output"

        super().__init__(message, context=ctx)

    @property
    def adapter(self) -> str | None:
        return self.context.get("adapter")


class RefreshError(BrewError):
    """A refresh was aborted because one of its sources failed.

    The previous snapshot is left in place. ``cause`` holds the first
    failure reported by the data sources.
    """
    def __init__(
        self,
        cause: BaseException,
        message: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        ctx.setdefault("cause", type(cause).__name__)
        if isinstance(cause, BrewError):
            for key, value in cause.context.items():
                ctx.setdefault(key, value)

        if message is None:
            detail = cause.message if isinstance(cause, BrewError) else str(cause)
            message = f"Refresh failed: {detail}"

        self.cause = cause
        super().__init__(message, context=ctx)


class PackageNotFoundError(UserError):
    """Requested package or service is not in the current snapshot.

    This is UserError - do not retry without changing the name.
    """
    def __init__(
        self,
        message: str | None = None,
        package: str | None = None,
        kind: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        """Initialise PackageNotFoundError with detailed context.

        Args:
            message: Optional custom error message.
            package: The name of the package that was not found.
            kind: The kind of package (formula, cask or service).
            context: Additional context information.
        """
        ctx = context or {}
        if package:
            ctx["package"] = package
        if kind:
            ctx["kind"] = kind

        if message is None:
            kind_str = f" {kind}" if kind else ""
            message = f"Installed{kind_str} '{package or 'unknown'}' not found"

        super().__init__(message, context=ctx)


class BundleError(UserError):
    """A Brewfile could not be read."""
    def __init__(
        self,
        message: str | None = None,
        path: str | None = None,
        error: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if path:
            ctx["path"] = path
        if error:
            ctx["error"] = error

        if message is None:
            message = f"Could not read Brewfile {path or ''}".rstrip()

        super().__init__(message, context=ctx)


class LogReadError(SystemError):
    """A service log file exists but could not be read."""
    def __init__(
        self,
        message: str | None = None,
        path: str | None = None,
        error: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if path:
            ctx["path"] = path
        if error:
            ctx["error"] = error

        if message is None:
            message = f"Could not read log file {path or ''}".rstrip()

        super().__init__(message, context=ctx)


# CLI Error Message Templates

ERROR_TEMPLATES = {
    PackageNotFoundError: (
        "❌ Not installed: {package}\n"
        "   Suggestion: Try 'brewbar search {package}' to find it"
    ),
    BrewTimeoutError: (
        "⚠️ Command timed out after {timeout}s: {command}"
    ),
    BrewCommandError: (
        "⚠️ Brew command failed: {command}\n"
        "   Exit Code: {returncode}\n"
        "   Error: {error}"
    ),
    BrewNotFoundError: (
        "⚠️ Could not run {executable}\n"
        "   Is Homebrew installed? See https://brew.sh"
    ),
    DecodeError: (
        "⚠️ Unexpected output from the {adapter} source\n"
        "   Error: {error}"
    ),
    RefreshError: (
        "⚠️ {message}\n"
        "   Previously loaded data is unchanged"
    ),
    BundleError: (
        "❌ Could not read Brewfile: {path}\n"
        "   Error: {error}"
    ),
    LogReadError: (
        "⚠️ Could not read log file: {path}\n"
        "   Error: {error}"
    ),
    TransientError: (
        "⚠️ Temporary failure: {message}\n"
        "   This may resolve itself - try again in a moment"
    ),
    UserError: (
        "❌ {message}"
    ),
    SystemError: (
        "⚠️ System error: {message}\n"
        "   Please check your system configuration and try again"
    ),
    BrewError: (
        "❌ {message}"
    ),
}


def format_error_message(error: BrewError) -> str:
    """Formats an error message for CLI display based on the error type.

    Args:
        error: The BrewError instance to format.

    Returns:
        A formatted string message for CLI display.
    """
    template = ERROR_TEMPLATES.get(type(error), ERROR_TEMPLATES[BrewError])
    try:
        return template.format(**{**error.context, "message": error.message})
    except KeyError:
        return f"❌ {error.message}"


def suggest_search(package_name: str) -> str:
    """Suggest a search command for a missing package.

    Args:
        package_name: The name of the missing package.

    Returns:
        Formatted search suggestion string.
    """
    return (
        f"\n💡 Suggestions:\n"
        f"   • Try 'brewbar search {package_name}'\n"
        "   • Check for spelling and try again\n"
        "   • Run 'brewbar list' to see what is installed\n"
    )
