"""Errors raised by the REST and WP-CLI clients."""


class WordPressError(Exception):
    """Base class for every error raised by this library."""


class ConfigurationError(WordPressError):
    """Required connection settings are missing."""


class WordPressAPIError(WordPressError):
    """The REST API answered with an error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"WordPress API Error ({status_code}): {message}")


class WordPressConnectionError(WordPressError):
    """The request never got a response (timeout, DNS, refused connection)."""


class WPCLIDisabledError(WordPressError):
    def __init__(self):
        super().__init__(
            "WP-CLI is not enabled. Set ENABLE_WP_CLI=true to use WP-CLI features."
        )


class WPCLIError(WordPressError):
    """A WP-CLI command exited non-zero or timed out."""

    def __init__(
        self,
        message: str,
        command: str,
        stdout: str = "",
        stderr: str = "",
        returncode: int | None = None,
    ):
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(
            f"WP-CLI command failed: {message}\nStderr: {stderr}\nStdout: {stdout}"
        )
