"""Shared building blocks for WordPress tool servers."""

from wp_shared.clients.rest_api import WordPressRestClient
from wp_shared.clients.wp_cli import WPCLIClient
from wp_shared.core.cache import CacheStats, ResponseCache, make_cache_key, resource_family
from wp_shared.core.exceptions import (
    ConfigurationError,
    WordPressAPIError,
    WordPressConnectionError,
    WordPressError,
    WPCLIDisabledError,
    WPCLIError,
)
from wp_shared.core.log import setup_logging
from wp_shared.server import (
    Tool,
    ToolServer,
    convert_schema,
    create_tool_server,
    error_result,
    start_server,
    text_result,
)

__version__ = "1.0.0"
