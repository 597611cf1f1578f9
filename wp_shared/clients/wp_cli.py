"""WP-CLI wrapper for operations the REST API does not cover.

Commands run through the shell, locally or over SSH. Requires WP-CLI on the
target host and ENABLE_WP_CLI=true.
"""
import asyncio
import json
import logging
import shlex
from typing import Any

from wp_shared.core.config import settings
from wp_shared.core.exceptions import WPCLIDisabledError, WPCLIError

logger = logging.getLogger(__name__)


class WPCLIClient:
    def __init__(
        self,
        enabled: bool | None = None,
        wp_cli_path: str | None = None,
        wordpress_path: str | None = None,
        ssh_host: str | None = None,
        ssh_port: str | None = None,
        ssh_user: str | None = None,
        ssh_key_path: str | None = None,
        timeout: float | None = None,
    ):
        self.enabled = settings.ENABLE_WP_CLI if enabled is None else enabled
        self.wp_cli_path = wp_cli_path or settings.WP_CLI_PATH
        self.wordpress_path = wordpress_path or settings.WORDPRESS_PATH
        self.ssh_host = ssh_host or settings.SSH_HOST
        self.ssh_port = str(ssh_port or settings.SSH_PORT)
        self.ssh_user = ssh_user or settings.SSH_USER
        self.ssh_key_path = ssh_key_path or settings.SSH_KEY_PATH
        self.timeout = timeout or settings.WP_CLI_TIMEOUT

        if self.enabled:
            logger.info("WP-CLI client enabled")
        else:
            logger.info("WP-CLI client disabled - enable with ENABLE_WP_CLI=true")

    def build_command(self, command: str, format: str | None = "json") -> str:
        """Full shell command line, wrapped in ssh when a host is configured."""
        cmd = f"{self.wp_cli_path} {command}"
        if format and "--format" not in command:
            cmd += f" --format={format}"

        local_path = self.wordpress_path not in ("", ".")
        if not self.ssh_host:
            if local_path:
                cmd += f" --path={shlex.quote(self.wordpress_path)}"
            return cmd

        if local_path:
            cmd = f"cd {shlex.quote(self.wordpress_path)} && {cmd}"
        parts = ["ssh"]
        if self.ssh_port and self.ssh_port != "22":
            parts += ["-p", self.ssh_port]
        if self.ssh_key_path:
            parts += ["-i", shlex.quote(self.ssh_key_path)]
        parts += [f"{self.ssh_user or 'root'}@{self.ssh_host}", shlex.quote(cmd)]
        return " ".join(parts)

    async def run(self, command: str, format: str | None = "json", timeout: float | None = None) -> Any:
        """Run a WP-CLI command; JSON output is decoded when format is json."""
        if not self.enabled:
            raise WPCLIDisabledError()

        full_command = self.build_command(command, format)
        logger.debug(f"Executing WP-CLI: {full_command}")

        proc = await asyncio.create_subprocess_shell(
            full_command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            executable="/bin/bash",
        )
        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout or self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.error(f"WP-CLI timed out: {full_command}")
            raise WPCLIError("timed out", command=full_command)
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            logger.warning(f"WP-CLI cancelled: {full_command}")
            raise

        stdout = out.decode(errors="replace")
        stderr = err.decode(errors="replace")

        if proc.returncode != 0:
            logger.error(
                "WP-CLI execution failed: code=%s command=%s stderr=%s",
                proc.returncode, full_command, stderr.strip(),
            )
            raise WPCLIError(
                f"exit code {proc.returncode}",
                command=full_command,
                stdout=stdout,
                stderr=stderr,
                returncode=proc.returncode,
            )

        if stderr and "Warning" not in stderr:
            logger.warning(f"WP-CLI stderr: {stderr.strip()}")

        if format == "json" and stdout.strip():
            try:
                return json.loads(stdout)
            except json.JSONDecodeError:
                logger.warning("Failed to parse JSON output, returning raw string")
        return stdout.strip()

    async def is_available(self) -> bool:
        if not self.enabled:
            return False
        try:
            await self.run("--version", format=None)
            return True
        except WPCLIError as e:
            logger.warning(f"WP-CLI not available: {e}")
            return False

    # --- Database ---

    async def db_query(self, sql: str) -> str:
        return await self.run(f"db query {shlex.quote(sql)}", format=None)

    async def db_export(self, file: str) -> str:
        return await self.run(f"db export {shlex.quote(file)}", format=None)

    async def db_import(self, file: str) -> str:
        return await self.run(f"db import {shlex.quote(file)}", format=None)

    async def db_optimize(self) -> str:
        return await self.run("db optimize", format=None)

    async def search_replace(self, search: str, replace: str, tables: list[str] | None = None) -> str:
        table_args = " ".join(shlex.quote(t) for t in tables) if tables else "--all-tables"
        return await self.run(
            f"search-replace {shlex.quote(search)} {shlex.quote(replace)} {table_args}",
            format=None,
        )

    async def cache_flush(self) -> str:
        """Flush the WordPress object cache (not the ResponseCache)."""
        return await self.run("cache flush", format=None)

    # --- Themes ---

    async def install_theme(self, theme: str, activate: bool = False) -> str:
        flag = " --activate" if activate else ""
        return await self.run(f"theme install {shlex.quote(theme)}{flag}", format=None)

    async def activate_theme(self, theme: str) -> str:
        return await self.run(f"theme activate {shlex.quote(theme)}", format=None)

    async def delete_theme(self, theme: str) -> str:
        return await self.run(f"theme delete {shlex.quote(theme)}", format=None)

    async def list_themes(self) -> list[dict]:
        return await self.run("theme list")

    # --- Plugins ---

    async def install_plugin(self, plugin: str, activate: bool = False) -> str:
        flag = " --activate" if activate else ""
        return await self.run(f"plugin install {shlex.quote(plugin)}{flag}", format=None)

    async def activate_plugin(self, plugin: str) -> str:
        return await self.run(f"plugin activate {shlex.quote(plugin)}", format=None)

    async def deactivate_plugin(self, plugin: str) -> str:
        return await self.run(f"plugin deactivate {shlex.quote(plugin)}", format=None)

    async def delete_plugin(self, plugin: str) -> str:
        return await self.run(f"plugin delete {shlex.quote(plugin)}", format=None)

    async def update_plugin(self, plugin: str = "all") -> Any:
        target = "--all" if plugin == "all" else shlex.quote(plugin)
        return await self.run(f"plugin update {target}")

    async def list_plugins(self) -> list[dict]:
        return await self.run("plugin list")

    # --- Core ---

    async def core_update(self) -> str:
        return await self.run("core update", format=None)

    async def core_version(self) -> str:
        return await self.run("core version", format=None)

    # --- Users ---

    async def create_user(
        self,
        username: str,
        email: str,
        role: str = "subscriber",
        password: str | None = None,
        display_name: str | None = None,
    ) -> str:
        cmd = f"user create {shlex.quote(username)} {shlex.quote(email)} --role={shlex.quote(role)}"
        if display_name:
            cmd += f" --display_name={shlex.quote(display_name)}"
        if password:
            cmd += f" --user_pass={shlex.quote(password)}"
        return await self.run(cmd + " --porcelain", format=None)

    async def delete_user(self, user_id: int, reassign: int | None = None) -> str:
        cmd = f"user delete {int(user_id)} --yes"
        if reassign:
            cmd += f" --reassign={int(reassign)}"
        return await self.run(cmd, format=None)

    async def list_users(self) -> list[dict]:
        return await self.run("user list")

    # --- Maintenance ---

    async def enable_maintenance_mode(self) -> str:
        return await self.run("maintenance-mode activate", format=None)

    async def disable_maintenance_mode(self) -> str:
        return await self.run("maintenance-mode deactivate", format=None)

    # --- Options ---

    async def get_option(self, name: str) -> str:
        return await self.run(f"option get {shlex.quote(name)}", format=None)

    async def set_option(self, name: str, value: str) -> str:
        return await self.run(f"option update {shlex.quote(name)} {shlex.quote(str(value))}", format=None)

    # --- Media ---

    async def regenerate_thumbnails(self) -> str:
        return await self.run("media regenerate --yes", format=None)

    async def import_media(self, url: str) -> str:
        return await self.run(f"media import {shlex.quote(url)} --porcelain", format=None)

    # --- Export / import ---

    async def export_content(self, directory: str) -> str:
        return await self.run(f"export --dir={shlex.quote(directory)}", format=None)

    async def import_content(self, file: str) -> str:
        return await self.run(f"import {shlex.quote(file)} --authors=create", format=None)

    async def flush_rewrite(self) -> str:
        return await self.run("rewrite flush", format=None)
