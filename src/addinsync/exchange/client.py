"""Exchange Online PowerShell client for mailbox add-ins.

Outlook add-ins are installed per mailbox with ``New-App``, listed with
``Get-App`` and removed with ``Remove-App``. There is no Graph endpoint for
this, so each call runs a short ``pwsh`` script that connects with the app
registration's certificate, runs the cmdlet and disconnects.

The app registration needs the Exchange.ManageAsApp permission and a role
group that grants the mailbox app cmdlets (e.g. "Organization Management"
or a custom group with the "User Options" role).
"""

import asyncio
import json
import logging
import re
import subprocess
from pathlib import Path

from addinsync.addins.models import InstalledApp, OperationResult, OperationStatus
from addinsync.addins.services import AddInManagementService
from addinsync.core.config import get_exchange_credentials

logger = logging.getLogger(__name__)

POWERSHELL_TIMEOUT_SECONDS = 120
SUCCESS_MARKER = "SUCCESS"

# First character of a JSON document after any module banner text
JSON_START = re.compile(r"[\[{]")


def quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string."""
    return "'" + value.replace("'", "''") + "'"


def parse_json_output(output: str) -> dict | list:
    """Parse cmdlet JSON output, skipping any text printed before it.

    Raises:
        json.JSONDecodeError: If no JSON document can be found
    """
    try:
        return json.loads(output)
    except json.JSONDecodeError:
        match = JSON_START.search(output)
        if match is None or match.start() == 0:
            raise
        return json.loads(output[match.start() :])


class ExchangeOnlineClient(AddInManagementService):
    """Install, list and remove mailbox add-ins through Exchange Online PowerShell.

    Every call opens its own session, so the client holds no connection
    state. The stderr of the last failed call is kept in ``last_error``.
    """

    def __init__(
        self,
        certificate_thumbprint: str | None = None,
        certificate_path: Path | str | None = None,
        certificate_password: str | None = None,
        organization: str | None = None,
        client_id: str | None = None,
    ) -> None:
        """Initialize the client from EXCHANGE_* settings.

        Args:
            certificate_thumbprint: Thumbprint of an installed certificate (Windows)
            certificate_path: Path to a .pfx certificate file
            certificate_password: Password for the .pfx file (may be empty)
            organization: Organization domain (overrides EXCHANGE_ORGANIZATION)
            client_id: App registration client ID (overrides env config)
        """
        creds = get_exchange_credentials()
        self.tenant_id = creds.tenant_id
        self.client_id = client_id or creds.client_id
        self.organization = organization or creds.organization
        self.certificate_thumbprint = certificate_thumbprint or creds.certificate_thumbprint
        self.certificate_path = certificate_path or creds.certificate_path
        if certificate_password is not None:
            self.certificate_password = certificate_password
        else:
            self.certificate_password = creds.certificate_password
        self.last_error: str = ""

    def _build_connect_command(self) -> str:
        """Build the Connect-ExchangeOnline command for certificate app-only auth."""
        args = [f"-AppId {quote(self.client_id)}"]

        # A .pfx file works on every platform, the thumbprint only on Windows
        if self.certificate_path:
            args.append(f"-CertificateFilePath {quote(str(self.certificate_path))}")
            if self.certificate_password:
                args.append(
                    "-CertificatePassword (ConvertTo-SecureString "
                    f"-String {quote(self.certificate_password)} -AsPlainText -Force)"
                )
        elif self.certificate_thumbprint:
            args.append(f"-CertificateThumbprint {quote(self.certificate_thumbprint)}")
        else:
            raise ValueError("Either certificate_thumbprint or certificate_path must be provided")

        args.append(f"-Organization {quote(self.organization)}")
        # Banner output would otherwise end up in front of the JSON
        return f"Connect-ExchangeOnline {' '.join(args)} *>$null"

    def _build_script(self, commands: list[str]) -> str:
        return "; ".join(
            [
                "Import-Module ExchangeOnlineManagement -ErrorAction Stop",
                self._build_connect_command(),
                *commands,
                "Disconnect-ExchangeOnline -Confirm:$false *>$null",
            ]
        )

    def _run_powershell(
        self, commands: list[str], parse_json: bool = True
    ) -> dict | list | str | None:
        """Run cmdlets in a fresh Exchange Online session.

        Args:
            commands: PowerShell statements to run after connecting
            parse_json: If True, parse stdout as JSON

        Returns:
            Parsed JSON or stripped stdout, or None on failure
        """
        self.last_error = ""
        script = self._build_script(commands)
        try:
            completed = subprocess.run(  # noqa: S603
                ["pwsh", "-NoProfile", "-NonInteractive", "-Command", script],  # noqa: S607
                capture_output=True,
                text=True,
                timeout=POWERSHELL_TIMEOUT_SECONDS,
            )
        except subprocess.TimeoutExpired:
            return self._fail("PowerShell command timed out")
        except FileNotFoundError:
            return self._fail("PowerShell (pwsh) not found. Install PowerShell 7+.")

        if completed.returncode != 0:
            error = completed.stderr.strip() or f"exit code {completed.returncode}"
            return self._fail(error, prefix="PowerShell error: ")

        output = completed.stdout.strip()
        if not parse_json:
            return output
        if not output:
            return []

        try:
            return parse_json_output(output)
        except json.JSONDecodeError:
            self.last_error = f"Failed to parse JSON output: {output[:200]}"
            logger.warning(self.last_error)
            return None

    def _fail(self, error: str, prefix: str = "") -> None:
        self.last_error = error
        logger.error(f"{prefix}{error}")
        return None

    async def _run_mutation(self, command: str) -> bool:
        """Run a cmdlet that prints nothing and report whether it completed."""
        output = await asyncio.to_thread(
            self._run_powershell,
            [command, f"Write-Output '{SUCCESS_MARKER}'"],
            parse_json=False,
        )
        return bool(output) and SUCCESS_MARKER in str(output)

    async def install_application(self, user: str, manifest_url: str) -> OperationResult:
        """Install an add-in in a mailbox from its manifest URL."""
        command = (
            f"New-App -Mailbox {quote(user)} -Url {quote(manifest_url)} "
            "-Enabled $true -ErrorAction Stop | Out-Null"
        )
        if await self._run_mutation(command):
            return OperationResult(OperationStatus.INSTALLED, user)
        return OperationResult(
            OperationStatus.FAILED, user, message=self.last_error or "New-App failed"
        )

    async def remove_application(self, user: str, installation_id: str) -> OperationResult:
        """Remove an add-in from a mailbox by the AppId that Get-App reported."""
        command = (
            f"Remove-App -Mailbox {quote(user)} -Identity {quote(installation_id)} "
            "-Confirm:$false -ErrorAction Stop"
        )
        if await self._run_mutation(command):
            return OperationResult(OperationStatus.REMOVED, user)
        return OperationResult(
            OperationStatus.FAILED, user, message=self.last_error or "Remove-App failed"
        )

    async def list_installed_applications(self, user: str) -> list[InstalledApp] | None:
        """List add-ins installed in a mailbox.

        Returns:
            Installed add-ins, or None if Get-App failed
        """
        command = (
            f"@(Get-App -Mailbox {quote(user)} -ErrorAction Stop "
            "| Select-Object AppId, DisplayName) | ConvertTo-Json -AsArray"
        )
        output = await asyncio.to_thread(self._run_powershell, [command])
        if output is None:
            return None

        # ConvertTo-Json on older hosts collapses a single item to an object
        rows = [output] if isinstance(output, dict) else output
        if not isinstance(rows, list):
            return []

        return [
            InstalledApp(
                installation_id=str(row["AppId"]),
                display_name=row.get("DisplayName") or "",
            )
            for row in rows
            if isinstance(row, dict) and row.get("AppId")
        ]
