"""Content API client shared by the GitHub and Gitee providers."""

import base64
import binascii
import logging
from typing import Any, Dict, Optional

import requests

from ..config.settings import Provider, SyncConfig
from ..errors import TransportError
from ..utils.time_utils import now_iso
from .results import DownloadResult, SyncResult

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "PromptHub-Sync-Client"
DEFAULT_TIMEOUT = 30.0


class RemoteClient:
    """Read and write one file through a repository contents API.

    Both providers expose the same shape: ``GET <base>/contents/<path>``
    returns ``{content: base64, sha}`` (or 404) and ``PUT`` with
    ``{message, content, sha?}`` writes it. Nothing raised by the
    transport escapes this class; every call returns a result object.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None
    ):
        """Initialize the client.

        Args:
            timeout: Per request timeout in seconds
            user_agent: Fixed client identifier sent with every request
            session: Optional pre-built requests session
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = session or requests.Session()

    def _get_headers(self, config: SyncConfig) -> Dict[str, str]:
        headers = {
            'Authorization': config.auth_header,
            'User-Agent': self.user_agent,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        if config.provider == Provider.GITHUB:
            headers['Accept'] = 'application/vnd.github+json'
        return headers

    def _request(self, config: SyncConfig, method: str, url: str,
                 payload: Optional[Dict[str, Any]] = None,
                 params: Optional[Dict[str, str]] = None) -> requests.Response:
        try:
            return self.session.request(
                method,
                url,
                headers=self._get_headers(config),
                json=payload,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

    @staticmethod
    def _ref_params(config: SyncConfig) -> Optional[Dict[str, str]]:
        return {'ref': config.branch} if config.branch else None

    def test_connection(self, config: SyncConfig) -> SyncResult:
        """Check the repository is reachable; 200 and 404 both count."""
        try:
            response = self._request(config, 'GET', config.api_base_url)
        except TransportError as e:
            logger.warning(f"Connection test to {config.provider.value} failed: {e}")
            return SyncResult.fail("Connection failed", e)

        if response.status_code in (200, 404):
            logger.info(f"✅ {config.provider.value} reachable ({config.repository})")
            return SyncResult.ok("Connection successful")

        logger.warning(f"Connection test returned HTTP {response.status_code}")
        return SyncResult.fail("Connection failed", _describe_status(response))

    def download_file(self, config: SyncConfig) -> DownloadResult:
        """Fetch and decode the remote file.

        Returns:
            DownloadResult; a 404 is a well-formed ``not_found`` result
        """
        try:
            response = self._request(config, 'GET', config.contents_url, params=self._ref_params(config))
        except TransportError as e:
            return DownloadResult(success=False, message=f"Download failed: {e}")

        status = response.status_code
        if status == 404:
            logger.info(f"Remote file {config.file_path} does not exist yet")
            return DownloadResult(success=False, message="Remote file not found",
                                  not_found=True, status_code=status)

        if status != 200:
            return DownloadResult(success=False, message=f"Download failed: {_describe_status(response)}",
                                  status_code=status)

        try:
            file_info = response.json()
            if not isinstance(file_info, dict):
                raise ValueError(f"{config.file_path} is not a file")
            content = base64.b64decode(file_info.get('content') or '').decode('utf-8')
        except (ValueError, binascii.Error, UnicodeDecodeError) as e:
            return DownloadResult(success=False, message=f"Download failed: undecodable response ({e})",
                                  status_code=status)

        logger.debug(f"Downloaded {len(content)} characters from {config.file_path}")
        return DownloadResult(success=True, message="File downloaded", content=content,
                              sha=file_info.get('sha'), status_code=status)

    def get_revision(self, config: SyncConfig) -> Optional[str]:
        """Current revision token of the remote file, or None if unknown."""
        result = self.download_file(config)
        return result.sha if result.success else None

    def upload_file(self, config: SyncConfig, content: str,
                    sha: Optional[str] = None,
                    commit_message: Optional[str] = None) -> SyncResult:
        """Write the remote file.

        Args:
            config: Sync configuration
            content: UTF-8 text to store
            sha: Revision token the content was based on; discovered with a
                GET when omitted (absent on first upload)
            commit_message: Commit message for the write

        Returns:
            SyncResult; 200 and 201 are success
        """
        if sha is None:
            sha = self.get_revision(config)

        payload: Dict[str, Any] = {
            'message': commit_message or f"Update prompt hub data - {now_iso()}",
            'content': base64.b64encode(content.encode('utf-8')).decode('ascii'),
        }
        if sha:
            payload['sha'] = sha
        if config.branch:
            payload['branch'] = config.branch

        try:
            response = self._request(config, 'PUT', config.contents_url, payload=payload)
        except TransportError as e:
            logger.error(f"Upload to {config.provider.value} failed: {e}")
            return SyncResult.fail("Upload failed", e)

        if response.status_code in (200, 201):
            logger.info(f"☁️ Uploaded {config.file_path} to {config.repository}")
            return SyncResult.ok("File uploaded")

        logger.error(f"Upload rejected: HTTP {response.status_code}")
        return SyncResult.fail("Upload failed", _describe_status(response))

    def close(self) -> None:
        self.session.close()


def _describe_status(response: requests.Response) -> str:
    """'HTTP <status>' plus the API's own message when it sends one."""
    description = f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return description
    if isinstance(body, dict) and isinstance(body.get('message'), str) and body['message']:
        description = f"{description} ({body['message']})"
    return description
