"""
Changefeed Manager - Manages change-capture jobs via the capture service open API
"""

import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests
from django.conf import settings

from replicator.exceptions import CaptureSetupError
from replicator.logging_utils import log_changefeed_created
from .changefeed_templates import build_changefeed_config, build_sink_uri, generate_changefeed_id

logger = logging.getLogger(__name__)


class ChangefeedException(CaptureSetupError):
    """Base exception for changefeed operations"""
    pass


class ChangefeedCreationException(ChangefeedException):
    """Raised when changefeed creation fails"""
    pass


class ChangefeedManager:
    """
    Manager class for change-capture service operations

    Handles:
    - Checking service health
    - Looking up changefeeds
    - Creating changefeeds (idempotently)
    """

    def __init__(self, cdc_host: Optional[str] = None, cdc_port: Optional[int] = None):
        """Initialize manager with configuration from settings, overridable per run"""
        changefeed_config = getattr(settings, 'CHANGEFEED_CONFIG', {})

        self.cdc_host = cdc_host or changefeed_config.get('CDC_HOST', '127.0.0.1')
        self.cdc_port = cdc_port or changefeed_config.get('CDC_PORT', 8300)
        self.timeout = changefeed_config.get('REQUEST_TIMEOUT', 30)

        # API endpoints
        self.base_url = f"http://{self.cdc_host}:{self.cdc_port}"
        self.changefeeds_url = f"{self.base_url}/api/v2/changefeeds"

        logger.info(f"ChangefeedManager initialized with URL: {self.base_url}")

    def _make_request(
        self,
        method: str,
        url: str,
        data: Optional[Dict] = None,
    ) -> Tuple[bool, Optional[Dict], Optional[str]]:
        """
        Make HTTP request to the capture service API

        Args:
            method: HTTP method (GET, POST)
            url: Full URL
            data: Request body data

        Returns:
            Tuple[bool, Optional[Dict], Optional[str]]: (success, response_data, error_message)
        """
        try:
            headers = {'Content-Type': 'application/json'}

            if method == 'GET':
                response = requests.get(url, headers=headers, timeout=self.timeout)
            elif method == 'POST':
                response = requests.post(url, headers=headers, json=data, timeout=self.timeout)
            else:
                return False, None, f"Unsupported HTTP method: {method}"
            logger.debug(f"method: {method}, url: {url}")

            if response.status_code in [200, 201, 202, 204]:
                if response.status_code == 204 or not response.text:
                    return True, {}, None
                try:
                    return True, response.json(), None
                except ValueError:
                    return True, {}, None

            error_data = response.text
            try:
                error_json = response.json()
                error_message = error_json.get('error_msg') or error_json.get('message') or error_data
                if error_json.get('error_code'):
                    error_message = f"{error_json['error_code']}: {error_message}"
            except (ValueError, AttributeError):
                error_message = error_data

            if response.status_code == 404:
                logger.debug(f"Resource not found: {method} {url}")
            else:
                logger.error(f"Request failed: {method} {url} - Status: {response.status_code} - {error_message}")

            return False, None, f"HTTP {response.status_code}: {error_message}"

        except requests.exceptions.Timeout:
            error_msg = f"Request timeout after {self.timeout} seconds"
            logger.error(error_msg)
            return False, None, error_msg
        except requests.exceptions.ConnectionError as e:
            error_msg = f"Connection error: {str(e)}"
            logger.error(error_msg)
            return False, None, error_msg
        except requests.exceptions.RequestException as e:
            error_msg = f"Request failed: {str(e)}"
            logger.error(error_msg)
            return False, None, error_msg

    def check_health(self) -> Tuple[bool, Optional[str]]:
        """
        Check if the capture service is reachable

        Returns:
            Tuple[bool, Optional[str]]: (is_healthy, error_message)
        """
        success, _, error = self._make_request('GET', f"{self.base_url}/api/v2/health")
        if success:
            logger.info("Capture service is healthy")
            return True, None
        return False, error

    def get_changefeed(self, changefeed_id: str) -> Optional[Dict]:
        """
        Get changefeed details

        Returns:
            Optional[Dict]: Changefeed data, or None if it does not exist

        Raises:
            ChangefeedException: if the lookup fails for another reason
        """
        success, data, error = self._make_request('GET', f"{self.changefeeds_url}/{changefeed_id}")
        if success:
            logger.debug(f"Changefeed {changefeed_id} state: {data.get('state', 'UNKNOWN')}")
            return data
        if error and (error.startswith('HTTP 404') or 'ErrChangeFeedNotExists' in error):
            logger.debug(f"Changefeed {changefeed_id} not found")
            return None
        raise ChangefeedException(f"Failed to get changefeed {changefeed_id}: {error}")

    def get_start_ts(self, table_name: str) -> Optional[int]:
        """Start position of the table's changefeed, None if it does not exist or has none"""
        changefeed_id = generate_changefeed_id(table_name)
        changefeed = self.get_changefeed(changefeed_id)
        if not changefeed or not changefeed.get('start_ts'):
            return None
        return int(changefeed['start_ts'])

    def create_changefeed(
        self,
        table_name: str,
        increment_uri: str,
        start_ts: Optional[int] = None,
        flush_interval: int = 60,
        file_size: int = 64 * 1024 * 1024,
        storage_options: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Create the changefeed replicating one table into the workspace

        An existing changefeed with the same ID is left untouched, so a
        resumed run never creates a duplicate.

        Args:
            table_name: Fully qualified source table, "<schema>.<table>"
            increment_uri: Workspace location for the change log
            start_ts: Consistency point to start from; None lets the service choose
            flush_interval: Flush interval in seconds
            file_size: File size threshold in bytes
            storage_options: Object storage credentials

        Returns:
            str: Changefeed ID

        Raises:
            ChangefeedCreationException: if the service rejects the changefeed
        """
        changefeed_id = generate_changefeed_id(table_name)

        existing = self.get_changefeed(changefeed_id)
        if existing is not None:
            logger.warning(f"Changefeed {changefeed_id} already exists, state: {existing.get('state', 'UNKNOWN')}")
            return changefeed_id

        sink_uri = build_sink_uri(increment_uri, flush_interval, file_size, storage_options)
        request_body = build_changefeed_config(table_name, sink_uri, start_ts)

        start_time = time.time()
        success, data, error = self._make_request('POST', self.changefeeds_url, request_body)
        if not success:
            raise ChangefeedCreationException(f"Failed to create changefeed {changefeed_id}: {error}")

        log_changefeed_created(
            changefeed_id,
            increment_uri,
            start_ts=start_ts,
            duration=time.time() - start_time,
        )
        logger.info(f"Successfully created changefeed: {changefeed_id}")
        return changefeed_id
