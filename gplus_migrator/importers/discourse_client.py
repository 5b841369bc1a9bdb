"""
Discourse REST API client for the Google+ migrator.

This module provides a client wrapper for the Discourse REST API, handling
authentication, retries, rate limiting, and the operations the importer
needs: posts, topics, uploads, users and categories.
"""

import logging
import mimetypes
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import DiscourseApiError

logger = logging.getLogger('gplus_migrator.importers.discourse_client')


class DiscourseClient:
    """Discourse REST API client with retry logic and rate limiting."""

    DEFAULT_TIMEOUT = 30
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_RETRY_BACKOFF = 0.5
    DEFAULT_RATE_LIMIT = 0.0

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_username: str = 'system',
        verify_ssl: bool = True,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_factor: float = DEFAULT_RETRY_BACKOFF,
        rate_limit: float = DEFAULT_RATE_LIMIT
    ):
        """
        Initialize Discourse client.

        Args:
            base_url: Discourse instance base URL
            api_key: Admin API key (all-users scope)
            api_username: Default user the API acts as
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries for failed requests
            retry_backoff_factor: Backoff factor for retries
            rate_limit: Minimum seconds between requests (0 = no limit)
        """
        self.base_url = base_url.rstrip('/')
        self.api_username = api_username
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.rate_limit = rate_limit
        self._last_request_time = 0.0

        self.session = requests.Session()
        self.session.headers.update({
            'Api-Key': api_key,
            'Api-Username': api_username,
            'Accept': 'application/json'
        })

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[500, 502, 503, 504],
            raise_on_status=False
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

        logger.debug(f"Initialized Discourse client for {base_url}")

    def _handle_rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        if self.rate_limit <= 0:
            return

        time_since_last = time.time() - self._last_request_time
        if time_since_last < self.rate_limit:
            sleep_time = self.rate_limit - time_since_last
            logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
            time.sleep(sleep_time)

        self._last_request_time = time.time()

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        act_as: Optional[str] = None,
        allow_not_found: bool = False
    ) -> Optional[Dict[str, Any]]:
        """
        Make HTTP request with error handling and retries.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: API endpoint path
            params: Query parameters
            json: JSON payload
            data: Form payload
            files: Files for multipart uploads
            act_as: Username to act as instead of the default API user
            allow_not_found: Return None instead of raising on 404

        Returns:
            JSON response as dictionary

        Raises:
            DiscourseApiError: For HTTP errors
        """
        self._handle_rate_limit()

        url = f"{self.base_url}{endpoint}"
        headers = {'Api-Username': act_as} if act_as else None

        logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                json=json,
                data=data,
                files=files,
                verify=self.verify_ssl,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Request failed: {method} {url} - {str(e)}")
            raise DiscourseApiError(f"{method} {endpoint} failed: {e}")

        logger.debug(f"Response status: {response.status_code}")

        # Discourse throttles admin API use; honor Retry-After
        if response.status_code == 429:
            retry_after = response.headers.get('Retry-After', '1')
            try:
                wait_time = int(retry_after)
            except ValueError:
                wait_time = 1

            logger.warning(f"Rate limited (429). Retrying after {wait_time}s")
            time.sleep(wait_time)
            return self._make_request(
                method, endpoint, params=params, json=json, data=data,
                files=files, act_as=act_as, allow_not_found=allow_not_found
            )

        if response.status_code == 404 and allow_not_found:
            return None

        if response.status_code >= 400:
            logger.error(f"Response: {response.text}")
            raise DiscourseApiError(
                f"{method} {endpoint} returned {response.status_code}",
                status_code=response.status_code
            )

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # Posts and topics

    def create_post(
        self,
        raw: str,
        username: str,
        created_at: Optional[str] = None,
        title: Optional[str] = None,
        category_id: Optional[int] = None,
        tags: Optional[List[str]] = None,
        topic_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Create a topic (with title and category) or a reply (with topic id) as ``username``."""
        payload: Dict[str, Any] = {'raw': raw, 'skip_validations': True}
        if created_at:
            payload['created_at'] = created_at
        if topic_id is not None:
            payload['topic_id'] = topic_id
        else:
            payload['title'] = title
            payload['category'] = category_id
            if tags:
                payload['tags'] = tags
        return self._make_request('POST', '/posts.json', json=payload, act_as=username)

    def get_post(self, post_id: int) -> Optional[Dict[str, Any]]:
        return self._make_request(
            'GET', f'/posts/{post_id}.json', params={'include_raw': 'true'}, allow_not_found=True
        )

    def update_post(self, post_id: int, raw: str) -> Dict[str, Any]:
        payload = {'post': {'raw': raw, 'edit_reason': 'Google+ import update'}}
        return self._make_request('PUT', f'/posts/{post_id}.json', json=payload)

    def rebake_post(self, post_id: int) -> Dict[str, Any]:
        return self._make_request('PUT', f'/posts/{post_id}/rebake')

    # Uploads

    def upload_file(self, file_path: str, filename: str, username: Optional[str] = None) -> Dict[str, Any]:
        """
        Upload a file for use in posts.

        Args:
            file_path: Local path of the file
            filename: Name to store the upload under
            username: User to attribute the upload to

        Returns:
            Upload response with ``id``, ``url``, ``short_url`` and ``original_filename``

        Raises:
            OSError: If the local file cannot be read
            DiscourseApiError: If Discourse rejects the upload
        """
        mime_type, _ = mimetypes.guess_type(filename)
        # bytes, not a file object, so a retried request sends the whole file again
        content = Path(file_path).read_bytes()
        files = {'file': (filename, content, mime_type or 'application/octet-stream')}
        return self._make_request(
            'POST', '/uploads.json', data={'type': 'composer', 'synchronous': 'true'},
            files=files, act_as=username
        )

    # Users

    def create_user(self, name: str, username: str, email: str, password: str) -> Dict[str, Any]:
        payload = {
            'name': name,
            'username': username,
            'email': email,
            'password': password,
            'active': True,
            'approved': True
        }
        return self._make_request('POST', '/users.json', json=payload)

    def get_user(self, username: str) -> Optional[Dict[str, Any]]:
        response = self._make_request('GET', f'/u/{username}.json', allow_not_found=True)
        return response.get('user') if response else None

    def silence_user(self, user_id: int, reason: str) -> Dict[str, Any]:
        payload = {'reason': reason, 'silenced_till': '3000-01-01'}
        return self._make_request('PUT', f'/admin/users/{user_id}/silence.json', json=payload)

    # Categories

    def list_categories(self) -> List[Dict[str, Any]]:
        response = self._make_request(
            'GET', '/categories.json', params={'include_subcategories': 'true'}
        )
        categories = []
        for category in response.get('category_list', {}).get('categories', []):
            categories.append(category)
            categories.extend(category.get('subcategory_list') or [])
        return categories

    def create_category(self, name: str, parent_category_id: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'name': name, 'color': '0088CC', 'text_color': 'FFFFFF'}
        if parent_category_id is not None:
            payload['parent_category_id'] = parent_category_id
        response = self._make_request('POST', '/categories.json', json=payload)
        return response.get('category', response)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'DiscourseClient':
        """
        Create client from configuration dictionary.

        Args:
            config: Configuration dict with 'discourse' section

        Returns:
            Configured DiscourseClient instance
        """
        discourse_config = config.get('discourse', {})
        advanced_config = config.get('advanced', {})

        return cls(
            base_url=discourse_config.get('base_url'),
            api_key=discourse_config.get('api_key'),
            api_username=discourse_config.get('api_username', 'system'),
            verify_ssl=advanced_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', cls.DEFAULT_TIMEOUT),
            max_retries=advanced_config.get('max_retries', cls.DEFAULT_MAX_RETRIES),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', cls.DEFAULT_RETRY_BACKOFF),
            rate_limit=advanced_config.get('rate_limit', cls.DEFAULT_RATE_LIMIT)
        )


__all__ = ['DiscourseClient']
