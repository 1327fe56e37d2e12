import base64
import logging
import os
import tempfile
import threading
import xmlrpc.client
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse
from xml.etree import ElementTree

import requests

from .. import __version__
from ..config import SiteConfig

logger = logging.getLogger(__name__)

USER_AGENT = f"entity-sync/{__version__}"


class WordPressClient:
    """XML-RPC client for one WordPress site.

    Every ``wp.*`` call is prefixed with the blog id and credentials of
    the configured site. Sessions are thread-local.
    """

    def __init__(self, config: SiteConfig):
        self.config = config
        self._thread_local = threading.local()
        self.rpc_url = self._get_rpc_url()

    @property
    def session(self) -> requests.Session:
        """Session of the current thread."""
        return self._get_session()

    def _get_rpc_url(self) -> str:
        return f"{self.config.url.rstrip('/')}/xmlrpc.php"

    def _get_session(self) -> requests.Session:
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = not self.config.insecure
        session.headers["User-Agent"] = USER_AGENT
        return session

    def close(self) -> None:
        """Close the current thread's session, if one was opened."""
        session = getattr(self._thread_local, "session", None)
        if session is not None:
            session.close()
            del self._thread_local.session

    def _rpc_request(self, method: str, *params):
        """
        POST an XML-RPC call and return the parsed response value.

        Raises:
            xmlrpc.client.Fault: If the server answers with a fault.
            requests.RequestException: On transport or HTTP errors.
        """
        payload = xmlrpc.client.dumps(params, methodname=method)

        response = self._get_session().post(
            self.rpc_url,
            data=payload.encode("utf-8"),
            headers={"Content-Type": "text/xml"},
            timeout=(10, 60),
        )
        response.raise_for_status()

        tree = ElementTree.fromstring(response.content)
        fault = tree.find("./fault")
        if fault is not None:
            fault_value = self._parse_xmlrpc_value(fault.find("./value"))
            if not isinstance(fault_value, dict):
                fault_value = {}
            raise xmlrpc.client.Fault(
                int(fault_value.get("faultCode") or 0),
                fault_value.get("faultString") or "Unknown error",
            )

        value_element = tree.find("./params/param/value")
        if value_element is None:
            return None
        return self._parse_xmlrpc_value(value_element)

    def _call(self, method: str, *params):
        """Call a ``wp.*`` method with blog id and credentials prepended."""
        return self._rpc_request(
            method,
            self.config.blog_id,
            self.config.username,
            self.config.password,
            *params,
        )

    def _parse_xmlrpc_value(self, element):
        """
        Recursively parse an XML-RPC <value> element.
        """
        if len(element) == 0:
            # Untyped values are strings in XML-RPC
            return element.text or ""

        data_type = element[0].tag
        data_value = element[0].text

        match data_type:
            case "array":
                data_element = element.find("./array/data")
                if data_element is not None:
                    return [
                        self._parse_xmlrpc_value(v)
                        for v in data_element.findall("value")
                    ]
                return []
            case "struct":
                result = {}
                for member in element.findall("./struct/member"):
                    name = member.find("name").text or ""
                    result[name] = self._parse_xmlrpc_value(
                        member.find("value")
                    )
                return result
            case "int" | "i4" | "i8":
                return int(data_value)
            case "boolean":
                return data_value == "1"
            case "string":
                return data_value or ""
            case "double":
                return float(data_value)
            case "base64":
                return base64.b64decode(data_value or "")
            case "nil":
                return None
            case _:
                return data_value

    def validate_connection(self) -> str:
        """
        Check credentials and return the WordPress version string.
        """
        options = self._call("wp.getOptions", ["software_version"])
        version = options.get("software_version", {}) if options else {}
        return str(version.get("value", "")) if version else ""

    # Posts

    def get_posts(
        self, filter: dict[str, Any], fields: list[str] | None = None
    ) -> list[dict[str, Any]]:
        """
        List posts matching a wp.getPosts filter.

        Args:
            filter: Keys such as post_type, post_status, number, offset, s
            fields: Optional list of fields to return (default: all)

        Returns:
            List of post structs
        """
        if fields is None:
            return self._call("wp.getPosts", filter)
        return self._call("wp.getPosts", filter, fields)

    def get_post(
        self, post_id: str, fields: list[str] | None = None
    ) -> dict[str, Any]:
        """
        Get a single post struct.

        Raises:
            xmlrpc.client.Fault: 404 if the post does not exist
        """
        if fields is None:
            return self._call("wp.getPost", int(post_id))
        return self._call("wp.getPost", int(post_id), fields)

    def new_post(self, content: dict[str, Any]) -> str:
        """
        Create a post and return its id.

        Args:
            content: wp.newPost content struct (post_type, post_status,
                post_title, post_content, custom_fields, terms, ...)
        """
        return str(self._call("wp.newPost", content))

    def edit_post(self, post_id: str, content: dict[str, Any]) -> bool:
        """
        Edit a post.

        custom_fields entries without an ``id`` are added as new meta
        rows; ``terms`` replaces the term set of each taxonomy given.
        """
        return bool(self._call("wp.editPost", int(post_id), content))

    def get_post_type(
        self, post_type: str, fields: list[str] | None = None
    ) -> dict[str, Any]:
        """
        Get a post type definition.

        Raises:
            xmlrpc.client.Fault: 403 if the post type is not registered
        """
        if fields is None:
            return self._call("wp.getPostType", post_type)
        return self._call("wp.getPostType", post_type, fields)

    def get_post_types(
        self, filter: dict[str, Any] | None = None
    ) -> dict[str, dict[str, Any]]:
        """
        List post types the user can edit, keyed by name.

        Args:
            filter: Optional get_post_types() arguments. An empty filter
                is sent explicitly so non-public types are listed too.
        """
        return self._call("wp.getPostTypes", filter or {}, ["name"]) or {}

    # Taxonomies

    def get_terms(
        self, taxonomy: str, filter: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """
        List terms of a taxonomy.

        Args:
            taxonomy: Taxonomy name (e.g. "category", "genre")
            filter: Optional keys such as number, offset, search, hide_empty
        """
        return self._call("wp.getTerms", taxonomy, filter or {})

    def new_term(self, content: dict[str, Any]) -> str:
        """
        Create a term and return its id.

        Args:
            content: Struct with name, taxonomy, slug, description
        """
        return str(self._call("wp.newTerm", content))

    # Media

    def get_media_library(
        self, filter: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """
        List media attachments.

        Returns:
            List of structs with attachment_id, link, title, parent, ...
        """
        return self._call("wp.getMediaLibrary", filter or {})

    def upload_file(
        self,
        name: str,
        mime_type: str,
        bits: bytes,
        post_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Upload a file into the media library.

        Returns:
            Struct with id (or attachment_id), file, url, type
        """
        data: dict[str, Any] = {
            "name": name,
            "type": mime_type,
            "bits": xmlrpc.client.Binary(bits),
            "overwrite": False,
        }
        if post_id is not None:
            data["post_id"] = int(post_id)
        return self._call("wp.uploadFile", data)

    def download_file(self, url: str, timeout: float) -> Path:
        """
        Stream a remote resource into a temporary file.

        The caller owns the returned file and must delete it.

        Raises:
            requests.RequestException: On transport or HTTP errors
        """
        suffix = Path(unquote(urlparse(url).path)).suffix
        with requests.get(
            url,
            stream=True,
            timeout=timeout,
            verify=not self.config.insecure,
            headers={"User-Agent": USER_AGENT},
        ) as response:
            response.raise_for_status()
            fd, tmp_path = tempfile.mkstemp(
                prefix="entity-sync-", suffix=suffix
            )
            try:
                with os.fdopen(fd, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=65536):
                        fh.write(chunk)
            except BaseException:
                # No partial download survives a failed stream or write
                Path(tmp_path).unlink(missing_ok=True)
                raise
        logger.debug("Downloaded %s to %s", url, tmp_path)
        return Path(tmp_path)
