"""Fetch stage: enrich raw items with type-specific content."""

import asyncio
import base64
import binascii
import re
from typing import Any, Awaitable, Callable, Optional, Sequence
from urllib.parse import urlparse
from xml.etree import ElementTree as ET

import httpx
from bs4 import BeautifulSoup

from research_pipeline.core import (
    FetchedItem,
    FetchOpts,
    ItemError,
    ItemType,
    Mode,
    RawItem,
    WorkerPool,
)
from research_pipeline.errors import BatchCancelledError, FetchError
from research_pipeline.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "research-pipeline/0.1"
MAX_URL_BODY_BYTES = 1024 * 1024
ATOM_NS = {"atom": "http://www.w3.org/2005/Atom"}
ARXIV_ID_RE = re.compile(r"(\d{4}\.\d{4,5})(v\d+)?")

Handler = Callable[[httpx.AsyncClient, RawItem, FetchOpts], Awaitable[FetchedItem]]


class Fetcher:
    """Retrieve README text, story bodies and abstracts for raw items."""

    def __init__(
        self,
        parallelism: int = 5,
        github_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        github_api_base: str = "https://api.github.com",
        arxiv_api_base: str = "http://export.arxiv.org/api",
    ) -> None:
        self.parallelism = parallelism if parallelism > 0 else 5
        self.github_token = github_token
        self.transport = transport
        self.github_api_base = github_api_base.rstrip("/")
        self.arxiv_api_base = arxiv_api_base.rstrip("/")
        self._handlers: dict[ItemType, Handler] = {
            ItemType.GITHUB_REPO: self._fetch_github_repo,
            ItemType.HN_STORY: self._fetch_hn_story,
            ItemType.ARXIV_PAPER: self._fetch_arxiv_paper,
            ItemType.OPENALEX_WORK: self._fetch_openalex_work,
            ItemType.OTHER: self._pass_through,
        }

    @property
    def handled_types(self) -> set[ItemType]:
        return set(self._handlers)

    async def fetch_batch(
        self,
        items: Sequence[RawItem],
        opts: Optional[FetchOpts] = None,
        cancel_event: Optional[asyncio.Event] = None,
        errors: Optional[list[ItemError]] = None,
    ) -> list[FetchedItem]:
        """Fetch content for every item with bounded parallelism.

        Always returns one ``FetchedItem`` per input item, in input order.
        Failures are reported per item through ``fetch_success`` and
        ``fetch_error`` (and appended to ``errors`` when given); the batch
        itself never fails.
        """
        if not items:
            return []
        opts = opts or FetchOpts()
        pool = WorkerPool(self.parallelism)

        logger.info("fetch_batch_started", items=len(items), mode=opts.mode.value, parallelism=self.parallelism)

        async with self._client(opts) as client:

            async def work(item: RawItem) -> FetchedItem:
                return await self.fetch_one(client, item, opts)

            results = await pool.map(items, work, self._cancelled, cancel_event)

        failed = 0
        for index, fetched in enumerate(results):
            if fetched.fetch_success:
                continue
            failed += 1
            logger.warning("fetch_item_failed", index=index, item_id=fetched.raw.id, error=fetched.fetch_error)
            if errors is not None:
                errors.append(ItemError(index, fetched.raw.id, "fetch", fetched.fetch_error))

        logger.info("fetch_batch_completed", items=len(results), failed=failed)
        return results

    async def fetch_one(self, client: httpx.AsyncClient, item: RawItem, opts: FetchOpts) -> FetchedItem:
        """Fetch a single item; errors become an unsuccessful ``FetchedItem``."""
        if opts.mode is Mode.QUICK:
            return FetchedItem(raw=item, fetch_success=True)

        handler = self._handlers[item.type]
        try:
            return await handler(client, item, opts)
        except FetchError as e:
            return self._failed(item, e.message)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return self._failed(item, f"{type(e).__name__}: {e}")

    async def fetch_url(self, url: str, timeout: float = 30.0) -> str:
        """Fetch a URL and return its body (HTML reduced to visible text).

        Raises:
            FetchError: On non-200 responses or transport errors.
        """
        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, transport=self.transport
        ) as client:
            try:
                response = await client.get(url, headers={"User-Agent": USER_AGENT})
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise FetchError(f"request failed: {e}", details={"url": url}) from e

        if response.status_code != 200:
            raise FetchError(f"status {response.status_code}", details={"url": url})

        body = response.content[:MAX_URL_BODY_BYTES].decode(response.encoding or "utf-8", errors="replace")
        if "html" in response.headers.get("content-type", ""):
            soup = BeautifulSoup(body, "html.parser")
            for tag in soup(["script", "style", "noscript"]):
                tag.decompose()
            return soup.get_text(separator="\n", strip=True)
        return body

    def _client(self, opts: FetchOpts) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=opts.timeout,
            follow_redirects=True,
            transport=self.transport,
        )

    @staticmethod
    def _cancelled(item: RawItem, error: BatchCancelledError) -> FetchedItem:
        return FetchedItem(raw=item, fetch_success=False, fetch_error=error.message)

    @staticmethod
    def _failed(item: RawItem, message: str) -> FetchedItem:
        return FetchedItem(raw=item, fetch_success=False, fetch_error=message)

    async def _pass_through(self, client: httpx.AsyncClient, item: RawItem, opts: FetchOpts) -> FetchedItem:
        return FetchedItem(raw=item, fetch_success=True)

    async def _fetch_github_repo(self, client: httpx.AsyncClient, item: RawItem, opts: FetchOpts) -> FetchedItem:
        """Fetch and decode the repository README."""
        if not opts.fetch_readme:
            return FetchedItem(raw=item, fetch_success=True)

        owner, name = self.parse_github_repo(item)
        if not owner or not name:
            raise FetchError("could not determine owner/repo")

        response = await client.get(
            f"{self.github_api_base}/repos/{owner}/{name}/readme",
            headers=self._get_github_headers(),
        )
        if response.status_code != 200:
            raise FetchError(f"status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise FetchError(f"invalid README response: {e}") from e
        if not isinstance(data, dict):
            raise FetchError("invalid README response: expected an object")

        content = data.get("content") or ""
        if not isinstance(content, str):
            raise FetchError("invalid README response: content is not a string")
        if data.get("encoding") == "base64":
            try:
                content = base64.b64decode(content.replace("\n", ""), validate=True).decode("utf-8", errors="replace")
            except (binascii.Error, ValueError) as e:
                raise FetchError(f"failed to decode README: {e}") from e

        extra_data = {
            key: data[key]
            for key in ("path", "size", "html_url")
            if data.get(key) is not None
        }
        return FetchedItem(
            raw=item,
            content=content,
            content_type="readme",
            extra_data=extra_data,
            fetch_success=True,
        )

    async def _fetch_hn_story(self, client: httpx.AsyncClient, item: RawItem, opts: FetchOpts) -> FetchedItem:
        # The search response already carries the story text.
        story_text = item.metadata.get("story_text")
        if isinstance(story_text, str) and story_text:
            return FetchedItem(raw=item, content=story_text, content_type="story_text", fetch_success=True)
        return FetchedItem(raw=item, fetch_success=True)

    async def _fetch_arxiv_paper(self, client: httpx.AsyncClient, item: RawItem, opts: FetchOpts) -> FetchedItem:
        abstract = item.metadata.get("abstract")
        if isinstance(abstract, str) and abstract:
            return FetchedItem(raw=item, content=abstract, content_type="abstract", fetch_success=True)

        arxiv_id = self.parse_arxiv_id(item)
        if not opts.fetch_docs or not arxiv_id:
            return FetchedItem(raw=item, fetch_success=True)

        response = await client.get(
            f"{self.arxiv_api_base}/query",
            params={"id_list": arxiv_id},
            headers={"User-Agent": USER_AGENT},
        )
        if response.status_code != 200:
            raise FetchError(f"status {response.status_code}")

        summary = self._parse_arxiv_summary(response.text)
        return FetchedItem(
            raw=item,
            content=summary,
            content_type="abstract" if summary else "",
            extra_data={"abstract_source": "arxiv_api", "arxiv_id": arxiv_id},
            fetch_success=True,
        )

    async def _fetch_openalex_work(self, client: httpx.AsyncClient, item: RawItem, opts: FetchOpts) -> FetchedItem:
        abstract = item.metadata.get("abstract")
        if isinstance(abstract, str) and abstract:
            return FetchedItem(raw=item, content=abstract, content_type="abstract", fetch_success=True)

        inverted_index = item.metadata.get("abstract_inverted_index")
        if isinstance(inverted_index, dict) and inverted_index:
            return FetchedItem(
                raw=item,
                content=rebuild_inverted_abstract(inverted_index),
                content_type="abstract",
                extra_data={"abstract_source": "inverted_index"},
                fetch_success=True,
            )
        return FetchedItem(raw=item, fetch_success=True)

    @staticmethod
    def parse_github_repo(item: RawItem) -> tuple[str, str]:
        """Resolve owner and repository name from metadata or the URL."""
        owner = item.metadata.get("owner")
        name = item.metadata.get("name")
        if isinstance(owner, str) and owner and isinstance(name, str) and name:
            return owner, name

        parsed = urlparse(item.url)
        if parsed.netloc.lower() not in ("github.com", "www.github.com"):
            return "", ""
        parts = [part for part in parsed.path.split("/") if part]
        if len(parts) < 2:
            return "", ""
        return parts[0], parts[1].removesuffix(".git")

    @staticmethod
    def parse_arxiv_id(item: RawItem) -> str:
        arxiv_id = item.metadata.get("arxiv_id")
        if isinstance(arxiv_id, str) and arxiv_id:
            return arxiv_id
        match = ARXIV_ID_RE.search(item.url)
        return match.group(0) if match else ""

    @staticmethod
    def _parse_arxiv_summary(xml_content: str) -> str:
        """Read the first entry summary from an arXiv Atom response."""
        try:
            root = ET.fromstring(xml_content)
        except ET.ParseError as e:
            raise FetchError(f"invalid arXiv response: {e}") from e

        summary = root.find("atom:entry/atom:summary", ATOM_NS)
        if summary is None or not summary.text:
            return ""
        return " ".join(summary.text.split())

    def _get_github_headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }

        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"

        return headers


def rebuild_inverted_abstract(inverted_index: dict[str, Any]) -> str:
    """Rebuild plain text from an OpenAlex ``abstract_inverted_index``."""
    positions: dict[int, str] = {}
    for word, indexes in inverted_index.items():
        if not isinstance(indexes, list):
            continue
        for index in indexes:
            if isinstance(index, int):
                positions[index] = word
    return " ".join(positions[index] for index in sorted(positions))
