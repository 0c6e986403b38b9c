"""
This module manages the team wiki.

It defines the `WikiManager` class, which is responsible for:
- Loading the wiki pages from the remote store.
- Creating pages with placeholder content, stamped with their creator.
- Saving edits, always refreshing the page's `lastModified` timestamp.
- Deleting pages (their creator or the administrator only).
- Appending comments, which are stamped here and sent as the full comment list.
"""
# designlog/wiki.py

import logging
import time

from designlog.errors import DesignLogError, NotAuthorized, NotFound
from designlog.models import Comment, utc_now_iso
from designlog.notifications import Notifier
from designlog.projection import search_wiki
from designlog.sequencing import RecordSequencer

logger = logging.getLogger(__name__)

DEFAULT_PAGE_TITLE = "New Page"
DEFAULT_PAGE_CONTENT = "Start writing your wiki content here..."
EDITABLE_PAGE_FIELDS = ("title", "content", "category", "images")


class WikiManager:
    """Holds the wiki pages and applies edits through the remote store."""

    def __init__(self, api, notifier=None, sequencer=None):
        self.api = api
        self.notifier = notifier or Notifier()
        self.sequencer = sequencer or RecordSequencer()
        self.pages = []
        self.loading = False

    def get(self, page_id):
        for page in self.pages:
            if page.id == page_id:
                return page
        return None

    def search(self, query) -> list:
        return search_wiki(self.pages, query)

    def _fail(self, message, error):
        logger.error("%s: %s", message, error)
        self.notifier.error(f"{message}: {error.message}")

    def _replace(self, page):
        self.pages = [page if p.id == page.id else p for p in self.pages]

    def _require_page(self, page_id):
        page = self.get(page_id)
        if page is None:
            raise NotFound("Wiki page not found")
        return page

    async def load(self) -> list:
        """Fetches every wiki page and replaces the local list."""
        self.loading = True
        try:
            self.pages = await self.api.wiki.get_pages()
        except DesignLogError as exc:
            self._fail("Failed to load wiki pages", exc)
            raise
        finally:
            self.loading = False
        return self.pages

    async def create_page(self, author, title=None, content=None, category=""):
        """Creates a page owned by `author` and puts it first in the list.

        Args:
            author (User): The logged-in user creating the page.
            title (str, optional): The title; a placeholder is used when omitted.
            content (str, optional): The body; a placeholder is used when omitted.
            category (str): An optional category.

        Returns:
            WikiPage: The page as stored.
        """
        if author is None:
            raise NotAuthorized("Log in to create wiki pages.")
        page_data = {
            "title": (title or "").strip() or DEFAULT_PAGE_TITLE,
            "content": content or DEFAULT_PAGE_CONTENT,
            "category": category or "",
            "images": [],
            "comments": [],
            "createdBy": author.id,
            "createdByName": author.name,
            "lastModified": utc_now_iso(),
        }
        try:
            page = await self.api.wiki.create_page(page_data)
        except DesignLogError as exc:
            self._fail("Failed to create page", exc)
            raise
        self.pages.insert(0, page)
        self.notifier.success("New page created")
        return page

    async def save_page(self, page_id, updates, image=None):
        """Saves edits to a page. Unknown fields in `updates` are ignored.

        Images are removed by sending a shorter `images` list. An attached image is
        uploaded first and appended to the page's images.

        Args:
            page_id (str): The page to save.
            updates (dict): The edited fields, using wire field names.
            image (ImageUpload, optional): An image to add to the page.

        Returns:
            WikiPage: The page as stored, with a fresh `last_modified`.
        """
        payload = {field: updates[field] for field in EDITABLE_PAGE_FIELDS if field in updates}
        if "title" in payload and not (payload["title"] or "").strip():
            raise ValueError("A wiki page needs a title.")
        payload["lastModified"] = utc_now_iso()
        async with self.sequencer.guard(page_id, "update"):
            current = self._require_page(page_id)
            try:
                if image is not None:
                    images = list(payload.get("images", current.images))
                    images.append(await self.api.logs.upload_image(image))
                    payload["images"] = images
                page = await self.api.wiki.update_page(page_id, payload)
            except DesignLogError as exc:
                self._fail("Failed to save page", exc)
                raise
            self._replace(page)
        self.notifier.success("Page saved successfully")
        return page

    async def delete_page(self, page_id, actor):
        """Deletes a page. Only its creator or the administrator may do so."""
        page = self._require_page(page_id)
        if actor is None or not (actor.is_admin or page.created_by == actor.id):
            raise NotAuthorized("Only the page's author or the administrator can delete it.")
        async with self.sequencer.guard(page_id, "delete"):
            try:
                await self.api.wiki.delete_page(page_id)
            except DesignLogError as exc:
                self._fail("Failed to delete page", exc)
                raise
            self.pages = [p for p in self.pages if p.id != page_id]
        self.notifier.success("Page deleted")

    async def add_comment(self, page_id, author, text):
        """Appends a comment to a page.

        The store keeps wiki comments as part of the page, so the whole list is sent.
        Comments on the same page are serialized so none of them is lost.
        """
        if author is None:
            raise NotAuthorized("Log in to comment.")
        text = (text or "").strip()
        if not text:
            raise ValueError("A comment cannot be empty.")
        async with self.sequencer.guard(page_id, "comment"):
            page = self._require_page(page_id)
            comment = Comment(
                id=str(time.time_ns()),
                text=text,
                author=author.name,
                author_id=author.id,
                date=utc_now_iso(),
            )
            comments = [c.to_dict() for c in page.comments] + [comment.to_dict()]
            try:
                updated = await self.api.wiki.update_page(page_id, {"comments": comments})
            except DesignLogError as exc:
                self._fail("Failed to add comment", exc)
                raise
            self._replace(updated)
        self.notifier.success("Comment added")
        return updated
