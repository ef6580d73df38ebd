"""
Wikimedia Commons image lookup.
Resolves a `File:` name produced by the model to a direct image URL.
"""
import httpx
from config import Config
from utils.errors import ImageResolutionFailure
from utils.logger import app_logger
from utils.http_client import HTTPClientManager


class WikimediaService:
    """Service for resolving Wikimedia Commons file names."""

    @staticmethod
    async def get_image_url(filename: str) -> str:
        """
        Get the direct URL of a Wikimedia Commons file.

        Args:
            filename: File title, e.g. "File:Salt_Lake_Temple.jpg"

        Returns:
            Direct image URL

        Raises:
            ImageResolutionFailure: when the request fails or the file does not exist
        """
        client = HTTPClientManager.get_lookup_client()
        try:
            response = await client.get(
                Config.WIKIMEDIA_API_URL,
                params={
                    "action": "query",
                    "titles": filename,
                    "prop": "imageinfo",
                    "iiprop": "url",
                    "format": "json",
                    "origin": "*",
                },
                timeout=Config.LOOKUP_TIMEOUT
            )
        except httpx.HTTPError as e:
            raise ImageResolutionFailure(f"Wikimedia API request failed: {e}") from e

        if response.status_code != 200:
            raise ImageResolutionFailure(f"Wikimedia API request failed with status {response.status_code}")

        pages = response.json().get("query", {}).get("pages", {})
        if not pages:
            raise ImageResolutionFailure(f"Empty Wikimedia API response for {filename}")

        page_id, page = next(iter(pages.items()))
        if page_id == "-1":
            raise ImageResolutionFailure(f"File not found on Wikimedia Commons: {filename}")

        image_info = page.get("imageinfo") or []
        image_url = image_info[0].get("url") if image_info else None
        if not image_url:
            raise ImageResolutionFailure(f"Could not extract image URL from Wikimedia API response for {filename}")

        app_logger.info(f"Wikimedia file {filename} resolved")
        return image_url
