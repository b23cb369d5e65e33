"""LinkedIn provider.

Posts, comments and reactions through the LinkedIn v2 REST API, plus the
LinkedIn OAuth tools.
"""

from typing import Any
from urllib.parse import quote

from shared.models import ProviderFamily, ToolParameter
from gateway.registry import OperationRegistry
from providers.base import ProviderClient, ProviderContext, access_token_parameter
from providers.oauth import LINKEDIN, register_oauth_tools

PROFILE_FAILURE = "Could not retrieve LinkedIn user profile. The access token may be invalid or expired."


def _share_body(author: str, text: str, category: str = "NONE", media: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    content: dict[str, Any] = {
        "shareCommentary": {"text": text},
        "shareMediaCategory": category,
    }
    if media:
        content["media"] = media
    return {
        "author": author,
        "lifecycleState": "PUBLISHED",
        "specificContent": {"com.linkedin.ugc.ShareContent": content},
        "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "CONNECTIONS"},
    }


class LinkedInClient(ProviderClient):
    """Client for https://api.linkedin.com/v2."""

    api_name = "LinkedIn"
    base_url = "https://api.linkedin.com/v2"
    extra_headers = {"X-Restli-Protocol-Version": "2.0.0"}

    async def get_profile(self) -> dict[str, Any]:
        data = await self._request("GET", "/userinfo", PROFILE_FAILURE)
        return {"id": data.get("sub"), "name": data.get("name")}

    async def _author_urn(self) -> str:
        profile = await self.get_profile()
        return f"urn:li:person:{profile['id']}"

    async def create_post(self, content: str) -> dict[str, Any]:
        author = await self._author_urn()
        data = await self._request(
            "POST", "/ugcPosts", "Could not create LinkedIn post.",
            json=_share_body(author, content),
            forbidden="Post creation forbidden. Check that the token carries the w_member_social scope.",
        )
        return {"id": data.get("id")}

    async def list_posts(self, count: int = 5) -> list[dict[str, Any]]:
        author = await self._author_urn()
        data = await self._request(
            "GET", "/ugcPosts", "Could not retrieve LinkedIn posts.",
            params={"q": "authors", "authors": f"List({author})", "count": count},
        )
        return data.get("elements", [])

    async def get_post_likes(self, post_id: str) -> dict[str, Any]:
        data = await self._request(
            "GET", f"/socialActions/{quote(post_id, safe='')}/likes",
            f"Could not get likes for post {post_id}.",
        )
        likes = data.get("elements", [])
        return {
            "post_id": post_id,
            "count": data.get("paging", {}).get("total", len(likes)),
            "likes": likes,
        }

    async def comment_on_post(self, post_id: str, comment: str) -> dict[str, Any]:
        actor = await self._author_urn()
        data = await self._request(
            "POST", f"/socialActions/{quote(post_id, safe='')}/comments",
            f"Could not comment on post {post_id}.",
            json={"actor": actor, "message": {"text": comment}},
        )
        return {"id": data.get("id"), "post_id": post_id, "comment": comment}

    async def get_post_comments(self, post_id: str) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", f"/socialActions/{quote(post_id, safe='')}/comments",
            f"Could not get comments for post {post_id}.",
        )
        return data.get("elements", [])

    async def share_article(self, url: str, text: str = "") -> dict[str, Any]:
        author = await self._author_urn()
        data = await self._request(
            "POST", "/ugcPosts", "Could not share article on LinkedIn.",
            json=_share_body(author, text, "ARTICLE", [{"status": "READY", "originalUrl": url}]),
        )
        return {"id": data.get("id"), "url": url}

    async def list_connections(self) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", "/connections", "Could not retrieve LinkedIn connections.",
            params={"q": "viewer", "start": 0, "count": 50},
        )
        return data.get("elements", [])


USAGE = [
    "- postToLinkedIn: Create posts on LinkedIn",
    "- listLinkedInPosts: View your recent posts",
    "- getLinkedInPostLikes: Get engagement metrics",
    "- commentOnLinkedInPost: Engage with content",
    "- shareLinkedInArticle: Share articles with your network",
    "- listLinkedInConnections: View your connections",
]


def register_linkedin_provider(registry: OperationRegistry, context: ProviderContext) -> None:
    """Register LinkedIn OAuth tools, post tools and the profile resource."""
    register_oauth_tools(registry, context, LINKEDIN, USAGE)

    token = access_token_parameter("LinkedIn")
    post_id = ToolParameter(name="postId", description="The ID (URN) of the post.")

    def client(args: dict[str, Any]) -> LinkedInClient:
        return context.client(LinkedInClient, args)

    async def post_to_linkedin(args: dict[str, Any]) -> Any:
        return await client(args).create_post(args["content"])

    async def list_linkedin_posts(args: dict[str, Any]) -> Any:
        return await client(args).list_posts()

    async def get_linkedin_post_likes(args: dict[str, Any]) -> Any:
        return await client(args).get_post_likes(args["postId"])

    async def comment_on_linkedin_post(args: dict[str, Any]) -> Any:
        return await client(args).comment_on_post(args["postId"], args["comment"])

    async def get_linkedin_post_comments(args: dict[str, Any]) -> Any:
        return await client(args).get_post_comments(args["postId"])

    async def share_linkedin_article(args: dict[str, Any]) -> Any:
        return await client(args).share_article(args["url"], args.get("text", ""))

    async def list_linkedin_connections(args: dict[str, Any]) -> Any:
        return await client(args).list_connections()

    async def get_linkedin_profile(args: dict[str, Any]) -> Any:
        return await client(args).get_profile()

    family = ProviderFamily.LINKEDIN
    registry.register_tool(
        "postToLinkedIn", "Creates a new text-based post on LinkedIn.", family,
        [token, ToolParameter(name="content", description="The text content of the post.")],
        post_to_linkedin,
    )
    registry.register_tool(
        "listLinkedInPosts", "Lists the last 5 posts from the user's LinkedIn account.", family,
        [token], list_linkedin_posts,
    )
    registry.register_tool(
        "getLinkedInPostLikes", "Gets the likes for a specific LinkedIn post.", family,
        [token, post_id], get_linkedin_post_likes,
    )
    registry.register_tool(
        "commentOnLinkedInPost", "Adds a comment to a specific LinkedIn post.", family,
        [token, post_id, ToolParameter(name="comment", description="The text content of the comment.")],
        comment_on_linkedin_post,
    )
    registry.register_tool(
        "getLinkedInPostComments", "Gets the comments for a specific LinkedIn post.", family,
        [token, post_id], get_linkedin_post_comments,
    )
    registry.register_tool(
        "shareLinkedInArticle", "Shares an article on LinkedIn with optional commentary text.", family,
        [
            token,
            ToolParameter(name="url", description="The URL of the article to share."),
            ToolParameter(
                name="text",
                description="Optional commentary text to accompany the shared article.",
                required=False,
            ),
        ],
        share_linkedin_article,
    )
    registry.register_tool(
        "listLinkedInConnections", "Lists the user's LinkedIn connections.", family,
        [token], list_linkedin_connections,
    )
    registry.register_resource(
        "getLinkedInProfile", "Retrieves the user's LinkedIn profile information.", family,
        [token], get_linkedin_profile,
    )
