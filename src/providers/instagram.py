"""Instagram provider.

Media, comments and insights through the Instagram Graph API, plus the
Instagram OAuth tools. Most calls need a Business or Creator account.
"""

from typing import Any

from shared.models import ProviderFamily, ToolParameter
from gateway.registry import OperationRegistry
from providers.base import ProviderClient, ProviderContext, access_token_parameter, result_count
from providers.oauth import INSTAGRAM, register_oauth_tools

DEFAULT_ACCOUNT_METRICS = "impressions,reach,profile_views"
PERIODS = ["day", "week", "days_28", "lifetime"]


def _metric_values(data: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for metric in data.get("data") or []:
        points = metric.get("values") or [{}]
        values[metric.get("name")] = points[0].get("value", 0) or 0
    return values


class InstagramClient(ProviderClient):
    """Client for https://graph.instagram.com."""

    api_name = "Instagram"
    base_url = "https://graph.instagram.com"

    async def get_profile(self) -> dict[str, Any]:
        return await self._request(
            "GET", "/me",
            "Could not retrieve Instagram user profile. The access token may be invalid or expired.",
            params={"fields": "id,username,account_type,media_count"},
        )

    async def _user_id(self) -> str:
        profile = await self.get_profile()
        return profile["id"]

    async def create_post(self, image_url: str, caption: str) -> dict[str, Any]:
        """Create a media container, then publish it."""
        user_id = await self._user_id()
        failure = "Could not create post on Instagram. Ensure the image URL is publicly accessible."
        forbidden = (
            "Post creation forbidden. Ensure you have a Business or Creator account "
            "and proper permissions."
        )
        rate_limited = "Rate limit exceeded. Please wait before creating more posts."

        container = await self._request(
            "POST", f"/{user_id}/media", failure,
            params={"image_url": image_url, "caption": caption},
            forbidden=forbidden, rate_limited=rate_limited,
        )
        published = await self._request(
            "POST", f"/{user_id}/media_publish", failure,
            params={"creation_id": container.get("id")},
            forbidden=forbidden, rate_limited=rate_limited,
        )
        return {"id": published.get("id"), "caption": caption}

    async def list_posts(self, limit: Any = None) -> list[dict[str, Any]]:
        user_id = await self._user_id()
        data = await self._request(
            "GET", f"/{user_id}/media", "Could not retrieve Instagram posts.",
            params={
                "limit": result_count(limit, 5),
                "fields": "id,caption,media_type,media_url,permalink,timestamp,like_count,comments_count",
            },
        )
        return data.get("data") or []

    async def get_post_likes(self, post_id: str) -> dict[str, Any]:
        data = await self._request(
            "GET", f"/{post_id}", f"Could not get likes for post {post_id}.",
            params={"fields": "like_count"},
        )
        return {"post_id": post_id, "count": data.get("like_count", 0)}

    async def comment_on_post(self, post_id: str, comment: str) -> dict[str, Any]:
        data = await self._request(
            "POST", f"/{post_id}/comments", f"Could not comment on post {post_id}.",
            params={"message": comment},
        )
        return {"id": data.get("id"), "message": comment}

    async def get_post_comments(self, post_id: str) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", f"/{post_id}/comments", f"Could not get comments for post {post_id}.",
            params={"fields": "id,text,username,timestamp,like_count"},
        )
        return data.get("data") or []

    async def get_followers(self) -> dict[str, Any]:
        user_id = await self._user_id()
        data = await self._request(
            "GET", f"/{user_id}", "Could not retrieve Instagram followers count.",
            params={"fields": "followers_count"},
        )
        return {"followers_count": data.get("followers_count", 0)}

    async def get_following(self) -> dict[str, Any]:
        user_id = await self._user_id()
        data = await self._request(
            "GET", f"/{user_id}", "Could not retrieve Instagram following count.",
            params={"fields": "follows_count"},
        )
        return {"follows_count": data.get("follows_count", 0)}

    async def get_post_insights(self, post_id: str) -> dict[str, Any]:
        data = await self._request(
            "GET", f"/{post_id}/insights",
            f"Could not get insights for post {post_id}. Ensure you have a Business account.",
            params={"metric": "engagement,impressions,reach,saved"},
        )
        return {"post_id": post_id, "insights": _metric_values(data)}

    async def get_account_insights(
        self,
        metric: str = DEFAULT_ACCOUNT_METRICS,
        period: str = "day",
    ) -> dict[str, Any]:
        user_id = await self._user_id()
        data = await self._request(
            "GET", f"/{user_id}/insights",
            "Could not get account insights. Ensure you have a Business account.",
            params={"metric": metric, "period": period},
        )
        return _metric_values(data)

    async def reply_to_comment(self, comment_id: str, message: str) -> dict[str, Any]:
        data = await self._request(
            "POST", f"/{comment_id}/replies", f"Could not reply to comment {comment_id}.",
            params={"message": message},
        )
        return {"id": data.get("id"), "message": message}


USAGE = [
    "- postToInstagram: Publish an image with a caption",
    "- listInstagramPosts: View your recent posts",
    "- getInstagramPostLikes: Get engagement metrics",
    "- commentOnInstagramPost: Engage with content",
    "- getInstagramPostInsights: Get post analytics",
    "- getInstagramAccountInsights: Get account analytics",
]


def register_instagram_provider(registry: OperationRegistry, context: ProviderContext) -> None:
    """Register Instagram OAuth tools, media tools and the profile resource."""
    register_oauth_tools(registry, context, INSTAGRAM, USAGE)

    token = access_token_parameter("Instagram")
    post_id = ToolParameter(name="postId", description="The ID of the post.")

    def client(args: dict[str, Any]) -> InstagramClient:
        return context.client(InstagramClient, args)

    async def post_to_instagram(args: dict[str, Any]) -> Any:
        return await client(args).create_post(args["imageUrl"], args["caption"])

    async def list_instagram_posts(args: dict[str, Any]) -> Any:
        return await client(args).list_posts(args.get("maxResults"))

    async def get_instagram_post_likes(args: dict[str, Any]) -> Any:
        return await client(args).get_post_likes(args["postId"])

    async def comment_on_instagram_post(args: dict[str, Any]) -> Any:
        return await client(args).comment_on_post(args["postId"], args["comment"])

    async def get_instagram_post_comments(args: dict[str, Any]) -> Any:
        return await client(args).get_post_comments(args["postId"])

    async def get_instagram_followers(args: dict[str, Any]) -> Any:
        return await client(args).get_followers()

    async def get_instagram_following(args: dict[str, Any]) -> Any:
        return await client(args).get_following()

    async def get_instagram_post_insights(args: dict[str, Any]) -> Any:
        return await client(args).get_post_insights(args["postId"])

    async def get_instagram_account_insights(args: dict[str, Any]) -> Any:
        return await client(args).get_account_insights(
            args.get("metric") or DEFAULT_ACCOUNT_METRICS,
            args.get("period") or "day",
        )

    async def reply_to_instagram_comment(args: dict[str, Any]) -> Any:
        return await client(args).reply_to_comment(args["commentId"], args["message"])

    async def get_instagram_profile(args: dict[str, Any]) -> Any:
        return await client(args).get_profile()

    family = ProviderFamily.INSTAGRAM
    registry.register_tool(
        "postToInstagram", "Creates a new post on Instagram with an image and caption (two-step process).",
        family,
        [
            token,
            ToolParameter(name="imageUrl", description="The URL of the image to post (must be publicly accessible)."),
            ToolParameter(name="caption", description="The caption for the post."),
        ],
        post_to_instagram,
    )
    registry.register_tool(
        "listInstagramPosts", "Lists the user's recent Instagram posts.", family,
        [
            token,
            ToolParameter(
                name="maxResults",
                type="integer",
                description="Maximum number of posts to retrieve (default: 5).",
                required=False,
            ),
        ],
        list_instagram_posts,
    )
    registry.register_tool(
        "getInstagramPostLikes", "Gets the likes count for a specific Instagram post.", family,
        [token, post_id], get_instagram_post_likes,
    )
    registry.register_tool(
        "commentOnInstagramPost", "Adds a comment to a specific Instagram post.", family,
        [token, post_id, ToolParameter(name="comment", description="The text content of the comment.")],
        comment_on_instagram_post,
    )
    registry.register_tool(
        "getInstagramPostComments", "Gets the comments for a specific Instagram post.", family,
        [token, post_id], get_instagram_post_comments,
    )
    registry.register_tool(
        "getInstagramFollowers", "Gets the user's Instagram followers count.", family,
        [token], get_instagram_followers,
    )
    registry.register_tool(
        "getInstagramFollowing", "Gets the user's Instagram following count.", family,
        [token], get_instagram_following,
    )
    registry.register_tool(
        "getInstagramPostInsights",
        "Gets insights (analytics) for a specific Instagram post. Requires Instagram Business account.",
        family, [token, post_id], get_instagram_post_insights,
    )
    registry.register_tool(
        "getInstagramAccountInsights",
        "Gets account insights (analytics) for the user. Requires Instagram Business account.",
        family,
        [
            token,
            ToolParameter(
                name="metric",
                description=f'Optional metrics to retrieve (default: "{DEFAULT_ACCOUNT_METRICS}").',
                required=False,
            ),
            ToolParameter(
                name="period",
                description='Optional time period (default: "day").',
                required=False,
                enum=PERIODS,
            ),
        ],
        get_instagram_account_insights,
    )
    registry.register_tool(
        "replyToInstagramComment", "Replies to a comment on an Instagram post.", family,
        [
            token,
            ToolParameter(name="commentId", description="The ID of the comment to reply to."),
            ToolParameter(name="message", description="The reply text."),
        ],
        reply_to_instagram_comment,
    )
    registry.register_resource(
        "getInstagramProfile", "Retrieves the user's Instagram profile information.", family,
        [token], get_instagram_profile,
    )
