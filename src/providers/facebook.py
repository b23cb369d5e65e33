"""Facebook provider.

Feed posts, photos, comments and likes through the Graph API, plus the
Facebook OAuth tools.
"""

from typing import Any

from shared.models import ProviderFamily, ToolParameter
from gateway.registry import OperationRegistry
from providers.base import ProviderClient, ProviderContext, access_token_parameter, result_count
from providers.oauth import FACEBOOK, register_oauth_tools


class FacebookClient(ProviderClient):
    """Client for https://graph.facebook.com/v19.0."""

    api_name = "Facebook"
    base_url = "https://graph.facebook.com/v19.0"

    async def get_profile(self) -> dict[str, Any]:
        return await self._request(
            "GET", "/me",
            "Could not retrieve Facebook user profile. The access token may be invalid or expired.",
            params={"fields": "id,name,email,picture,friends.summary(true),posts.limit(1)"},
        )

    async def create_post(self, content: str) -> dict[str, Any]:
        data = await self._request(
            "POST", "/me/feed", "Could not create post on Facebook.",
            json={"message": content},
            forbidden=(
                "Post creation forbidden. Check if your app has publish permissions "
                "and the user has authorized them."
            ),
            rate_limited="Rate limit exceeded. Please wait before creating more posts.",
        )
        return {"id": data.get("id"), "message": content}

    async def list_posts(self, limit: Any = None) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", "/me/posts", "Could not retrieve Facebook posts.",
            params={
                "limit": result_count(limit, 5),
                "fields": "id,message,created_time,likes.summary(true),comments.summary(true),shares",
            },
        )
        return data.get("data") or []

    async def get_post_likes(self, post_id: str) -> dict[str, Any]:
        data = await self._request(
            "GET", f"/{post_id}/likes", f"Could not get likes for post {post_id}.",
            params={"summary": "true"},
        )
        return {
            "post_id": post_id,
            "count": (data.get("summary") or {}).get("total_count", 0),
            "likes": data.get("data") or [],
        }

    async def comment_on_post(self, post_id: str, comment: str) -> dict[str, Any]:
        data = await self._request(
            "POST", f"/{post_id}/comments", f"Could not comment on post {post_id}.",
            json={"message": comment},
        )
        return {"id": data.get("id"), "message": comment}

    async def get_post_comments(self, post_id: str) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", f"/{post_id}/comments", f"Could not get comments for post {post_id}.",
            params={"fields": "id,from,message,created_time,like_count"},
        )
        return data.get("data") or []

    async def upload_photo(self, image_url: str, caption: str = "") -> dict[str, Any]:
        data = await self._request(
            "POST", "/me/photos", "Could not upload photo to Facebook.",
            json={"url": image_url, "caption": caption},
        )
        return {"id": data.get("id"), "post_id": data.get("post_id")}

    async def get_page_info(self) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", "/me/accounts", "Could not retrieve Facebook page info.",
            params={"fields": "id,name,category,followers_count,fan_count"},
        )
        return data.get("data") or []

    async def get_friends(self) -> dict[str, Any]:
        data = await self._request(
            "GET", "/me/friends", "Could not retrieve Facebook friends list.",
            params={"fields": "id,name,picture"},
        )
        return {"friends": data.get("data") or [], "summary": data.get("summary")}

    async def like_post(self, post_id: str) -> dict[str, Any]:
        data = await self._request("POST", f"/{post_id}/likes", f"Could not like post {post_id}.")
        return {"success": data.get("success", True), "post_id": post_id}

    async def share_link(self, link: str, message: str = "") -> dict[str, Any]:
        data = await self._request(
            "POST", "/me/feed", "Could not share link on Facebook.",
            json={"link": link, "message": message},
        )
        return {"id": data.get("id")}

    async def delete_post(self, post_id: str) -> dict[str, Any]:
        data = await self._request("DELETE", f"/{post_id}", f"Could not delete post {post_id}.")
        return {"success": data.get("success", True), "post_id": post_id}


USAGE = [
    "- postToFacebook: Create posts on Facebook",
    "- listFacebookPosts: View your recent posts",
    "- getFacebookPostLikes: Get engagement metrics",
    "- commentOnFacebookPost: Engage with content",
    "- uploadFacebookPhoto: Upload photos",
    "- shareFacebookLink: Share links",
    "- likeFacebookPost: Like posts",
    "- deleteFacebookPost: Delete your posts",
]


def register_facebook_provider(registry: OperationRegistry, context: ProviderContext) -> None:
    """Register Facebook OAuth tools, feed tools and the profile resource."""
    register_oauth_tools(registry, context, FACEBOOK, USAGE)

    token = access_token_parameter("Facebook")
    post_id = ToolParameter(name="postId", description="The ID of the post.")

    def client(args: dict[str, Any]) -> FacebookClient:
        return context.client(FacebookClient, args)

    async def post_to_facebook(args: dict[str, Any]) -> Any:
        return await client(args).create_post(args["content"])

    async def list_facebook_posts(args: dict[str, Any]) -> Any:
        return await client(args).list_posts(args.get("maxResults"))

    async def get_facebook_post_likes(args: dict[str, Any]) -> Any:
        return await client(args).get_post_likes(args["postId"])

    async def comment_on_facebook_post(args: dict[str, Any]) -> Any:
        return await client(args).comment_on_post(args["postId"], args["comment"])

    async def get_facebook_post_comments(args: dict[str, Any]) -> Any:
        return await client(args).get_post_comments(args["postId"])

    async def upload_facebook_photo(args: dict[str, Any]) -> Any:
        return await client(args).upload_photo(args["imageUrl"], args.get("caption", ""))

    async def like_facebook_post(args: dict[str, Any]) -> Any:
        return await client(args).like_post(args["postId"])

    async def share_facebook_link(args: dict[str, Any]) -> Any:
        return await client(args).share_link(args["link"], args.get("message", ""))

    async def delete_facebook_post(args: dict[str, Any]) -> Any:
        return await client(args).delete_post(args["postId"])

    async def get_facebook_page_info(args: dict[str, Any]) -> Any:
        return await client(args).get_page_info()

    async def get_facebook_friends(args: dict[str, Any]) -> Any:
        return await client(args).get_friends()

    async def get_facebook_profile(args: dict[str, Any]) -> Any:
        return await client(args).get_profile()

    family = ProviderFamily.FACEBOOK
    registry.register_tool(
        "postToFacebook", "Creates a new text-based post on Facebook.", family,
        [token, ToolParameter(name="content", description="The text content of the post.")],
        post_to_facebook,
    )
    registry.register_tool(
        "listFacebookPosts", "Lists the user's recent Facebook posts.", family,
        [
            token,
            ToolParameter(
                name="maxResults",
                type="integer",
                description="Maximum number of posts to retrieve (default: 5).",
                required=False,
            ),
        ],
        list_facebook_posts,
    )
    registry.register_tool(
        "getFacebookPostLikes", "Gets the likes for a specific Facebook post.", family,
        [token, post_id], get_facebook_post_likes,
    )
    registry.register_tool(
        "commentOnFacebookPost", "Adds a comment to a specific Facebook post.", family,
        [token, post_id, ToolParameter(name="comment", description="The text content of the comment.")],
        comment_on_facebook_post,
    )
    registry.register_tool(
        "getFacebookPostComments", "Gets the comments for a specific Facebook post.", family,
        [token, post_id], get_facebook_post_comments,
    )
    registry.register_tool(
        "uploadFacebookPhoto", "Uploads a photo to Facebook with an optional caption.", family,
        [
            token,
            ToolParameter(name="imageUrl", description="The URL of the image to upload."),
            ToolParameter(name="caption", description="Optional caption for the photo.", required=False),
        ],
        upload_facebook_photo,
    )
    registry.register_tool(
        "likeFacebookPost", "Likes a post on Facebook.", family,
        [token, post_id], like_facebook_post,
    )
    registry.register_tool(
        "shareFacebookLink", "Shares a link on Facebook with optional message.", family,
        [
            token,
            ToolParameter(name="link", description="The URL to share."),
            ToolParameter(name="message", description="Optional message to accompany the link.", required=False),
        ],
        share_facebook_link,
    )
    registry.register_tool(
        "deleteFacebookPost", "Deletes a post owned by the authenticated user.", family,
        [token, post_id], delete_facebook_post,
    )
    registry.register_tool(
        "getFacebookPageInfo", "Gets information about Facebook pages the user manages.", family,
        [token], get_facebook_page_info,
    )
    registry.register_tool(
        "getFacebookFriends", "Gets the user's Facebook friends list (limited by privacy settings).", family,
        [token], get_facebook_friends,
    )
    registry.register_resource(
        "getFacebookProfile", "Retrieves the user's Facebook profile information.", family,
        [token], get_facebook_profile,
    )
