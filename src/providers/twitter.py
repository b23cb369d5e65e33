"""Twitter/X provider.

Tweets, replies, search and engagement through the Twitter API v2, plus
the PKCE OAuth tools and token refresh.
"""

from typing import Any

from shared.models import ProviderFamily, ToolParameter
from gateway.registry import OperationRegistry
from providers.base import (
    MAX_RESULTS,
    ProviderClient,
    ProviderContext,
    ProviderError,
    access_token_parameter,
    result_count,
)
from providers.oauth import TWITTER, register_oauth_tools

MAX_TWEET_LENGTH = 280
TWEET_FIELDS = "id,text,created_at,author_id,public_metrics"


class TwitterClient(ProviderClient):
    """Client for https://api.twitter.com/2."""

    api_name = "Twitter"
    base_url = "https://api.twitter.com/2"

    async def get_profile(self) -> dict[str, Any]:
        data = await self._request(
            "GET", "/users/me",
            "Could not retrieve Twitter user profile. The access token may be invalid or expired.",
            params={
                "user.fields": "id,name,username,description,profile_image_url,public_metrics,verified,created_at",
            },
        )
        return data.get("data", {})

    async def _user_id(self) -> str:
        profile = await self.get_profile()
        return profile["id"]

    async def create_tweet(self, content: str) -> dict[str, Any]:
        if len(content) > MAX_TWEET_LENGTH:
            raise ProviderError(f"Tweet content exceeds {MAX_TWEET_LENGTH} characters limit.")
        data = await self._request(
            "POST", "/tweets", "Could not create tweet on Twitter.",
            json={"text": content},
            forbidden=(
                "Tweet creation forbidden. Check if your app has write permissions "
                "and the user has authorized them."
            ),
            rate_limited="Rate limit exceeded. Please wait before creating more tweets.",
        )
        tweet = data.get("data", {})
        return {"id": tweet.get("id"), "text": tweet.get("text", content)}

    async def reply_to_tweet(self, tweet_id: str, content: str) -> dict[str, Any]:
        if len(content) > MAX_TWEET_LENGTH:
            raise ProviderError(f"Reply content exceeds {MAX_TWEET_LENGTH} characters limit.")
        data = await self._request(
            "POST", "/tweets", f"Could not reply to tweet {tweet_id}.",
            json={"text": content, "reply": {"in_reply_to_tweet_id": tweet_id}},
        )
        tweet = data.get("data", {})
        return {"id": tweet.get("id"), "text": tweet.get("text", content), "in_reply_to": tweet_id}

    async def list_tweets(self, max_results: Any = None) -> list[dict[str, Any]]:
        user_id = await self._user_id()
        data = await self._request(
            "GET", f"/users/{user_id}/tweets", "Could not retrieve user tweets.",
            params={
                "max_results": result_count(max_results, 10),
                "tweet.fields": "id,text,created_at,public_metrics,conversation_id",
            },
        )
        return data.get("data") or []

    async def search(self, query: str, max_results: Any = None) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", "/tweets/search/recent", f"Could not search tweets with query: {query}",
            params={"query": query, "max_results": result_count(max_results, 10), "tweet.fields": TWEET_FIELDS},
        )
        return data.get("data") or []

    async def like(self, tweet_id: str) -> dict[str, Any]:
        user_id = await self._user_id()
        data = await self._request(
            "POST", f"/users/{user_id}/likes", f"Could not like tweet {tweet_id}.",
            json={"tweet_id": tweet_id},
        )
        return {"liked": data.get("data", {}).get("liked", False), "tweet_id": tweet_id}

    async def retweet(self, tweet_id: str) -> dict[str, Any]:
        user_id = await self._user_id()
        data = await self._request(
            "POST", f"/users/{user_id}/retweets", f"Could not retweet tweet {tweet_id}.",
            json={"tweet_id": tweet_id},
        )
        return {"retweeted": data.get("data", {}).get("retweeted", False), "tweet_id": tweet_id}

    async def get_engagement(self, tweet_id: str) -> dict[str, Any]:
        data = await self._request(
            "GET", f"/tweets/{tweet_id}", f"Could not get engagement metrics for tweet {tweet_id}.",
            params={"tweet.fields": "public_metrics,created_at"},
        )
        metrics = data.get("data", {}).get("public_metrics", {})
        return {
            "tweet_id": tweet_id,
            "likes": metrics.get("like_count", 0),
            "retweets": metrics.get("retweet_count", 0),
            "replies": metrics.get("reply_count", 0),
            "quotes": metrics.get("quote_count", 0),
            "impressions": metrics.get("impression_count", 0),
        }

    async def delete(self, tweet_id: str) -> dict[str, Any]:
        data = await self._request("DELETE", f"/tweets/{tweet_id}", f"Could not delete tweet {tweet_id}.")
        return {"deleted": data.get("data", {}).get("deleted", False), "tweet_id": tweet_id}

    async def get_mentions(self, max_results: Any = None) -> list[dict[str, Any]]:
        user_id = await self._user_id()
        data = await self._request(
            "GET", f"/users/{user_id}/mentions", "Could not retrieve user mentions.",
            params={"max_results": result_count(max_results, 10), "tweet.fields": TWEET_FIELDS},
        )
        return data.get("data") or []


USAGE = [
    "- postToTwitter: Create tweets",
    "- replyToTweet: Reply to tweets",
    "- listTwitterTweets: View your recent tweets",
    "- searchTwitter: Search for tweets",
    "- likeTweet: Like tweets",
    "- retweetTweet: Retweet tweets",
    "- getTweetEngagement: Get engagement metrics",
    "- deleteTweet: Delete your tweets",
    "- getUserMentions: Get mentions of you",
]


def register_twitter_provider(registry: OperationRegistry, context: ProviderContext) -> None:
    """Register Twitter OAuth tools, tweet tools and the profile resource."""
    register_oauth_tools(registry, context, TWITTER, USAGE)

    token = access_token_parameter("Twitter")
    tweet_id = ToolParameter(name="tweetId", description="The ID of the tweet.")
    max_results = ToolParameter(
        name="maxResults",
        type="integer",
        description=f"Maximum number of results (default: 10, max: {MAX_RESULTS}).",
        required=False,
    )
    content = ToolParameter(
        name="content",
        description=f"The text content (max {MAX_TWEET_LENGTH} characters).",
    )

    def client(args: dict[str, Any]) -> TwitterClient:
        return context.client(TwitterClient, args)

    async def post_to_twitter(args: dict[str, Any]) -> Any:
        return await client(args).create_tweet(args["content"])

    async def reply_to_tweet(args: dict[str, Any]) -> Any:
        return await client(args).reply_to_tweet(args["tweetId"], args["content"])

    async def list_twitter_tweets(args: dict[str, Any]) -> Any:
        return await client(args).list_tweets(args.get("maxResults"))

    async def search_twitter(args: dict[str, Any]) -> Any:
        return await client(args).search(args["query"], args.get("maxResults"))

    async def like_tweet(args: dict[str, Any]) -> Any:
        return await client(args).like(args["tweetId"])

    async def retweet_tweet(args: dict[str, Any]) -> Any:
        return await client(args).retweet(args["tweetId"])

    async def get_tweet_engagement(args: dict[str, Any]) -> Any:
        return await client(args).get_engagement(args["tweetId"])

    async def delete_tweet(args: dict[str, Any]) -> Any:
        return await client(args).delete(args["tweetId"])

    async def get_user_mentions(args: dict[str, Any]) -> Any:
        return await client(args).get_mentions(args.get("maxResults"))

    async def get_twitter_profile(args: dict[str, Any]) -> Any:
        return await client(args).get_profile()

    family = ProviderFamily.TWITTER
    registry.register_tool(
        "postToTwitter", f"Creates a new tweet on Twitter/X (max {MAX_TWEET_LENGTH} characters).", family,
        [token, content], post_to_twitter,
    )
    registry.register_tool(
        "replyToTweet", "Replies to an existing tweet on Twitter/X.", family,
        [token, tweet_id, content], reply_to_tweet,
    )
    registry.register_tool(
        "listTwitterTweets", "Lists the authenticated user's recent tweets.", family,
        [token, max_results], list_twitter_tweets,
    )
    registry.register_tool(
        "searchTwitter", "Searches for tweets matching a query on Twitter/X.", family,
        [token, ToolParameter(name="query", description="The search query string."), max_results],
        search_twitter,
    )
    registry.register_tool(
        "likeTweet", "Likes a tweet on Twitter/X.", family, [token, tweet_id], like_tweet,
    )
    registry.register_tool(
        "retweetTweet", "Retweets a tweet on Twitter/X.", family, [token, tweet_id], retweet_tweet,
    )
    registry.register_tool(
        "getTweetEngagement", "Gets engagement metrics (likes, retweets, replies) for a specific tweet.",
        family, [token, tweet_id], get_tweet_engagement,
    )
    registry.register_tool(
        "deleteTweet", "Deletes a tweet owned by the authenticated user.", family,
        [token, tweet_id], delete_tweet,
    )
    registry.register_tool(
        "getUserMentions", "Gets tweets mentioning the authenticated user.", family,
        [token, max_results], get_user_mentions,
    )
    registry.register_resource(
        "getTwitterProfile", "Retrieves the authenticated user's Twitter profile information.", family,
        [token], get_twitter_profile,
    )
