from .board_client import BoardTarget, GitHubBoard
from .graphql_client import GraphQLClient, GraphQLClientError, GraphQLPermissionError, GraphQLRateLimitError
from .pagination import Page, collect_nodes, iter_pages
from .rate_limiter import RateLimiter
from .repository_client import FollowUpTarget, RepositoryClient, SourceRepository

__all__ = [
    "BoardTarget",
    "FollowUpTarget",
    "GitHubBoard",
    "GraphQLClient",
    "GraphQLClientError",
    "GraphQLPermissionError",
    "GraphQLRateLimitError",
    "Page",
    "RateLimiter",
    "RepositoryClient",
    "SourceRepository",
    "collect_nodes",
    "iter_pages",
]
