"""Boundary to the external version-control tool."""

from .git import GatewayResult, GitGateway, RepositoryGateway, commit_and_push

__all__ = ["GatewayResult", "GitGateway", "RepositoryGateway", "commit_and_push"]
