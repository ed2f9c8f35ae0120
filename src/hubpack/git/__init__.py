"""Git integration for hubpack."""

from hubpack.git.repo import RepositoryGateway, RepositoryStatus, parse_status

__all__ = [
    "RepositoryGateway",
    "RepositoryStatus",
    "parse_status",
]
