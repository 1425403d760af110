"""
Repository layer for database access.
"""
from code_deployer.repositories.base import BaseRepository
from code_deployer.repositories.deployment_repository import DeploymentRepository
from code_deployer.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "DeploymentRepository",
    "UserRepository",
]
