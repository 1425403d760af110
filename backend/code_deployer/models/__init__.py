# Models package
from code_deployer.models.user import User
from code_deployer.models.deployment import Deployment
