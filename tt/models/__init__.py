# SQLModel tables; importing this package populates SQLModel.metadata.
from .user import User  # noqa: F401
from .thing import Thing  # noqa: F401
from .subscriber import Subscriber  # noqa: F401
