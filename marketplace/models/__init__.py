from marketplace.models.base import Base  # noqa: F401

from marketplace.models.user import User  # noqa: F401
from marketplace.models.category import Category  # noqa: F401
from marketplace.models.listing import Listing  # noqa: F401
from marketplace.models.favorite import Favorite  # noqa: F401
from marketplace.models.conversation import Conversation  # noqa: F401
from marketplace.models.message import Message  # noqa: F401
