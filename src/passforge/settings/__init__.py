from .base import *  # noqa: F403
from .ninja import *  # noqa: F403
from .observability import *  # noqa: F403
from .unfold import *  # noqa: F403
from .wallet import *  # noqa: F403
