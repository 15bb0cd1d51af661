"""AccessWhitelist package exports."""

from .cli import *  # noqa: F401,F403
from .cli import __all__ as _cli_all
from .ledger import *  # noqa: F401,F403
from .ledger import __all__ as _ledger_all
from .policy import *  # noqa: F401,F403
from .policy import __all__ as _policy_all
from .resolver import *  # noqa: F401,F403
from .resolver import __all__ as _resolver_all
from .service import *  # noqa: F401,F403
from .service import __all__ as _service_all

__all__ = [
    *_cli_all,
    *_ledger_all,
    *_policy_all,
    *_resolver_all,
    *_service_all,
]
