"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import certificate  # noqa: F401
from . import decapsulate  # noqa: F401
from . import derived_key  # noqa: F401
from . import encapsulate  # noqa: F401
from . import keypair  # noqa: F401
from . import random_number  # noqa: F401
from . import sign  # noqa: F401
from . import verify  # noqa: F401
