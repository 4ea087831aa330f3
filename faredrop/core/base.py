from faredrop.core.db import Base  # noqa
from faredrop.models.watch import PriceSnapshot, Watch  # noqa

__all__ = [
    'Base',
    'Watch',
    'PriceSnapshot',
]
