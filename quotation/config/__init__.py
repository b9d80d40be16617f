from .provider import ConfigProvider, build_table  # noqa
from .table import ConfigTable, deep_merge  # noqa
