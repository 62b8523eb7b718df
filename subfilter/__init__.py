from subfilter.middleware import SubFilter
from subfilter.middleware import new
from subfilter.options import FilterSpec
from subfilter.options import MiddlewareConfig
from subfilter.options import create_config

__all__ = ["SubFilter", "new", "FilterSpec", "MiddlewareConfig", "create_config"]
